# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the Redis cache and token blocklist service.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis

from land_api.services.redis import RedisService


@pytest.fixture
def redis_client():
    return MagicMock()


@pytest.fixture
def redis_service(redis_client):
    return RedisService("redis://localhost:6379", client=redis_client)


class TestRedisCache:
    """Cache operations degrade to no-ops on failure."""

    def test_set_serializes_json_with_ttl(self, redis_service, redis_client):
        redis_client.setex.return_value = True

        assert redis_service.set("ledger:stats:last_known", {"total_lands": 7}, 60) is True
        redis_client.setex.assert_called_once_with("ledger:stats:last_known", 60, json.dumps({"total_lands": 7}))

    def test_get_decodes_json(self, redis_service, redis_client):
        redis_client.get.return_value = '{"pending": 2}'
        assert redis_service.get("land:applications:status_counts") == {"pending": 2}

        redis_client.get.return_value = "plain"
        assert redis_service.get("key") == "plain"

    def test_failures_are_misses(self, redis_service, redis_client):
        redis_client.get.side_effect = redis.ConnectionError("down")
        redis_client.setex.side_effect = redis.ConnectionError("down")
        redis_client.delete.side_effect = redis.ConnectionError("down")

        assert redis_service.get("key") is None
        assert redis_service.set("key", "value", 10) is False
        assert redis_service.delete("key") is False

    def test_delete_returns_removal_result(self, redis_service, redis_client):
        redis_client.delete.return_value = 0
        assert redis_service.delete("key") is False

        redis_client.delete.return_value = 1
        assert redis_service.delete("key") is True
        redis_client.exists.assert_not_called()


class TestTokenBlocklist:
    def test_blocked_token(self, redis_service, redis_client):
        redis_client.exists.return_value = 1

        assert redis_service.is_token_blocked("abc") is True
        redis_client.exists.assert_called_once_with("blocklist:jwt:abc")

    def test_blocklist_errors_propagate(self, redis_service, redis_client):
        redis_client.exists.side_effect = redis.ConnectionError("down")

        with pytest.raises(redis.ConnectionError):
            redis_service.is_token_blocked("abc")

    def test_health_check(self, redis_service, redis_client):
        redis_client.ping.return_value = True
        assert redis_service.health_check()["status"] == "healthy"

        redis_client.ping.side_effect = redis.ConnectionError("down")
        assert redis_service.health_check()["status"] == "unhealthy"
