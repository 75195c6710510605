"""
Tests for the health check endpoint.

Covers dependency checks, overall status and the HAL envelope.
"""

import json
from unittest.mock import MagicMock, patch

from land_api.services.health import HealthCheckService


class TestHealthCheckEndpoint:
    """Test cases for the /api/healthz endpoint."""

    def test_health_check_healthy(self, app, client):
        """MongoDB up, Redis not configured, ledger reachable."""
        with patch.object(app.mongodb_service, 'health_check', return_value={"status": "healthy"}):
            response = client.get('/api/healthz')

        assert response.status_code == 200
        data = json.loads(response.data)

        assert data['_links']['self']['href'].endswith('/api/healthz')
        assert data['status'] == 'healthy'
        assert data['service'] == 'land-services-api'
        assert data['dependencies']['redis']['status'] == 'not_configured'
        assert data['dependencies']['ledger']['status'] == 'healthy'
        assert 'system_metrics' in data

    def test_health_check_mongodb_down(self, app, client):
        with patch.object(app.mongodb_service, 'health_check',
                          return_value={"status": "unhealthy", "error": "timeout"}):
            response = client.get('/api/healthz')

        assert response.status_code == 503
        assert json.loads(response.data)['status'] == 'unhealthy'

    def test_health_check_ledger_down_is_degraded(self, app, client):
        with patch.object(app.mongodb_service, 'health_check', return_value={"status": "healthy"}), \
                patch.object(app.chain_client, 'health_check', side_effect=RuntimeError("gateway down")):
            response = client.get('/api/healthz')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'degraded'
        assert data['dependencies']['ledger']['status'] == 'unhealthy'

    def test_health_check_service_failure(self, app, client):
        with patch.object(app.health_service, 'get_comprehensive_health', side_effect=RuntimeError("boom")):
            response = client.get('/api/healthz')

        assert response.status_code == 503
        assert 'boom' in json.loads(response.data)['error']


class TestHealthCheckService:
    """Test HealthCheckService status rules."""

    def test_overall_status(self):
        determine = HealthCheckService._determine_overall_status

        assert determine("healthy", ["healthy", "not_configured"]) == "healthy"
        assert determine("healthy", ["unhealthy", "healthy"]) == "degraded"
        assert determine("unhealthy", ["healthy", "healthy"]) == "unhealthy"

    def test_redis_failure_degrades(self):
        mongodb_service = MagicMock()
        mongodb_service.health_check.return_value = {"status": "healthy"}
        redis_service = MagicMock()
        redis_service.health_check.side_effect = ConnectionError("refused")

        health = HealthCheckService(mongodb_service, redis_service).get_comprehensive_health()

        assert health['status'] == 'degraded'
        assert health['dependencies']['redis']['error'] == 'refused'
        assert health['dependencies']['ledger']['status'] == 'not_configured'
