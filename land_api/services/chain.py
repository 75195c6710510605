# SPDX-License-Identifier: Apache-2.0

"""
Land registry ledger client.

The on-chain registry is reached through its HTTP ledger gateway. Every call
is bounded by a timeout and every failure surfaces as ChainUnavailableError;
retry and fallback policy belongs to the callers.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain.errors import ChainUnavailableError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ChainClient(ABC):
    """Read/write surface of the land registry ledger."""

    @abstractmethod
    def total_users(self) -> int:
        ...

    @abstractmethod
    def total_lands(self) -> int:
        ...

    @abstractmethod
    def verified_lands(self) -> int:
        ...

    @abstractmethod
    def register_land(self, location: str, size: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def transfer_land(self, to_address: str, land_id: int) -> Dict[str, Any]:
        ...

    @abstractmethod
    def grant_building_permission(self, land_id: int) -> Dict[str, Any]:
        ...

    @abstractmethod
    def register_user(self, name: str, role: str) -> Dict[str, Any]:
        ...


class HttpChainClient(ChainClient):
    """ChainClient backed by the ledger gateway's REST interface."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the ledger gateway client.

        Args:
            base_url: Gateway base URL
            token: Bearer token for the gateway
            timeout: Per-request timeout in seconds
            session: Pre-built requests session
        """
        self.base_url = (base_url or os.getenv("LEDGER_GATEWAY_URL", "http://localhost:8545/api")).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        with tracer.start_as_current_span(f"ledger.{method.lower()}") as span:
            span.set_attributes({
                "http.method": method,
                "http.url": url,
                "ledger.timeout_s": self.timeout
            })
            try:
                response = self.session.request(method, url, json=payload, timeout=self.timeout)
                span.set_attribute("http.status_code", response.status_code)
                response.raise_for_status()
                return response.json()
            except requests.Timeout as e:
                span.set_status(Status(StatusCode.ERROR, "timeout"))
                logger.warning(f"Ledger gateway timed out: {method} {path}")
                raise ChainUnavailableError(f"Ledger gateway timed out on {path}") from e
            except requests.RequestException as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.warning(f"Ledger gateway request failed: {method} {path}: {str(e)}")
                raise ChainUnavailableError(f"Ledger gateway request failed on {path}") from e
            except ValueError as e:
                span.set_status(Status(StatusCode.ERROR, "invalid json"))
                raise ChainUnavailableError(f"Ledger gateway returned invalid JSON on {path}") from e

    def _count(self, path: str) -> int:
        body = self._request("GET", path)
        try:
            count = int(body["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise ChainUnavailableError(f"Ledger gateway returned no count on {path}") from e
        if count < 0:
            raise ChainUnavailableError(f"Ledger gateway returned a negative count on {path}")
        return count

    def total_users(self) -> int:
        return self._count("/stats/users")

    def total_lands(self) -> int:
        return self._count("/stats/lands")

    def verified_lands(self) -> int:
        return self._count("/stats/lands/verified")

    def register_land(self, location: str, size: str) -> Dict[str, Any]:
        return self._request("POST", "/lands", {"location": location, "size": size})

    def transfer_land(self, to_address: str, land_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/lands/{int(land_id)}/transfer", {"toAddress": to_address})

    def grant_building_permission(self, land_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/lands/{int(land_id)}/building-permission")

    def register_user(self, name: str, role: str) -> Dict[str, Any]:
        return self._request("POST", "/users", {"name": name, "role": role})

    def health_check(self) -> Dict[str, Any]:
        try:
            self._request("GET", "/health")
            return {"status": "healthy", "url": self.base_url}
        except ChainUnavailableError as e:
            return {"status": "unhealthy", "url": self.base_url, "error": str(e)}
