"""
Health Check Service

Reports health of MongoDB, Redis and the ledger gateway together with basic
process and host metrics.
"""

import os
import time
import psutil
from datetime import datetime
from typing import Dict, Any, List
from opentelemetry import trace

from .mongodb import MongoDBService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "land-services-api"
SERVICE_VERSION = "1.0.0"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(self, mongodb_service: MongoDBService, redis_service=None, chain_client=None):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.chain_client = chain_client

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including all dependencies and metrics."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            dependencies = {
                "mongodb": self._check_mongodb_health(),
                "redis": self._check_redis_health(),
                "ledger": self._check_ledger_health()
            }

            # MongoDB is the only hard dependency; Redis and the ledger degrade
            overall_status = self._determine_overall_status(
                dependencies["mongodb"]["status"],
                [dependencies["redis"]["status"], dependencies["ledger"]["status"]]
            )

            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": dependencies["mongodb"]["status"],
                "health.redis_status": dependencies["redis"]["status"],
                "health.ledger_status": dependencies["ledger"]["status"]
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "response_time_ms": response_time_ms,
                "dependencies": dependencies,
                "system_metrics": self._get_system_metrics(),
                "uptime": self._get_process_uptime()
            }

    def _check_mongodb_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            health_info = self.mongodb_service.health_check()
            health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            health_info["last_check"] = datetime.utcnow().isoformat() + "Z"
            span.set_attribute("mongodb.status", health_info["status"])
            return health_info

    def _check_redis_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.redis_check") as span:
            if self.redis_service is None:
                return {"status": "not_configured"}
            try:
                start_time = time.time()
                health_info = self.redis_service.health_check()
                health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            except Exception as e:
                span.record_exception(e)
                health_info = {"status": "unhealthy", "error": str(e)}
            health_info["last_check"] = datetime.utcnow().isoformat() + "Z"
            span.set_attribute("redis.status", health_info["status"])
            return health_info

    def _check_ledger_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.ledger_check") as span:
            if self.chain_client is None or not hasattr(self.chain_client, "health_check"):
                return {"status": "not_configured"}
            try:
                start_time = time.time()
                health_info = self.chain_client.health_check()
                health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            except Exception as e:
                span.record_exception(e)
                health_info = {"status": "unhealthy", "error": str(e)}
            health_info["last_check"] = datetime.utcnow().isoformat() + "Z"
            span.set_attribute("ledger.status", health_info["status"])
            return health_info

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Get basic system performance metrics."""
        try:
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')

            return {
                "cpu_percent": psutil.cpu_percent(interval=0.1),
                "memory": {
                    "used_mb": round(memory.used / 1024 / 1024, 2),
                    "total_mb": round(memory.total / 1024 / 1024, 2),
                    "percent": memory.percent
                },
                "disk": {
                    "used_gb": round(disk.used / 1024 / 1024 / 1024, 2),
                    "total_gb": round(disk.total / 1024 / 1024 / 1024, 2),
                    "percent": round((disk.used / disk.total) * 100, 2)
                },
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except Exception as e:
            return {
                "error": f"Failed to collect system metrics: {str(e)}"
            }

    def _get_process_uptime(self) -> Dict[str, Any]:
        try:
            process = psutil.Process(os.getpid())
            create_time = process.create_time()
            return {
                "uptime_seconds": round(time.time() - create_time, 2),
                "started_at": datetime.fromtimestamp(create_time).isoformat() + "Z",
                "process_id": os.getpid()
            }
        except Exception as e:
            return {"error": f"Failed to get uptime: {str(e)}"}

    @staticmethod
    def _determine_overall_status(primary_status: str, optional_statuses: List[str]) -> str:
        """Unhealthy without MongoDB, degraded when an optional dependency is down."""
        if primary_status != "healthy":
            return "unhealthy"
        if all(status in ("healthy", "not_configured") for status in optional_statuses):
            return "healthy"
        return "degraded"
