"""
Health Check Service

Reports the state of MongoDB, Redis and the canonical geography index,
plus basic process host metrics.
"""

import os
import time
import psutil
from typing import Dict, Any, List, Optional
from opentelemetry import trace

from models.base import utc_now
from services.mongodb import MongoDBService
from services.redis import RedisService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "barangay-onboarding-api"
SERVICE_VERSION = "1.0.0"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(
        self,
        mongodb_service: MongoDBService,
        redis_service: Optional[RedisService] = None,
        geography_index=None
    ):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.geography_index = geography_index
        self.service_version = SERVICE_VERSION

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including all dependencies and metrics."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            dependencies = {
                "mongodb": self._check_mongodb_health(),
                "redis": self._check_redis_health(),
                "geography": self._check_geography_index()
            }

            # Redis only backs the token blocklist, so an unconfigured Redis is fine
            overall_status = self._determine_overall_status([
                d["status"] for d in dependencies.values() if d["status"] != "unavailable"
            ])

            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": dependencies["mongodb"]["status"],
                "health.redis_status": dependencies["redis"]["status"]
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utc_now().isoformat(),
                "response_time_ms": response_time_ms,
                "dependencies": dependencies,
                "system_metrics": self._get_system_metrics(),
                "configuration": self._get_configuration_status()
            }

    def _check_mongodb_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            result = self.mongodb_service.health_check()
            result["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            span.set_attribute("mongodb.status", result["status"])
            return result

    def _check_redis_health(self) -> Dict[str, Any]:
        if self.redis_service is None:
            return {"status": "unavailable", "message": "Redis not configured"}
        with tracer.start_as_current_span("health.redis_check") as span:
            result = self.redis_service.health_check()
            span.set_attribute("redis.status", result["status"])
            return result

    def _check_geography_index(self) -> Dict[str, Any]:
        if self.geography_index is None:
            return {"status": "unhealthy", "error": "Geography index not loaded"}
        return {
            "status": "healthy",
            "units": len(self.geography_index),
            "provinces": len(self.geography_index.provinces())
        }

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

    def _get_configuration_status(self) -> Dict[str, Any]:
        """Get configuration validation status."""
        return {
            "mongodb_uri_configured": bool(os.getenv('MONGODB_URI')),
            "redis_configured": bool(os.getenv('REDIS_URL')),
            "adjudicator_configured": bool(os.getenv('ADJUDICATOR_URL')),
            "jwt_keys_configured": bool(os.getenv('JWT_PRIVATE_KEY') and os.getenv('JWT_PUBLIC_KEY')),
            "environment": os.getenv('ENVIRONMENT', 'development')
        }

    def _determine_overall_status(self, dependency_statuses: List[str]) -> str:
        """Determine overall system status based on dependency health."""
        if all(status == "healthy" for status in dependency_statuses):
            return "healthy"
        elif any(status == "healthy" for status in dependency_statuses):
            return "degraded"
        else:
            return "unhealthy"
