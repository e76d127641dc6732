"""
Infrastructure components: component health checks and the health router.
"""

from __future__ import annotations

from src.infra.health import (
    ComponentHealth,
    ComponentStatus,
    HealthCheck,
    HealthCheckRouter,
    SystemHealth,
)

__all__ = [
    "ComponentHealth",
    "ComponentStatus",
    "HealthCheck",
    "HealthCheckRouter",
    "SystemHealth",
]
