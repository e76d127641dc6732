"""
Component health checks and the health router.

Endpoints:
- /health: Full component report (503 when unhealthy)
- /health/live: Liveness probe (is the process running?)
- /health/ready: Readiness probe (can the service handle requests?)

Components checked:
- database: PostgreSQL connection and query execution
- redis: Redis PING
- solana: RPC node reachable (getVersion)
- programs: every configured program id is an executable account
- migrations: alembic_version has a row

Health status levels:
- healthy: All systems operational
- degraded: A non-database component is failing
- unhealthy: The database is failing

Example response:
    {
        "status": "healthy",
        "timestamp": "2026-02-16T12:34:56Z",
        "components": {
            "database": {"status": "healthy", "latency_ms": 5.2},
            "redis": {"status": "healthy", "latency_ms": 1.1},
            "solana": {"status": "healthy", "latency_ms": 150.3},
            "programs": {"status": "unknown", "details": {"message": "No program ids configured"}},
            "migrations": {"status": "healthy", "details": {"version": "001"}}
        }
    }
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import redis.asyncio as aioredis
import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.database import get_engine
from src.services.solana import SolanaRPCClient, SolanaRPCError

log = structlog.get_logger(__name__)

CRITICAL_COMPONENTS = ("database",)


class ComponentStatus(StrEnum):
    """Health status for individual components."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    """Health check result for a single component."""
    status: ComponentStatus
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


@dataclass
class SystemHealth:
    """Overall system health status."""
    status: ComponentStatus
    timestamp: str
    components: dict[str, ComponentHealth]

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": {
                name: {
                    "status": comp.status,
                    "latency_ms": comp.latency_ms,
                    "details": comp.details,
                    "error": comp.error,
                }
                for name, comp in self.components.items()
            },
        }


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class HealthCheck:
    """
    Orchestrates health checks for all system components.

    Example:
        health = HealthCheck(settings)
        result = await health.check_all()

        if result.status == ComponentStatus.UNHEALTHY:
            return 503, result.to_dict()
        return 200, result.to_dict()  # degraded still serves traffic
    """

    def __init__(
        self,
        settings: Settings,
        *,
        check_timeout: float = 5.0,
    ) -> None:
        self._settings = settings
        self._check_timeout = check_timeout

    async def check_all(self) -> SystemHealth:
        """Run all component health checks in parallel."""
        start = time.perf_counter()

        checks = {
            "database": self._check_database(),
            "redis": self._check_redis(),
            "solana": self._check_solana(),
            "programs": self._check_programs(),
            "migrations": self._check_migrations(),
        }
        results = await asyncio.gather(*checks.values(), return_exceptions=True)

        components = {
            name: result if isinstance(result, ComponentHealth) else self._error_health(result)
            for name, result in zip(checks, results, strict=True)
        }
        overall = self._aggregate_status(components)

        log.info(
            "health_check.completed",
            status=overall,
            duration_ms=_elapsed_ms(start),
            components={k: v.status for k, v in components.items()},
        )

        return SystemHealth(
            status=overall,
            timestamp=datetime.now(UTC).isoformat(),
            components=components,
        )

    async def check_liveness(self) -> bool:
        """Liveness probe: the process is up if it can answer at all."""
        return True

    async def check_readiness(self) -> tuple[bool, dict[str, bool]]:
        """
        Readiness probe: database healthy, migrations applied, and no
        configured program missing.
        """
        result = await self.check_all()
        checks = {
            "database": result.components["database"].status == ComponentStatus.HEALTHY,
            "migrations": result.components["migrations"].status == ComponentStatus.HEALTHY,
            "programs": result.components["programs"].status != ComponentStatus.UNHEALTHY,
        }
        return all(checks.values()), checks

    # ------------------------------------------------------------------ #
    # Component checks
    # ------------------------------------------------------------------ #

    async def _check_database(self) -> ComponentHealth:
        """Check PostgreSQL connection and query execution."""
        start = time.perf_counter()

        try:
            async with AsyncSession(get_engine()) as session:
                result = await asyncio.wait_for(
                    session.execute(text("SELECT 1")),
                    timeout=self._check_timeout,
                )
                _ = result.scalar()

            return ComponentHealth(
                status=ComponentStatus.HEALTHY,
                latency_ms=_elapsed_ms(start),
                details={"query": "SELECT 1"},
            )

        except TimeoutError:
            return ComponentHealth(
                status=ComponentStatus.UNHEALTHY,
                error="Database query timeout",
            )
        except Exception as exc:
            log.error("health_check.database_failed", error=str(exc))
            return ComponentHealth(status=ComponentStatus.UNHEALTHY, error=str(exc))

    async def _check_redis(self) -> ComponentHealth:
        """Check Redis connection and PING command."""
        start = time.perf_counter()
        password = self._settings.redis_password

        client = aioredis.Redis(
            host=self._settings.redis_host,
            port=self._settings.redis_port,
            db=self._settings.redis_db,
            password=password.get_secret_value() if password else None,
            socket_connect_timeout=self._check_timeout,
        )
        try:
            await asyncio.wait_for(client.ping(), timeout=self._check_timeout)
            return ComponentHealth(status=ComponentStatus.HEALTHY, latency_ms=_elapsed_ms(start))
        except TimeoutError:
            return ComponentHealth(status=ComponentStatus.DEGRADED, error="Redis PING timeout")
        except Exception as exc:
            log.warning("health_check.redis_failed", error=str(exc))
            return ComponentHealth(status=ComponentStatus.DEGRADED, error=str(exc))
        finally:
            await client.aclose()

    async def _check_solana(self) -> ComponentHealth:
        """Check the RPC node answers getVersion."""
        start = time.perf_counter()

        try:
            async with SolanaRPCClient(
                self._settings.solana_rpc_url, timeout=self._check_timeout
            ) as rpc:
                version = await rpc.get_version()
            return ComponentHealth(
                status=ComponentStatus.HEALTHY,
                latency_ms=_elapsed_ms(start),
                details={
                    "network": self._settings.solana_network,
                    "version": version.get("solana-core"),
                },
            )
        except SolanaRPCError as exc:
            log.warning("health_check.solana_failed", error=str(exc))
            return ComponentHealth(
                status=ComponentStatus.UNHEALTHY,
                error=str(exc),
                details={"network": self._settings.solana_network},
            )

    async def _check_programs(self) -> ComponentHealth:
        """Check every configured program account exists and is executable."""
        program_ids = self._settings.program_ids
        if not program_ids:
            return ComponentHealth(
                status=ComponentStatus.UNKNOWN,
                details={"message": "No program ids configured"},
            )

        start = time.perf_counter()
        try:
            async with SolanaRPCClient(
                self._settings.solana_rpc_url, timeout=self._check_timeout
            ) as rpc:
                deployed = await rpc.check_programs_deployed(program_ids)
        except SolanaRPCError as exc:
            log.warning("health_check.programs_failed", error=str(exc))
            return ComponentHealth(status=ComponentStatus.UNHEALTHY, error=str(exc))

        missing = sorted(name for name, ok in deployed.items() if not ok)
        return ComponentHealth(
            status=ComponentStatus.UNHEALTHY if missing else ComponentStatus.HEALTHY,
            latency_ms=_elapsed_ms(start),
            details={"deployed": deployed},
            error=f"Programs not deployed: {', '.join(missing)}" if missing else None,
        )

    async def _check_migrations(self) -> ComponentHealth:
        """Check Alembic has stamped a schema version."""
        try:
            async with AsyncSession(get_engine()) as session:
                result = await asyncio.wait_for(
                    session.execute(text("SELECT version_num FROM alembic_version")),
                    timeout=self._check_timeout,
                )
                version = result.scalar_one_or_none()
        except TimeoutError:
            return ComponentHealth(status=ComponentStatus.UNHEALTHY, error="Migration check timeout")
        except Exception as exc:
            log.warning("health_check.migrations_failed", error=str(exc))
            return ComponentHealth(status=ComponentStatus.UNHEALTHY, error=str(exc))

        if version is None:
            return ComponentHealth(
                status=ComponentStatus.UNHEALTHY,
                error="No migrations applied",
            )
        return ComponentHealth(status=ComponentStatus.HEALTHY, details={"version": version})

    def _error_health(self, exception: BaseException) -> ComponentHealth:
        """Convert exception to unhealthy component health."""
        return ComponentHealth(status=ComponentStatus.UNHEALTHY, error=str(exception))

    def _aggregate_status(self, components: dict[str, ComponentHealth]) -> ComponentStatus:
        """
        Rules:
        - A critical component (database) unhealthy -> UNHEALTHY
        - Any other component degraded or unhealthy -> DEGRADED
        - Otherwise -> HEALTHY (unknown components do not count)
        """
        for name in CRITICAL_COMPONENTS:
            comp = components.get(name)
            if comp and comp.status == ComponentStatus.UNHEALTHY:
                return ComponentStatus.UNHEALTHY

        failing = (ComponentStatus.DEGRADED, ComponentStatus.UNHEALTHY)
        if any(c.status in failing for c in components.values()):
            return ComponentStatus.DEGRADED

        return ComponentStatus.HEALTHY


# ------------------------------------------------------------------ #
# FastAPI Router
# ------------------------------------------------------------------ #


def HealthCheckRouter(settings: Settings | None = None) -> APIRouter:
    """Create the public health router (/health, /health/live, /health/ready)."""
    router = APIRouter(tags=["health"])

    if settings is None:
        settings = get_settings()

    checker = HealthCheck(settings)

    @router.get("/health/live", status_code=200)
    async def liveness() -> dict[str, str]:
        """Liveness probe: returns 200 while the process is running."""
        await checker.check_liveness()
        return {"status": "alive", "timestamp": datetime.now(UTC).isoformat()}

    @router.get("/health/ready", status_code=200)
    async def readiness() -> JSONResponse:
        """Readiness probe: 200 when the service can take traffic, else 503."""
        ready, checks = await checker.check_readiness()
        return JSONResponse(
            status_code=200 if ready else 503,
            content={
                "status": "ready" if ready else "not_ready",
                "timestamp": datetime.now(UTC).isoformat(),
                "checks": checks,
            },
        )

    @router.get("/health", status_code=200)
    async def detailed_health() -> JSONResponse:
        """Overall health plus the status of each component."""
        result = await checker.check_all()
        status_code = 503 if result.status == ComponentStatus.UNHEALTHY else 200
        return JSONResponse(status_code=status_code, content=result.to_dict())

    return router
