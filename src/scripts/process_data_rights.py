"""Process pending data rights requests.

Picks up ACCESS and ERASURE requests that are pending (or were left in
'processing' by an interrupted run), oldest first, and completes them.
Each request runs in its own transaction: a failure is logged and rolled
back without stopping the batch. Overdue open requests are reported at
the end.

Usage:
    python -m src.scripts.process_data_rights
    python -m src.scripts.process_data_rights --limit 50
    python -m src.scripts.process_data_rights --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from src.config import Settings, get_settings
from src.data_rights.service import DataRightsService
from src.database import close_db, init_db, session_scope
from src.models.data_rights_request import RequestType
from src.telemetry import configure_logging

log = structlog.get_logger(__name__)

PROCESSABLE_TYPES = (RequestType.ACCESS, RequestType.ERASURE)


@dataclass
class BatchReport:
    processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    overdue: list[str] = field(default_factory=list)


async def _process_one(settings: Settings, request_id: str, request_type: str) -> None:
    async with session_scope() as db:
        service = DataRightsService(db, settings)
        if request_type == RequestType.ACCESS:
            await service.process_access_request(request_id)
        else:
            await service.process_erasure_request(request_id)


async def process_batch(
    settings: Settings,
    *,
    limit: int | None = None,
    dry_run: bool = False,
) -> BatchReport:
    """Process one batch of pending requests; the database must be initialized."""
    report = BatchReport()

    async with session_scope() as db:
        service = DataRightsService(db, settings)
        pending = [
            (r.id, r.request_type)
            for r in await service.list_pending_requests(PROCESSABLE_TYPES, limit=limit)
        ]
    log.info("data_rights_job.batch_loaded", pending=len(pending), dry_run=dry_run)

    for request_id, request_type in pending:
        if dry_run:
            log.info("data_rights_job.would_process", request_id=request_id, type=request_type)
            continue
        try:
            await _process_one(settings, request_id, request_type)
        except Exception as exc:
            report.failed.append(request_id)
            log.error(
                "data_rights_job.request_failed",
                request_id=request_id,
                type=request_type,
                error=str(exc),
                exc_info=True,
            )
        else:
            report.processed.append(request_id)

    async with session_scope() as db:
        overdue = await DataRightsService(db, settings).list_overdue_requests()
        report.overdue = [r.id for r in overdue]
    for record in overdue:
        log.warning(
            "data_rights_job.request_overdue",
            request_id=record.id,
            type=record.request_type,
            status=record.status,
            deadline=record.response_deadline.isoformat(),
        )

    log.info(
        "data_rights_job.batch_complete",
        processed=len(report.processed),
        failed=len(report.failed),
        overdue=len(report.overdue),
    )
    return report


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--limit", type=int, default=None, help="Maximum requests to process")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List what would be processed without changing anything",
    )
    args = parser.parse_args(argv)
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be a positive integer")
    return args


async def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(json_logs=settings.is_prod, log_level=settings.log_level_value)

    init_db(settings, one_shot=True)
    try:
        report = await process_batch(settings, limit=args.limit, dry_run=args.dry_run)
    finally:
        await close_db()
    return 1 if report.failed else 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
