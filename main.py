# main.py
from __future__ import annotations

import logging
import os
import sys
from datetime import date, timedelta

from core.exceptions import DomainError
from infra.db.base import SessionLocal, db_url
from infra.logging_config import setup_logging
from infra.migrate import run_migrations
from infra.operational_support import bind_trace_id
from infra.services import build_service_graph, install_support_subscribers

logger = logging.getLogger(__name__)


def _sweep_days() -> int:
    raw = (os.getenv("CE_SWEEP_DAYS", "30") or "30").strip()
    try:
        days = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid CE_SWEEP_DAYS=%r; using 30", raw)
        return 30
    return max(1, days)


def run_sweep(today: date | None = None) -> int:
    """Recompute conflicts for every booked resource over the sweep horizon."""
    start = today or date.today()
    end = start + timedelta(days=_sweep_days() - 1)
    session = SessionLocal()
    try:
        graph = build_service_graph(session)
        with bind_trace_id():
            results = graph.recomputation_coordinator.recompute_all(start, end)
    finally:
        session.close()
    failed = [rid for rid, outcome in results.items() if isinstance(outcome, DomainError)]
    for resource_id in failed:
        logger.error("Sweep left resource %s stale: %s", resource_id, results[resource_id])
    return 1 if failed else 0


def main() -> int:
    setup_logging()
    run_migrations(db_url)
    install_support_subscribers()
    return run_sweep()


if __name__ == "__main__":
    sys.exit(main())
