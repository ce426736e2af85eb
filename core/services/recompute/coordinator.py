from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future
from datetime import date, datetime, timezone
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.events.domain_events import (
    CapacityEvents,
    ConflictEvent,
    RecomputationFailed,
    capacity_events,
)
from core.exceptions import (
    DomainError,
    LeaseExpiredError,
    LockTimeoutError,
    RecomputationError,
)
from core.interfaces import LockLease, LockTicket, ResourceLockProvider
from core.models import RecomputationState, ResourceConflict
from core.services.capacity.calendar import CapacityCalendar
from core.services.conflicts.aggregator import IntervalAggregator, validate_range
from core.services.conflicts.classifier import classify
from core.services.conflicts.lifecycle import (
    ConflictChange,
    ConflictLifecycleManager,
    DayDecision,
    ReconcileOutcome,
)
from core.services.conflicts.policy import CapacitySettingsProvider
from core.services.recompute.models import (
    RecomputationRun,
    RecomputeRepositories,
    RecomputeRequest,
    RecomputeResult,
)
from core.services.recompute.policy import RecomputePolicy

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]
RepositoriesFactory = Callable[[Session], RecomputeRepositories]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _conflict_event(change: ConflictChange) -> ConflictEvent:
    conflict = change.conflict
    return ConflictEvent(
        conflict_id=conflict.id,
        resource_id=conflict.resource_id,
        conflict_date=conflict.conflict_date,
        state=change.state,
        severity=conflict.severity.value,
        total_allocation=conflict.total_allocation,
        resolved_by_user_id=conflict.resolved_by_user_id,
    )


class RecomputationCoordinator:
    """
    Re-derives conflict state for one resource and date span at a time.
    Work for one resource is serialized through the lock provider in arrival
    order; different resources never wait on each other. Every run uses its
    own session and commits the whole span at once, so readers never see a
    partially reconciled resource.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        repositories_factory: RepositoriesFactory,
        locks: ResourceLockProvider,
        settings_provider: CapacitySettingsProvider,
        *,
        lifecycle: ConflictLifecycleManager | None = None,
        policy: RecomputePolicy | None = None,
        events: CapacityEvents | None = None,
        executor: Executor | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._session_factory = session_factory
        self._repositories_factory = repositories_factory
        self._locks = locks
        self._settings = settings_provider
        self._lifecycle = lifecycle or ConflictLifecycleManager()
        self._policy = policy or RecomputePolicy()
        self._events = events or capacity_events
        self._executor = executor
        self._clock = clock

    @property
    def policy(self) -> RecomputePolicy:
        return self._policy

    @property
    def lifecycle(self) -> ConflictLifecycleManager:
        return self._lifecycle

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def recompute(self, request: RecomputeRequest) -> RecomputeResult:
        validate_range(request.range_start, request.range_end)
        ticket = self._locks.reserve(request.resource_id)
        return self._execute(request, ticket)

    def submit(self, request: RecomputeRequest) -> "Future[RecomputeResult]":
        """
        Queue a recomputation. The lock reservation is taken before returning,
        so requests for one resource run in submission order even on a pool.
        Waiting on the future with a timeout never cancels the run.
        """
        validate_range(request.range_start, request.range_end)
        ticket = self._locks.reserve(request.resource_id)
        if self._executor is None:
            future: Future[RecomputeResult] = Future()
            try:
                future.set_result(self._execute(request, ticket))
            except Exception as exc:
                future.set_exception(exc)
            return future
        try:
            return self._executor.submit(self._execute, request, ticket)
        except RuntimeError:
            self._locks.cancel(ticket)
            raise

    def schedule(self, request: RecomputeRequest) -> RecomputeResult | "Future[RecomputeResult]":
        if self._executor is not None:
            return self.submit(request)
        return self.recompute(request)

    def recompute_all(self, range_start: date, range_end: date) -> dict[str, RecomputeResult | DomainError]:
        """Sweep every resource with bookings or open conflicts in the span."""
        validate_range(range_start, range_end)
        session = self._session_factory()
        try:
            repos = self._repositories_factory(session)
            resource_ids = set(repos.allocations.resource_ids_in_range(range_start, range_end))
            resource_ids.update(repos.conflicts.resource_ids_with_unresolved(range_start, range_end))
        finally:
            session.close()

        results: dict[str, RecomputeResult | DomainError] = {}
        for resource_id in sorted(resource_ids):
            request = RecomputeRequest(resource_id, range_start, range_end, reason="sweep")
            try:
                results[resource_id] = self.recompute(request)
            except (LockTimeoutError, RecomputationError) as exc:
                # already logged and published as recomputation_failed
                results[resource_id] = exc
        failed = sum(1 for value in results.values() if isinstance(value, DomainError))
        logger.info(
            "Conflict sweep %s..%s finished: resources=%s failed=%s",
            range_start,
            range_end,
            len(results),
            failed,
        )
        return results

    def resolve_conflict(self, conflict_id: str, user_id: str, note: str | None = None) -> ResourceConflict:
        """Manual resolution, under the same per-resource lock as recomputation."""
        session = self._session_factory()
        try:
            conflict = self._repositories_factory(session).conflicts.get(conflict_id)
        finally:
            session.close()
        if conflict is None:
            # lets the lifecycle manager raise the canonical not-found error
            resource_key = conflict_id
        else:
            resource_key = conflict.resource_id

        with self._locks.held(resource_key, self._policy.lock_timeout_seconds) as lease:
            session = self._session_factory()
            try:
                repos = self._repositories_factory(session)
                resolved = self._lifecycle.resolve(repos.conflicts, conflict_id, user_id, note, self._clock())
                session.flush()
                self._ensure_held(lease)
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        logger.info("Conflict %s resolved by user %s", conflict_id, resolved.resolved_by_user_id)
        self._events.publish_conflict(_conflict_event(ConflictChange(resolved, "resolved")))
        return resolved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(self, request: RecomputeRequest, ticket: LockTicket) -> RecomputeResult:
        last_error: Exception | None = None
        attempts = self._policy.max_attempts
        for attempt in range(1, attempts + 1):
            run = RecomputationRun(request, attempt)
            try:
                outcome = self._run_once(run, ticket)
            except LockTimeoutError as exc:
                exc.request = request
                logger.warning(
                    "Recomputation %s for resource %s timed out waiting for lock",
                    request.request_id,
                    request.resource_id,
                )
                self._publish_failure(request, exc, attempt)
                raise
            except (SQLAlchemyError, LeaseExpiredError) as exc:
                last_error = exc
                logger.warning(
                    "Recomputation %s for resource %s failed on attempt %s/%s: %s",
                    request.request_id,
                    request.resource_id,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    time.sleep(self._policy.backoff_for(attempt))
                    ticket = self._locks.reserve(request.resource_id)
                continue
            except Exception as exc:
                logger.exception(
                    "Recomputation %s for resource %s failed", request.request_id, request.resource_id
                )
                self._publish_failure(request, exc, attempt)
                raise
            return self._finish(request, run, outcome)

        error = RecomputationError(
            f"Recomputation for resource {request.resource_id} "
            f"{request.range_start}..{request.range_end} failed after {attempts} attempts.",
            request=request,
        )
        logger.error("%s Last error: %s", error, last_error)
        self._publish_failure(request, error, attempts)
        raise error from last_error

    def _run_once(self, run: RecomputationRun, ticket: LockTicket) -> ReconcileOutcome:
        request = run.request
        try:
            lease = self._locks.wait(ticket, self._policy.lock_timeout_seconds)
        except LockTimeoutError as exc:
            run.fail(exc)
            raise
        run.advance(RecomputationState.LOCKED)
        session = self._session_factory()
        try:
            repos = self._repositories_factory(session)
            resource = repos.resources.get(request.resource_id)
            settings = self._settings.for_organization(
                resource.organization_id if resource is not None else None,
                repos.org_settings,
            )

            run.advance(RecomputationState.AGGREGATING)
            loads = IntervalAggregator(repos.allocations, settings.weights).aggregate(
                request.resource_id, request.range_start, request.range_end
            )
            capacities = CapacityCalendar(
                repos.capacity, repos.resources, settings.baseline_hours_per_day
            ).capacity_for_range(request.resource_id, request.range_start, request.range_end)

            run.advance(RecomputationState.CLASSIFYING)
            decisions = [
                DayDecision(
                    day=day,
                    load=load,
                    capacity=capacities[day],
                    classification=classify(load.total, capacities[day], settings.bands),
                )
                for day, load in sorted(loads.items())
            ]

            run.advance(RecomputationState.RECONCILING)
            outcome = self._lifecycle.reconcile(
                repos.conflicts,
                request.resource_id,
                request.range_start,
                request.range_end,
                decisions,
                self._clock(),
            )
            session.flush()
            self._ensure_held(lease)
            session.commit()
            run.advance(RecomputationState.DONE)
            return outcome
        except Exception as exc:
            session.rollback()
            run.fail(exc)
            raise
        finally:
            session.close()
            self._locks.release(lease)

    def _ensure_held(self, lease: LockLease) -> None:
        if not self._locks.is_held(lease):
            raise LeaseExpiredError(
                f"Lock lease on resource {lease.key} expired before commit."
            )

    def _finish(
        self, request: RecomputeRequest, run: RecomputationRun, outcome: ReconcileOutcome
    ) -> RecomputeResult:
        events = [_conflict_event(change) for change in outcome.changes]
        result = RecomputeResult(
            request=request,
            state=run.state,
            attempts=run.attempt,
            days_evaluated=outcome.days_evaluated,
            conflicting_days=outcome.conflicting_days,
            suppressed_days=outcome.suppressed_days,
            created=outcome.count("created"),
            updated=outcome.count("updated"),
            reopened=outcome.count("reopened"),
            resolved=outcome.count("resolved"),
            events=events,
            history=list(run.history),
        )
        logger.debug(
            "Recomputation %s for resource %s done (%s days, %s conflicting)",
            request.request_id,
            request.resource_id,
            result.days_evaluated,
            result.conflicting_days,
        )
        for event in events:
            self._events.publish_conflict(event)
        return result

    def _publish_failure(self, request: RecomputeRequest, error: Exception, attempts: int) -> None:
        self._events.recomputation_failed.emit(
            RecomputationFailed(
                resource_id=request.resource_id,
                range_start=request.range_start,
                range_end=request.range_end,
                error_code=getattr(error, "code", error.__class__.__name__),
                message=str(error),
                attempts=attempts,
                retryable=bool(getattr(error, "retryable", False)),
            )
        )


__all__ = ["RecomputationCoordinator"]
