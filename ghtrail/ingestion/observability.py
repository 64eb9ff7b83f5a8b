"""Structured log events for ingestion runs and label timeline replays.

Every line starts with a bracketed event type followed by ``key=value``
pairs so log aggregators can parse run health without a metrics backend.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

import msgspec
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from ghtrail.config import ConfigError
from ghtrail.github.errors import GitHubAPIError, GitHubConfigError
from ghtrail.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from ghtrail.issues.timeline import ReplayResult

    from .pipeline import IngestionRunResult

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class IngestionEventType(enum.StrEnum):
    """Structured log event types for ingestion observability."""

    RUN_STARTED = "ingestion.run.started"
    RUN_COMPLETED = "ingestion.run.completed"
    RUN_FAILED = "ingestion.run.failed"
    RUN_SKIPPED = "ingestion.run.skipped"
    FEED_FETCHED = "ingestion.feed.fetched"
    EVENT_FAILED = "ingestion.event.failed"
    TIMELINE_REPLAYED = "timeline.replay.completed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True, slots=True)
class IngestionRunContext:
    """Shared context for a single ingestion run."""

    run_id: str
    started_at: dt.datetime
    usernames: tuple[str, ...] = ()
    monitored_repos: tuple[str, ...] = ()


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (msgspec.ValidationError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (ConfigError, ErrorCategory.CONFIGURATION),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    # Server-side GitHub failures are worth retrying on the next trigger.
    if isinstance(exc, GitHubAPIError):
        if (
            exc.status_code is not None
            and exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class IngestionEventLogger:
    """Emit structured ingestion events through femtologging.

    Events are emitted at INFO level for progress, WARNING for skipped runs
    and per-event failures, and ERROR for failed runs.
    """

    def log_run_started(self, context: IngestionRunContext) -> None:
        """Log ingestion run start."""
        log_info(
            logger,
            "[%s] run_id=%s started_at=%s usernames=%d monitored_repos=%d",
            IngestionEventType.RUN_STARTED,
            context.run_id,
            context.started_at.isoformat(),
            len(context.usernames),
            len(context.monitored_repos),
        )

    def log_feed_fetched(
        self, context: IngestionRunContext, source: str, events: int
    ) -> None:
        """Log how many events one user or repository feed contributed."""
        log_info(
            logger,
            "[%s] run_id=%s source=%s events=%d",
            IngestionEventType.FEED_FETCHED,
            context.run_id,
            source,
            events,
        )

    def log_event_failed(
        self, context: IngestionRunContext, event_id: str, error: BaseException
    ) -> None:
        """Log a single event that could not be persisted."""
        log_warning(
            logger,
            "[%s] run_id=%s event_id=%s error_type=%s error_category=%s "
            "error_message=%s",
            IngestionEventType.EVENT_FAILED,
            context.run_id,
            event_id,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_run_completed(
        self,
        context: IngestionRunContext,
        result: IngestionRunResult,
        duration: dt.timedelta,
    ) -> None:
        """Log successful ingestion run completion with counts."""
        log_info(
            logger,
            "[%s] run_id=%s duration_seconds=%.3f events_fetched=%d "
            "events_filtered=%d events_duplicate=%d events_created=%d "
            "events_failed=%d issues_reconciled=%d actors_enriched=%d "
            "sub_events_applied=%d",
            IngestionEventType.RUN_COMPLETED,
            context.run_id,
            duration.total_seconds(),
            result.events_fetched,
            result.events_filtered,
            result.events_duplicate,
            result.events_created,
            result.events_failed,
            result.issues_reconciled,
            result.actors_enriched,
            result.sub_events_applied,
        )

    def log_run_failed(
        self,
        context: IngestionRunContext,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log failed ingestion run with error categorization."""
        log_error(
            logger,
            "[%s] run_id=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            IngestionEventType.RUN_FAILED,
            context.run_id,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_run_skipped(self, job: str) -> None:
        """Log a trigger dropped because another run is still active."""
        log_warning(
            logger,
            "[%s] job=%s reason=run_in_progress",
            IngestionEventType.RUN_SKIPPED,
            job,
        )

    def log_timeline_replayed(self, source: str, result: ReplayResult) -> None:
        """Log the outcome of one label timeline replay."""
        log_info(
            logger,
            "[%s] source=%s sub_events=%d applied=%d skipped=%d failed=%d",
            IngestionEventType.TIMELINE_REPLAYED,
            source,
            result.received,
            result.applied,
            result.skipped,
            result.failed,
        )
