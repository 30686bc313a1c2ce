"""
Single poll-and-notify pass over the watched projects.

Fetches, selects and notifies the changes of every project in turn,
within a soft execution deadline, and folds the per-project results
into a run summary.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from weblate_notifier.config import AppConfig, Credentials, ProjectConfig
from weblate_notifier.exceptions import DeadlineExceeded, FetchError
from weblate_notifier.selector import select_changes
from weblate_notifier.sources import ChangeSource, create_source
from weblate_notifier.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectResult:
    """
    Outcome of processing one project.

    Attributes
    ----------
    project : str
        Display name of the project.
    success : bool
        False when fetching failed, a message could not be sent,
        or the project was skipped.
    changes_sent : int
        Number of messages delivered.
    recent_count : int
        Number of changes inside the recency window.
    total_seen : int
        Number of changes fetched.
    error : str | None
        What went wrong, if anything.
    """

    project: str
    success: bool
    changes_sent: int = 0
    recent_count: int = 0
    total_seen: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "success": self.success,
            "changes_sent": self.changes_sent,
            "recent_count": self.recent_count,
            "total_seen": self.total_seen,
            "error": self.error,
        }


@dataclass(frozen=True)
class RunSummary:
    """
    Aggregated outcome of a run.

    Attributes
    ----------
    total_notifications : int
        Messages delivered across all projects.
    total_recent_changes : int
        Recent changes observed across all projects.
    projects : tuple[ProjectResult, ...]
        Per-project results in processing order.
    execution_time_ms : int
        Wall-clock duration of the run.
    """

    total_notifications: int
    total_recent_changes: int
    projects: tuple[ProjectResult, ...]
    execution_time_ms: int

    @classmethod
    def from_results(cls, results: Sequence[ProjectResult], execution_time_ms: int) -> "RunSummary":
        """Fold per-project results into a summary."""
        return cls(
            total_notifications=sum(r.changes_sent for r in results),
            total_recent_changes=sum(r.recent_count for r in results),
            projects=tuple(results),
            execution_time_ms=execution_time_ms,
        )

    @property
    def message(self) -> str:
        return (
            f"{self.total_notifications} notification(s) sent "
            f"({len(self.projects)} project(s) checked)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "total_notifications": self.total_notifications,
            "total_recent_changes": self.total_recent_changes,
            "projects": [r.to_dict() for r in self.projects],
            "execution_time_ms": self.execution_time_ms,
            "message": self.message,
        }


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class RunCoordinator:
    """
    Runs one pass over a list of projects.

    Failures of one project are recorded in its result and never stop
    the remaining projects. Once the soft deadline has passed, the
    remaining projects are skipped.
    """

    def __init__(
        self,
        config: AppConfig,
        notifier: TelegramNotifier,
        api_key: str | None = None,
        sources: Mapping[str, ChangeSource] | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize the coordinator.

        Parameters
        ----------
        config : AppConfig
            Application configuration.
        notifier : TelegramNotifier
            Client used to deliver messages.
        api_key : str | None
            Optional Weblate API key for the API source.
        sources : Mapping[str, ChangeSource] | None
            Prebuilt sources by kind; missing kinds are created on demand.
        clock : Callable[[], float]
            Monotonic clock measuring the execution budget.
        now : Callable[[], datetime]
            Reference time for recency.
        """
        self.config = config
        self.notifier = notifier
        self.api_key = api_key
        self._sources: dict[str, ChangeSource] = dict(sources or {})
        self._clock = clock
        self._now = now

    def _source_for(self, project: ProjectConfig) -> ChangeSource:
        kind = project.source or self.config.defaults.source
        if kind not in self._sources:
            defaults = self.config.defaults
            self._sources[kind] = create_source(
                kind,
                base_url=defaults.base_url,
                timeout=defaults.request_timeout,
                max_retries=defaults.max_retries,
                user_agent=defaults.user_agent,
                proxy_url=defaults.proxy,
                api_key=self.api_key,
                page_size=defaults.page_size,
            )
        return self._sources[kind]

    def _check_deadline(self, started: float) -> None:
        elapsed = self._clock() - started
        if elapsed > self.config.defaults.soft_deadline:
            raise DeadlineExceeded(
                f"Deadline exceeded after {elapsed:.1f}s, project skipped"
            )

    async def run(self, projects: Sequence[ProjectConfig] | None = None) -> RunSummary:
        """
        Process projects in order and summarize the outcome.

        Parameters
        ----------
        projects : Sequence[ProjectConfig] | None
            Projects to process, defaults to the configured ones.

        Returns
        -------
        RunSummary
            Totals and per-project results.
        """
        if projects is None:
            projects = self.config.projects

        started = self._clock()
        results: list[ProjectResult] = []

        for index, project in enumerate(projects):
            try:
                self._check_deadline(started)
            except DeadlineExceeded as e:
                remaining = projects[index:]
                logger.warning("%s: skipping %d project(s)", e, len(remaining))
                results.extend(
                    ProjectResult(project=p.display_name, success=False, error=str(e))
                    for p in remaining
                )
                break

            logger.info("Checking project: %s (%s)", project.display_name, project.slug)
            try:
                results.append(await self._check_project(project))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Error processing project '%s'", project.slug)
                results.append(
                    ProjectResult(project=project.display_name, success=False, error=str(e))
                )

            # Pause between projects
            if index < len(projects) - 1 and self.config.defaults.project_delay > 0:
                await asyncio.sleep(self.config.defaults.project_delay)

        execution_time_ms = int((self._clock() - started) * 1000)
        summary = RunSummary.from_results(results, execution_time_ms)
        logger.info("Run completed in %dms: %s", execution_time_ms, summary.message)
        return summary

    async def _check_project(self, project: ProjectConfig) -> ProjectResult:
        """Fetch, select and notify the changes of one project."""
        defaults = self.config.defaults
        source = self._source_for(project)

        try:
            changes = await source.fetch_changes(project)
        except FetchError as e:
            logger.warning("Failed to fetch changes for '%s': %s", project.slug, e)
            return ProjectResult(project=project.display_name, success=False, error=str(e))

        window_minutes = project.window_minutes or defaults.window_minutes
        max_notify = project.max_notify or defaults.max_notify
        if project.emit_fallback_when_empty is not None:
            emit_fallback = project.emit_fallback_when_empty
        else:
            emit_fallback = defaults.emit_fallback_when_empty

        selection = select_changes(
            changes,
            reference_time=self._now(),
            window=timedelta(minutes=window_minutes),
            project=project,
            max_notify=max_notify,
            emit_fallback_when_empty=emit_fallback,
        )

        logger.info(
            "%s: %d recent change(s) in the last %d minutes, notifying %d%s",
            project.display_name,
            selection.recent_count,
            window_minutes,
            len(selection.changes),
            " (latest known)" if selection.is_fallback else "",
        )

        outcomes = await self.notifier.send_changes(
            selection.changes, project, selection.is_fallback
        )
        errors = [o.error or "unknown error" for o in outcomes if not o.sent]

        return ProjectResult(
            project=project.display_name,
            success=not errors,
            changes_sent=sum(1 for o in outcomes if o.sent),
            recent_count=selection.recent_count,
            total_seen=selection.total_seen,
            error="; ".join(errors) if errors else None,
        )

    async def close(self) -> None:
        """Close all sources."""
        for source in self._sources.values():
            await source.close()


async def run_check(config: AppConfig, credentials: Credentials) -> RunSummary:
    """
    Run one pass over the configured projects.

    Parameters
    ----------
    config : AppConfig
        Application configuration.
    credentials : Credentials
        Telegram and Weblate credentials.

    Returns
    -------
    RunSummary
        Totals and per-project results.
    """
    notifier = TelegramNotifier(
        credentials,
        config.delivery,
        proxy_url=config.defaults.proxy,
        display_timezone=config.defaults.display_timezone,
    )
    coordinator = RunCoordinator(config, notifier, api_key=credentials.api_key)
    try:
        return await coordinator.run()
    finally:
        await coordinator.close()
        await notifier.close()
