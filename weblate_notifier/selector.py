"""
Selection of the changes worth notifying.

Applies project, component and language filters, removes duplicates,
and keeps the newest changes inside the recency window.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from weblate_notifier.changes import ChangeRecord
from weblate_notifier.config import ProjectConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """
    Result of selecting changes for one project.

    Attributes
    ----------
    changes : tuple[ChangeRecord, ...]
        Changes to notify, newest first.
    recent_count : int
        Number of changes inside the recency window before truncation.
    total_seen : int
        Number of changes fetched from the source.
    is_fallback : bool
        True when ``changes`` holds the latest known change because
        nothing was recent.
    """

    changes: tuple[ChangeRecord, ...] = ()
    recent_count: int = 0
    total_seen: int = 0
    is_fallback: bool = False


def matches_component(record: ChangeRecord, project: ProjectConfig) -> bool:
    """
    Check that a change belongs to the project and an allowed component.

    A change without an embedded project slug is kept.
    """
    slug = record.project_slug
    if slug is not None and slug != project.slug:
        logger.debug("Change %s rejected: belongs to project '%s'", record.id, slug)
        return False

    if project.components:
        name = record.component_name
        if name is None:
            logger.debug("Change %s rejected: unknown component", record.id)
            return False
        lowered = name.lower()
        if not any(allowed.lower() in lowered for allowed in project.components):
            logger.debug("Change %s rejected: component '%s' not allowed", record.id, name)
            return False

    return True


def matches_language(record: ChangeRecord, project: ProjectConfig) -> bool:
    """
    Check that a change is in an allowed language.

    Changes whose language cannot be determined are kept. A region-tagged
    code also passes when its base language is allowed.
    """
    if not project.languages:
        return True

    code = record.language_code
    if code is None:
        return True

    allowed = {language.lower().replace("-", "_") for language in project.languages}
    normalized = code.lower().replace("-", "_")
    if normalized in allowed or normalized.split("_")[0] in allowed:
        return True

    logger.debug("Change %s rejected: language '%s' not allowed", record.id, code)
    return False


def deduplicate(records: Iterable[ChangeRecord]) -> list[ChangeRecord]:
    """Remove changes with an already seen identifier, keeping the first."""
    seen: set[str] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def select_changes(
    records: Sequence[ChangeRecord],
    reference_time: datetime,
    window: timedelta,
    project: ProjectConfig,
    max_notify: int,
    emit_fallback_when_empty: bool = True,
) -> Selection:
    """
    Select the changes of a project to notify.

    Parameters
    ----------
    records : Sequence[ChangeRecord]
        Changes as fetched from the source.
    reference_time : datetime
        The time recency is measured against (timezone-aware).
    window : timedelta
        Maximum age of a change to count as recent.
    project : ProjectConfig
        The project whose filters apply.
    max_notify : int
        Maximum number of changes returned.
    emit_fallback_when_empty : bool
        Return the latest known change when nothing is recent.

    Returns
    -------
    Selection
        The selected changes, newest first.
    """
    filtered = [
        record
        for record in records
        if matches_component(record, project) and matches_language(record, project)
    ]
    ordered = sorted(deduplicate(filtered), key=lambda r: r.timestamp, reverse=True)
    recent = [r for r in ordered if reference_time - r.timestamp <= window]

    logger.debug(
        "Project '%s': %d fetched, %d after filters, %d recent",
        project.slug,
        len(records),
        len(ordered),
        len(recent),
    )

    if recent:
        return Selection(
            changes=tuple(recent[:max_notify]),
            recent_count=len(recent),
            total_seen=len(records),
        )

    if emit_fallback_when_empty and ordered:
        return Selection(
            changes=(ordered[0],),
            recent_count=0,
            total_seen=len(records),
            is_fallback=True,
        )

    return Selection(total_seen=len(records))
