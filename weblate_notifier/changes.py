"""
Normalized Weblate change records.

Both change sources (JSON API and RSS export) produce ``ChangeRecord``
instances, so selection and formatting never know where a change came from.
"""

import calendar
import html
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from weblate_notifier.exceptions import ParseError

logger = logging.getLogger(__name__)

# Timestamp used when a change carries no parsable date
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# /api/components/<project>/<component>/, /translate/<project>/<component>/<lang>/, ...
_OBJECT_PATH_PATTERN = re.compile(
    r"/(?:components|translations|translate|projects)/([^/?#]+)(?:/([^/?#]+))?"
)
_LANGUAGE_PATTERN = re.compile(
    r"/(?:translations|translate|projects)/[^/?#]+/[^/?#]+/"
    r"([A-Za-z]{2}(?:[_-][A-Za-z]{2,4})?)(?:[/?#]|$)"
)


@dataclass(frozen=True)
class ChangeRecord:
    """
    A single change reported by Weblate.

    Attributes
    ----------
    id : str
        Identifier of the change, unique within one fetched batch.
    action_name : str
        Human-readable action, e.g. "Translation changed".
    target_text : str
        The translated text or comment involved in the change.
    timestamp : datetime
        When the change happened (timezone-aware).
    translation_ref : str
        URL of the translation the change belongs to.
    user_ref : str
        URL or name of the user who made the change.
    component_ref : str
        URL of the component the change belongs to.
    detail_url : str
        Link to the change details.
    """

    id: str
    action_name: str = ""
    target_text: str = ""
    timestamp: datetime = EPOCH
    translation_ref: str = ""
    user_ref: str = ""
    component_ref: str = ""
    detail_url: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "ChangeRecord":
        """
        Create a ChangeRecord from a Weblate ``/api/changes/`` result.

        Parameters
        ----------
        data : Mapping[str, Any]
            One element of the ``results`` list.

        Returns
        -------
        ChangeRecord
            Normalized change record.

        Raises
        ------
        ParseError
            If the record is not an object or has no identifier.
        """
        if not isinstance(data, Mapping):
            raise ParseError(f"Change record is not an object: {data!r}")

        change_id = data.get("id")
        if change_id is None or change_id == "":
            change_id = data.get("url")
        if change_id is None or change_id == "":
            raise ParseError("Change record has no identifier")

        return cls(
            id=str(change_id),
            action_name=_text(data.get("action_name")),
            target_text=_text(data.get("target")),
            timestamp=_timestamp_or_epoch(data.get("timestamp"), parse_iso_timestamp),
            translation_ref=_text(data.get("translation")),
            user_ref=_text(data.get("user")),
            component_ref=_text(data.get("component")),
            detail_url=_text(data.get("url")),
        )

    @classmethod
    def from_feedparser(cls, entry: Any) -> "ChangeRecord":
        """
        Create a ChangeRecord from a feedparser entry of the RSS export.

        Parameters
        ----------
        entry : Any
            A feedparser entry object.

        Returns
        -------
        ChangeRecord
            Normalized change record.

        Raises
        ------
        ParseError
            If the entry has neither a guid nor a link.
        """
        link = _text(entry.get("link"))
        guid = _text(entry.get("id")) or link
        if not guid:
            raise ParseError("Feed entry has neither guid nor link")

        description = entry.get("summary") or entry.get("description") or ""

        return cls(
            id=guid,
            action_name=_text(entry.get("title")),
            target_text=clean_content(_text(description)),
            timestamp=_timestamp_or_epoch(entry, parse_feed_timestamp),
            translation_ref=link,
            user_ref=_text(entry.get("author")),
            component_ref=link,
            detail_url=link,
        )

    @property
    def project_slug(self) -> str | None:
        """Project slug embedded in the component reference."""
        match = _OBJECT_PATH_PATTERN.search(self.component_ref)
        return match.group(1) if match else None

    @property
    def component_name(self) -> str | None:
        """Component slug embedded in the component reference."""
        match = _OBJECT_PATH_PATTERN.search(self.component_ref)
        return match.group(2) if match and match.group(2) else None

    @property
    def language_code(self) -> str | None:
        """Language code embedded in the translation reference or detail URL."""
        for ref in (self.translation_ref, self.detail_url):
            match = _LANGUAGE_PATTERN.search(ref)
            if match:
                return match.group(1)
        return None

    @property
    def user_name(self) -> str:
        """Display name of the user, taken from the last segment of the reference."""
        segments = [s for s in self.user_ref.split("/") if s]
        return segments[-1] if segments else ""


def clean_content(content: str) -> str:
    """
    Clean HTML content for display.

    Parameters
    ----------
    content : str
        Raw content possibly containing HTML.

    Returns
    -------
    str
        Cleaned plain text content.
    """
    text = re.sub(r"<[^>]+>", "", content)
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def parse_iso_timestamp(value: Any) -> datetime:
    """
    Parse an ISO 8601 timestamp as returned by the Weblate API.

    Naive timestamps are taken as UTC.

    Raises
    ------
    ParseError
        If the value is not a valid timestamp.
    """
    if not isinstance(value, str) or not value:
        raise ParseError(f"Invalid timestamp: {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ParseError(f"Invalid timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_feed_timestamp(entry: Any) -> datetime:
    """
    Parse the publication date of a feedparser entry.

    Raises
    ------
    ParseError
        If the entry has no usable date.
    """
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)

    published = entry.get("published") or entry.get("pubDate")
    if not published:
        raise ParseError("Feed entry has no publication date")
    try:
        result = parsedate_to_datetime(published)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid publication date: {published!r}") from e
    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


def _timestamp_or_epoch(value: Any, parser: Callable[[Any], datetime]) -> datetime:
    try:
        return parser(value)
    except ParseError as e:
        logger.warning("%s, using epoch", e)
        return EPOCH


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
