"""
Weblate webhook payloads.

Validates inbound webhook bodies and formats them as Telegram messages.
"""

import hmac
import html

from pydantic import BaseModel, ConfigDict

from weblate_notifier.config import ProjectConfig

EVENT_LABELS = {
    "new_string": "✨ New string added",
    "new_translation": "📝 New translation",
    "new_contributor": "👤 New contributor",
    "new_comment": "💬 New comment",
    "new_suggestion": "💡 New suggestion",
    "component_update": "🔄 Component updated",
}


class _PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PayloadProject(_PayloadModel):
    name: str = ""
    slug: str = ""


class PayloadComponent(_PayloadModel):
    name: str = ""
    slug: str = ""


class PayloadTranslation(_PayloadModel):
    language: str = ""


class PayloadUser(_PayloadModel):
    username: str = ""
    full_name: str = ""


class PayloadChange(_PayloadModel):
    action_name: str = ""
    target: str = ""


class PayloadComment(_PayloadModel):
    comment: str = ""


class WebhookPayload(_PayloadModel):
    """
    Body of a Weblate webhook request.

    Every section is optional; absent sections are left out of the message.
    """

    event: str | None = None
    project: PayloadProject | None = None
    component: PayloadComponent | None = None
    translation: PayloadTranslation | None = None
    user: PayloadUser | None = None
    change: PayloadChange | None = None
    comment: PayloadComment | None = None


def verify_secret(provided: str | None, expected: str) -> bool:
    """Compare a provided webhook secret with the expected one."""
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def format_webhook_message(
    payload: WebhookPayload, project: ProjectConfig | None = None
) -> str:
    """
    Format a webhook payload as an HTML message.

    Parameters
    ----------
    payload : WebhookPayload
        The validated webhook body.
    project : ProjectConfig | None
        The watched project the event belongs to, if any.

    Returns
    -------
    str
        HTML formatted message.
    """
    parts = ["🔔 <b>Weblate notification</b>\n"]

    if payload.project:
        emoji = project.emoji if project and project.emoji else "📦"
        name = project.display_name if project else payload.project.name
        parts.append(f"\n{emoji} <b>Project:</b> {html.escape(name)}")

    if payload.component:
        parts.append(f"\n🧩 <b>Component:</b> {html.escape(payload.component.name)}")

    if payload.translation and payload.translation.language:
        parts.append(f"\n🌐 <b>Language:</b> {html.escape(payload.translation.language)}")

    if payload.event:
        label = EVENT_LABELS.get(payload.event, payload.event)
        parts.append(f"\n⚡ <b>Event:</b> {html.escape(label)}")

    if payload.user:
        user = payload.user.full_name or payload.user.username
        parts.append(f"\n👤 <b>User:</b> {html.escape(user)}")

    if payload.change and payload.change.action_name:
        parts.append(f"\n🎯 <b>Action:</b> {html.escape(payload.change.action_name)}")

    if payload.change and payload.change.target:
        parts.append(f"\n\n📄 <code>{html.escape(payload.change.target)}</code>")

    if payload.comment and payload.comment.comment:
        parts.append(f'\n\n💬 "{html.escape(payload.comment.comment)}"')

    return "".join(parts)
