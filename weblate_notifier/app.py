"""
HTTP entry points.

Exposes the poll endpoint, which runs one pass over the watched
projects, and the webhook endpoint, which forwards a single Weblate
event to Telegram.
"""

import logging
import os
import time
from collections.abc import Mapping

from aiohttp import web
from pydantic import ValidationError

from weblate_notifier.config import AppConfig, load_credentials
from weblate_notifier.exceptions import ConfigurationError, DeliveryError
from weblate_notifier.runner import run_check
from weblate_notifier.telegram import TelegramNotifier
from weblate_notifier.webhook import WebhookPayload, format_webhook_message, verify_secret

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", AppConfig)
ENVIRON_KEY = web.AppKey("environ", Mapping)

CHECK_PATH = "/api/check-rss"
WEBHOOK_PATH = "/api/weblate"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def check_changes(request: web.Request) -> web.Response:
    """Run one poll-and-notify pass and report the outcome."""
    config = request.app[CONFIG_KEY]
    started = time.monotonic()

    try:
        credentials = load_credentials(request.app[ENVIRON_KEY])
    except ConfigurationError as e:
        return web.json_response(
            {
                "error": str(e),
                "has_token": e.has_token,
                "has_chat_id": e.has_chat_id,
            },
            status=500,
        )

    try:
        summary = await run_check(config, credentials)
    except Exception as e:
        logger.exception("Check failed")
        return web.json_response(
            {
                "error": "Check failed",
                "details": str(e),
                "execution_time_ms": _elapsed_ms(started),
            },
            status=500,
        )

    return web.json_response(summary.to_dict())


async def receive_webhook(request: web.Request) -> web.Response:
    """Forward a Weblate webhook event to Telegram."""
    if request.method != "POST":
        return web.json_response({"error": "Method not allowed"}, status=405)

    config = request.app[CONFIG_KEY]

    try:
        credentials = load_credentials(request.app[ENVIRON_KEY])
    except ConfigurationError:
        return web.json_response({"error": "Missing configuration"}, status=500)

    if credentials.webhook_secret:
        provided = request.headers.get("X-Hub-Signature") or request.query.get("secret")
        if not verify_secret(provided, credentials.webhook_secret):
            logger.warning("Rejected webhook with invalid secret")
            return web.json_response({"error": "Invalid secret"}, status=403)

    try:
        payload = WebhookPayload.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.error("Invalid webhook payload: %s", e)
        return web.json_response(
            {"error": "Internal server error", "details": str(e)}, status=500
        )

    slug = payload.project.slug if payload.project else ""
    project = config.get_project(slug)

    if config.webhook.watched_only and not config.is_watched(slug):
        logger.info("Ignoring webhook event for unwatched project")
        return web.json_response({"success": True, "message": "Ignored: project not watched"})

    notifier = TelegramNotifier(
        credentials,
        config.delivery,
        proxy_url=config.defaults.proxy,
        display_timezone=config.defaults.display_timezone,
    )
    try:
        await notifier.send_text(format_webhook_message(payload, project))
    except DeliveryError as e:
        logger.error("Telegram API error: %s", e)
        return web.json_response(
            {"error": "Telegram API failed", "details": str(e)}, status=500
        )
    except Exception as e:
        logger.exception("Error processing webhook")
        return web.json_response(
            {"error": "Internal server error", "details": str(e)}, status=500
        )
    finally:
        await notifier.close()

    return web.json_response({"success": True, "message": "Notification sent"})


def create_app(config: AppConfig, environ: Mapping[str, str] | None = None) -> web.Application:
    """
    Create the web application.

    Parameters
    ----------
    config : AppConfig
        Application configuration.
    environ : Mapping[str, str] | None
        Where credentials are read from on each request,
        defaults to ``os.environ``.

    Returns
    -------
    web.Application
        Application serving both entry points.
    """
    app = web.Application()
    app[CONFIG_KEY] = config
    app[ENVIRON_KEY] = os.environ if environ is None else environ
    app.router.add_route("*", CHECK_PATH, check_changes)
    app.router.add_route("*", WEBHOOK_PATH, receive_webhook)
    return app
