"""
Weblate Notifier - Forward Weblate translation activity to Telegram.

Polls the Weblate changes API or RSS export for watched projects, and
accepts Weblate webhooks, sending formatted notifications to a Telegram chat.
"""

__version__ = "1.0.0"
