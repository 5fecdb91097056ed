"""Webhook server and handlers for GitHub pull request events."""

from splitbot.observer.webhook.handlers import handle_github_event
from splitbot.observer.webhook.server import make_webhook_server, run_webhook_server, verify_signature

__all__ = ["handle_github_event", "make_webhook_server", "run_webhook_server", "verify_signature"]
