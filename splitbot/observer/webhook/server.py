"""Minimal webhook HTTP server for GitHub events.

Serves a health check and the webhook path. Deliveries are verified against
the configured secret (``X-Hub-Signature-256``) before they are handled.
"""

import hashlib
import hmac
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs

from splitbot.adapters.base import GitPlatformError
from splitbot.errors import SplitbotError
from splitbot.observer.webhook.handlers import handle_github_event
from splitbot.tasks.context import TaskContext

LOG = logging.getLogger("splitbot.observer.webhook")

SIGNATURE_HEADER = "X-Hub-Signature-256"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check a ``sha256=<hex>`` HMAC of the raw body. No secret: always valid."""
    if not secret:
        return True
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len("sha256=") :])


class WebhookHandler(BaseHTTPRequestHandler):
    """Handle GET /health and POST /webhook/github (path from config)."""

    ctx: TaskContext

    def do_GET(self) -> None:
        if self.path == "/health" or self.path == "/":
            self._reply(200, {"status": "ok", "service": "splitbot"})
            return
        self.send_response(404)
        self.end_headers()

    def do_POST(self) -> None:
        if self.path == self.ctx.config.github.webhook_path:
            self._handle_github_webhook()
            return
        self.send_response(404)
        self.end_headers()

    def _reply(self, status: int, data: dict) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())

    def _parse_webhook_body(self, body: bytes) -> dict:
        """Parse webhook body as JSON.

        Supports raw JSON and application/x-www-form-urlencoded (payload=...).
        """
        if not body:
            return {}
        content_type = self.headers.get("Content-Type", "")
        if "application/x-www-form-urlencoded" in content_type:
            parsed = parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True)
            raw = (parsed.get("payload") or [None])[0]
            if raw is None:
                return {}
            return json.loads(raw)
        return json.loads(body.decode())

    def _handle_github_webhook(self) -> None:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length) if length else b""
        if not verify_signature(self.ctx.config.webhook_secret_resolved, body, self.headers.get(SIGNATURE_HEADER)):
            LOG.warning("Rejected webhook delivery with invalid signature")
            self._reply(401, {"error": "invalid signature"})
            return
        try:
            payload = self._parse_webhook_body(body)
            event = self.headers.get("X-GitHub-Event", "")
            LOG.info("Webhook event: %s.%s", event, payload.get("action") if payload else None)
            handle_github_event(self.ctx, event, payload)
        except json.JSONDecodeError:
            payload_raw = body.decode("utf-8", errors="replace") if body else ""
            LOG.warning("Invalid webhook JSON. Full payload: %s", payload_raw)
        except (GitPlatformError, SplitbotError) as e:
            LOG.error("Failed to handle webhook event: %s", e)
            self._reply(500, {"received": True, "error": str(e)})
            return
        self._reply(200, {"received": True})

    def log_message(self, format: str, *args: Any) -> None:
        LOG.debug(format, *args)


def make_webhook_server(ctx: TaskContext) -> ThreadingHTTPServer:
    """Bind the HTTP server for webhooks and health check."""
    host = ctx.config.webhook.host
    port = ctx.config.webhook.port
    handler = type("BoundWebhookHandler", (WebhookHandler,), {"ctx": ctx})
    return ThreadingHTTPServer((host, port), handler)


def run_webhook_server(ctx: TaskContext) -> None:
    """Run HTTP server for webhooks and health check until interrupted."""
    server = make_webhook_server(ctx)
    LOG.info("Webhook server listening on %s:%s", *server.server_address[:2])
    try:
        server.serve_forever()
    finally:
        server.server_close()
