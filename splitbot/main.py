"""Splitbot entry point.

Runs the webhook server, the periodic poller and the task scheduler in one
process. Usage: splitbot [--config PATH] [--check].
"""

import argparse
import logging
import sys
from pathlib import Path

from splitbot.adapters.github import GitHubAdapter
from splitbot.config import AppConfig, load_config
from splitbot.errors import ConfigurationError
from splitbot.logging import SplitbotLogging
from splitbot.matcher import RoleMatcher
from splitbot.observer.scheduler import Poller
from splitbot.observer.webhook.server import run_webhook_server
from splitbot.tasks.context import TaskContext
from splitbot.tasks.queue import TaskScheduler

LOG = logging.getLogger("splitbot.main")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="splitbot",
        description="Splitbot - split managed pull requests into one review per team",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )
    return parser.parse_args(argv)


def build_context(config: AppConfig) -> TaskContext:
    """Wire adapter, matcher and scheduler from config."""
    token = config.github_token_resolved
    if not token:
        raise ConfigurationError("no GitHub token; set GITHUB_TOKEN or GITHUB_TOKEN_FILE")
    adapter = GitHubAdapter(token=token, api_url=config.github.api_url)
    matcher = RoleMatcher(adapter, config)
    return TaskContext(adapter=adapter, config=config, matcher=matcher, scheduler=TaskScheduler())


def run(config: AppConfig) -> None:
    """Run scheduler, poller and webhook server until interrupted."""
    SplitbotLogging(config.logging).setup()
    ctx = build_context(config)

    LOG.info(
        "Splitbot started | repo=%s | webhook=%s | poller=%s",
        config.bot.repository,
        config.webhook.enabled,
        config.scheduler.enabled,
    )
    ctx.scheduler.start()
    poller = Poller(ctx) if config.scheduler.enabled else None
    if poller:
        poller.start()
    try:
        if config.webhook.enabled:
            run_webhook_server(ctx)
        elif poller:
            LOG.warning("Webhook disabled in config; only the poller feeds the queue.")
            poller.join()
        else:
            LOG.warning("Webhook and poller disabled in config; nothing to do.")
    finally:
        if poller:
            poller.stop(timeout=5)
        ctx.scheduler.stop(timeout=30)


def main(argv: list[str] | None = None) -> int:
    """Entry point for splitbot."""
    args = parse_args(argv)
    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            LOG.warning("config.yaml not found, using config.example.yaml")

    try:
        config = load_config(config_path)
    except Exception as e:
        print(f"Invalid config {config_path}: {e}", file=sys.stderr)
        return 1

    if args.check:
        print("Config OK:", config.bot.repository, config.labels.manage_review, config.labels.team_review)
        return 0

    try:
        run(config)
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        LOG.exception("Fatal error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
