"""Logging from config and env.

Levels (inclusive):
- ERROR: critical errors only
- WARNING: non-critical issues and ERROR
- INFO: task lifecycle, reconciliation decisions, WARNING, and ERROR
- DEBUG: API payload summaries and all levels above

Configure via config.yaml (logging.level, logging.format, logging.loggers) or
env (LOGGING_LEVEL, LOGGING_FORMAT, LOGGING_LOGGERS as JSON). ``loggers`` maps
logger names to levels, so one part of the bot can be debugged while the rest
stays at the root level:

    logging:
      level: INFO
      loggers:
        splitbot.tasks.queue: DEBUG
        urllib3: WARNING
"""

import logging
from typing import Dict

from splitbot.config import LoggingConfig

# Supported levels only (DEBUG, INFO, WARNING, ERROR)
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: str) -> int:
    """Map level name to logging constant.

    Falls back to INFO if unknown.
    """
    return LEVELS.get(level.upper().strip(), logging.INFO)


class SplitbotLogging:
    """Configures the root logger and per-logger overrides from LoggingConfig."""

    def __init__(self, config: LoggingConfig) -> None:
        self._level = _resolve_level(config.level)
        self._format = config.format or DEFAULT_FORMAT
        self._overrides: Dict[str, int] = {
            name.strip(): _resolve_level(level) for name, level in config.loggers.items() if name.strip()
        }

    @property
    def overrides(self) -> Dict[str, int]:
        return dict(self._overrides)

    def setup(self) -> None:
        """Apply level and format to the root logger, then the overrides."""
        logging.basicConfig(
            level=self._level,
            format=self._format,
            force=True,
        )
        for name, level in self._overrides.items():
            logging.getLogger(name).setLevel(level)
        if self._overrides:
            logging.getLogger("splitbot.logging").debug(
                "Logger overrides: %s",
                ", ".join(f"{n}={logging.getLevelName(lv)}" for n, lv in sorted(self._overrides.items())),
            )

    def get_logger(self, name: str) -> logging.Logger:
        """Return a logger with the given name (uses root config)."""
        return logging.getLogger(name)
