"""Configuration loading from YAML and environment.

Secrets (tokens) are taken from environment variables or from files
(Docker secrets). Never put real tokens in config files committed to the
repo.

Two layers exist: the application config (this process, loaded once) and the
repository configuration (``.github/splitbot.yml``), read per branch through
the platform adapter every time a pull request is classified.
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from splitbot.errors import ConfigurationError


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


# Injected by load_config so validators can read env/file
_current_env: dict[str, str] = {}


class BotConfig(BaseSettings):
    """Bot identity and target repo."""

    model_config = SettingsConfigDict(env_prefix="BOT_", extra="ignore")

    # Commits authored by any other name on a team branch count as drift
    name: str = Field(default="splitbot[bot]", description="Git author name for commits made by the bot")
    email: str = Field(default="splitbot@users.noreply.github.com", description="Bot email for commits")
    repository: str = Field(default="owner/repo", description="Target repo e.g. acme/monorepo")
    webhook_secret: str = Field(default="", description="Secret for webhook verification")


class GitHubConfig(BaseSettings):
    """GitHub API and webhook settings."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    token: str | None = Field(default=None, description="PAT or app token; use env or secret file")
    api_url: str = Field(default="https://api.github.com", description="API base URL")
    webhook_path: str = Field(default="/webhook/github", description="Webhook URL path")


class LabelsConfig(BaseSettings):
    """Default labels and repository file locations."""

    model_config = SettingsConfigDict(env_prefix="LABELS_", extra="ignore")

    manage_review: str = Field(default="Splitbot: Managed Review", description="Label marking a managed PR")
    team_review: str = Field(default="Splitbot: Review Requested", description="Label marking a team review PR")
    config_path: str = Field(default=".github/splitbot.yml", description="Per-branch repository config file")
    ownership_path: str = Field(default=".github/CODEOWNERS", description="Ownership file mapping paths to teams")


class ReconcileConfig(BaseSettings):
    """Reconciliation tuning."""

    model_config = SettingsConfigDict(env_prefix="RECONCILE_", extra="ignore")

    # Timeline index lags newly created cross-references by a few seconds
    parent_retry_delay_seconds: float = Field(default=10.0, ge=0, description="Delay before retrying parent lookup")
    git_timeout_seconds: int = Field(default=120, ge=1, description="Timeout for a single git command")
    status_context: str = Field(default="splitbot", description="Commit status context name")


class WebhookConfig(BaseSettings):
    """Webhook server settings."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_", extra="ignore")

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    enabled: bool = Field(default=True, description="Enable webhook server")


class SchedulerConfig(BaseSettings):
    """Periodic resynchronization of all managed pull requests."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", extra="ignore")

    enabled: bool = Field(default=True, description="Enable periodic resync")
    interval_seconds: int = Field(default=1800, ge=30, description="Poll interval in seconds")
    delay_seconds: int = Field(default=0, ge=0, description="Delay before the first run")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    loggers: Dict[str, str] = Field(
        default_factory=lambda: {"urllib3": "WARNING"},
        description="Per-logger level overrides, e.g. splitbot.tasks: DEBUG",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    bot: BotConfig = Field(default_factory=BotConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def github_token_resolved(self) -> str | None:
        """Resolve GitHub token from env or Docker secret file."""
        t = self.github.token
        if t and not t.startswith("${"):
            return t
        return _read_secret("GITHUB_TOKEN", "GITHUB_TOKEN_FILE")

    @property
    def webhook_secret_resolved(self) -> str:
        """Resolve webhook secret from env or Docker secret file."""
        s = self.bot.webhook_secret
        if s and not s.startswith("${") and s != "your-webhook-secret-here":
            return s
        return _read_secret("WEBHOOK_SECRET", "WEBHOOK_SECRET_FILE") or ""


class RepoConfiguration(BaseModel):
    """Per-branch repository configuration (``.github/splitbot.yml``)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    manage_review_label: str = Field(alias="manage-review-label")
    team_review_label: str = Field(alias="team-review-label")


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Secrets: GITHUB_TOKEN or GITHUB_TOKEN_FILE, WEBHOOK_SECRET or WEBHOOK_SECRET_FILE.
    """
    global _current_env

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text()) or {}
    raw = _substitute_env(raw)

    # Env overrides for nested values (e.g. BOT_REPOSITORY)
    bot_raw = raw.get("bot") or {}
    if _current_env.get("BOT_REPOSITORY"):
        bot_raw = {**bot_raw, "repository": _current_env.get("BOT_REPOSITORY")}

    return AppConfig(
        bot=BotConfig(**bot_raw),
        github=GitHubConfig(**(raw.get("github") or {})),
        labels=LabelsConfig(**(raw.get("labels") or {})),
        reconcile=ReconcileConfig(**(raw.get("reconcile") or {})),
        webhook=WebhookConfig(**(raw.get("webhook") or {})),
        scheduler=SchedulerConfig(**(raw.get("scheduler") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )


def parse_repo_configuration(text: str | None, defaults: LabelsConfig) -> RepoConfiguration:
    """Build the repository configuration from the YAML text of the config file.

    Missing file (``None``) or missing keys fall back to the application
    defaults. A malformed file or a label that resolves to an empty string
    raises ConfigurationError.
    """
    data: dict[str, Any] = {}
    if text:
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid repository configuration: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError("invalid repository configuration: expected a mapping")
        data = loaded or {}

    merged = {
        "manage-review-label": data.get("manage-review-label", defaults.manage_review),
        "team-review-label": data.get("team-review-label", defaults.team_review),
    }
    try:
        configuration = RepoConfiguration.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"invalid repository configuration: {e}") from e

    for key, value in merged.items():
        if not str(value).strip():
            raise ConfigurationError(f"repository configuration key {key!r} is empty")
    if configuration.manage_review_label == configuration.team_review_label:
        raise ConfigurationError("manage-review-label and team-review-label must differ")
    return configuration
