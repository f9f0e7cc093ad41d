from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError


MINUTES = 1000 * 60
HOURS = MINUTES * 60

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0
DEFAULT_USER_AGENT = "content-checks/0.1 (+page text monitor)"


class MissingCredentialsError(RuntimeError):
    pass


class SiteConfig(BaseModel):
    """One monitored page. Intervals are integer milliseconds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1, max_length=2000)
    text_match: str = Field(..., min_length=1, description="Literal substring expected on the page")
    interval_ms: int = Field(..., gt=0, description="Normal re-check cadence")
    msg_cooldown_ms: int = Field(..., gt=0, description="Cadence after any failure or alert")


class MonitorConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    sites: list[SiteConfig] = Field(..., min_length=1)
    http_timeout_seconds: float = Field(DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return str(default)
    s = str(raw).strip()
    return s if s else str(default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except Exception:
        return int(default)


@dataclass(frozen=True)
class MailSettings:
    username: str
    app_password: str = field(repr=False)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465

    @property
    def address(self) -> str:
        # Alerts go from the account to itself.
        return self.username


def load_mail_settings() -> MailSettings:
    """
    Read the mail account from the environment.

    MAIL_USERNAME and MAIL_APP_PASSWORD must both be set; this runs before any
    network activity so a misconfigured process fails fast.
    """
    username = (os.getenv("MAIL_USERNAME") or "").strip()
    app_password = os.getenv("MAIL_APP_PASSWORD") or ""
    if not username or not app_password:
        raise MissingCredentialsError(
            "Missing MAIL_USERNAME and/or MAIL_APP_PASSWORD env vars; "
            "both must be set before running"
        )
    return MailSettings(
        username=username,
        app_password=app_password,
        smtp_host=_env_str("MAIL_SMTP_HOST", "smtp.gmail.com"),
        smtp_port=_env_int("MAIL_SMTP_PORT", 465),
    )


def resolve_config_path(cli_value: str | None) -> Path:
    if cli_value:
        return Path(cli_value)
    return Path(_env_str("TEXT_MONITOR_CONFIG", str(DEFAULT_CONFIG_PATH)))


def load_config(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Config YAML must be a mapping")
    return data


def parse_monitor_config(raw: dict[str, Any]) -> MonitorConfig:
    sites_raw = raw.get("sites")
    if not isinstance(sites_raw, list) or not sites_raw:
        raise ValueError("Config must contain a non-empty 'sites' list")

    try:
        config = MonitorConfig(**raw)
    except ValidationError as e:
        raise ValueError(f"Invalid site configuration: {e}") from e

    seen: set[str] = set()
    for site in config.sites:
        if site.name in seen:
            raise ValueError(f"Duplicate site name in config: {site.name!r}")
        if not site.url.startswith(("http://", "https://")):
            raise ValueError(f"Site {site.name!r} url must start with http:// or https://")
        seen.add(site.name)
    return config


def load_monitor_config(path: Path) -> MonitorConfig:
    return parse_monitor_config(load_config(path))
