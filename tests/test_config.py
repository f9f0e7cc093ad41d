from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from content_checks.config import (
    DEFAULT_CONFIG_PATH,
    HOURS,
    MINUTES,
    MissingCredentialsError,
    load_config,
    load_mail_settings,
    load_monitor_config,
    parse_monitor_config,
    resolve_config_path,
)


def _site(**overrides) -> dict:
    entry = {
        "name": "Room",
        "url": "https://example.test/room",
        "text_match": "unavailable",
        "interval_ms": 5 * MINUTES,
        "msg_cooldown_ms": 4 * HOURS,
    }
    entry.update(overrides)
    return entry


def test_bundled_config_has_valid_sites() -> None:
    config = load_monitor_config(DEFAULT_CONFIG_PATH)

    assert config.sites
    site = config.sites[0]
    assert site.name == "LibTheatreRoom"
    assert site.url.startswith("https://")
    assert site.text_match == "This resource is temporarily unavailable."
    assert site.interval_ms == 5 * MINUTES
    assert site.msg_cooldown_ms == 4 * HOURS


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    p = tmp_path / "sites.yaml"
    p.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_config(p)


def test_parse_requires_non_empty_sites() -> None:
    with pytest.raises(ValueError, match="non-empty 'sites'"):
        parse_monitor_config({"sites": []})


@pytest.mark.parametrize(
    "bad",
    [
        _site(interval_ms=0),
        _site(msg_cooldown_ms=-5),
        _site(text_match=""),
        _site(interval_ms="five minutes"),
        _site(unknown_key=True),
    ],
    ids=["zero_interval", "negative_cooldown", "empty_match", "non_int_interval", "unknown_key"],
)
def test_parse_rejects_invalid_site_fields(bad: dict) -> None:
    with pytest.raises(ValueError, match="Invalid site configuration"):
        parse_monitor_config({"sites": [bad]})


def test_parse_rejects_duplicate_names() -> None:
    with pytest.raises(ValueError, match="Duplicate site name"):
        parse_monitor_config({"sites": [_site(), _site(url="https://example.test/other")]})


def test_parse_rejects_non_http_url() -> None:
    with pytest.raises(ValueError, match="http"):
        parse_monitor_config({"sites": [_site(url="file:///etc/passwd")]})


def test_sites_are_immutable() -> None:
    config = parse_monitor_config({"sites": [_site()]})
    with pytest.raises(ValidationError):
        config.sites[0].interval_ms = 1  # type: ignore[misc]


def test_parse_rejects_unknown_top_level_key() -> None:
    with pytest.raises(ValueError, match="Invalid site configuration"):
        parse_monitor_config({"sites": [_site()], "http_timeout_second": 3})


def test_top_level_options_have_defaults() -> None:
    config = parse_monitor_config({"sites": [_site()], "http_timeout_seconds": 3})
    assert config.http_timeout_seconds == 3.0
    assert config.user_agent


def test_mail_settings_require_both_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAIL_USERNAME", "alerts@example.test")
    monkeypatch.delenv("MAIL_APP_PASSWORD", raising=False)
    with pytest.raises(MissingCredentialsError):
        load_mail_settings()

    monkeypatch.setenv("MAIL_APP_PASSWORD", "secret")
    monkeypatch.setenv("MAIL_USERNAME", "  ")
    with pytest.raises(MissingCredentialsError):
        load_mail_settings()


def test_mail_settings_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAIL_USERNAME", "alerts@example.test")
    monkeypatch.setenv("MAIL_APP_PASSWORD", "secret")
    monkeypatch.delenv("MAIL_SMTP_HOST", raising=False)
    monkeypatch.setenv("MAIL_SMTP_PORT", "not-a-port")

    settings = load_mail_settings()
    assert settings.smtp_host == "smtp.gmail.com"
    assert settings.smtp_port == 465
    assert settings.address == "alerts@example.test"

    monkeypatch.setenv("MAIL_SMTP_HOST", "smtp.example.test")
    monkeypatch.setenv("MAIL_SMTP_PORT", "587")
    settings = load_mail_settings()
    assert (settings.smtp_host, settings.smtp_port) == ("smtp.example.test", 587)


def test_resolve_config_path_prefers_cli_then_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TEXT_MONITOR_CONFIG", raising=False)
    assert resolve_config_path(None) == DEFAULT_CONFIG_PATH

    monkeypatch.setenv("TEXT_MONITOR_CONFIG", str(tmp_path / "env.yaml"))
    assert resolve_config_path(None) == tmp_path / "env.yaml"
    assert resolve_config_path("cli.yaml") == Path("cli.yaml")
