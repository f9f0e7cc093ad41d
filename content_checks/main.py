from __future__ import annotations

import argparse
import asyncio
import os

import httpx
import structlog
import yaml

from content_checks.config import (
    MissingCredentialsError,
    MonitorConfig,
    load_mail_settings,
    load_monitor_config,
    resolve_config_path,
)
from content_checks.fetcher import PageFetcher
from content_checks.logging_setup import configure_logging
from content_checks.mailer import EmailNotifier, NotifierAuthError
from content_checks.monitor import MonitorState, Notifier, SiteMonitor
from content_checks.scheduler import SchedulerContractError, SiteScheduler, SleepFn, run_all


logger = structlog.get_logger("content-checks")


async def run_monitor(
    config: MonitorConfig,
    notifier: Notifier,
    *,
    once: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> dict[str, MonitorState]:
    await notifier.verify()

    headers = {"User-Agent": config.user_agent}
    async with httpx.AsyncClient(headers=headers, transport=transport) as client:
        fetcher = PageFetcher(client, timeout_seconds=config.http_timeout_seconds)
        schedulers = []
        for site in config.sites:
            logger.info(
                "Registering site",
                site=site.name,
                url=site.url,
                interval_ms=site.interval_ms,
                msg_cooldown_ms=site.msg_cooldown_ms,
            )
            schedulers.append(SiteScheduler(SiteMonitor(site, fetcher, notifier), sleep=sleep))

        states = await run_all(schedulers, once=once)

    for name, state in states.items():
        logger.info(
            "Site finished",
            site=name,
            status=state.status.value,
            checks_run=state.checks_run,
            consecutive_failures=state.consecutive_failures,
        )
    return states


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Page text monitor")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to sites YAML (default: $TEXT_MONITOR_CONFIG or the bundled config.yaml)",
    )
    parser.add_argument("--once", action="store_true", help="Check every site once and exit")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    try:
        mail_settings = load_mail_settings()
    except MissingCredentialsError as e:
        logger.error("Startup aborted", error=str(e))
        return 1

    config_path = resolve_config_path(args.config)
    try:
        config = load_monitor_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Failed to load configuration", path=str(config_path), error=str(e))
        return 1

    notifier = EmailNotifier(mail_settings)
    try:
        asyncio.run(run_monitor(config, notifier, once=bool(args.once)))
    except NotifierAuthError as e:
        logger.error("Startup aborted", error=str(e))
        return 1
    except SchedulerContractError as e:
        logger.critical("Scheduler contract violation, exiting", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
