"""CLI entry point for the alert receivers.

This module renders an alert group with a DingDing receiver configuration
and delivers it from the command line.

Usage:
    python -m alert_receivers --config receiver.json --alerts alerts.json [options]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ValidationError

from alert_receivers import __version__
from alert_receivers.config import Settings, clear_settings_cache, get_settings
from alert_receivers.models import Alert, NotifyContext
from alert_receivers.receivers.base import ReceiverBase
from alert_receivers.receivers.dingding import DingDingConfig, DingDingNotifier
from alert_receivers.sender import HttpWebhookSender
from alert_receivers.templates import Template

# Application info
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="alert-receivers",
        description="Render an alert group and deliver it to a DingDing robot webhook.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m alert_receivers --config dingding.json --alerts alerts.json
  python -m alert_receivers --config dingding.json --config-check
  python -m alert_receivers --config dingding.json --alerts alerts.json --dry-run
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config",
        required=True,
        type=Path,
        help="Path to the DingDing receiver settings (JSON)",
    )

    parser.add_argument(
        "--alerts",
        type=Path,
        default=None,
        help="Path to a JSON alert list or Alertmanager webhook payload",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without sending",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render the notification but don't send it",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def validate_config() -> Settings | None:
    """Validate and load process settings.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        # Clear cache to force reload
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print_validation_errors("Configuration validation failed:", e)
        return None


def print_validation_errors(header: str, error: ValidationError) -> None:
    print(header, file=sys.stderr)
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"])
        print(f"  {field}: {item['msg']}", file=sys.stderr)


def load_receiver_config(path: Path) -> DingDingConfig | None:
    """Load the DingDing receiver settings file.

    Returns:
        The validated config, or None if the file is unreadable or invalid.
    """
    try:
        return DingDingConfig.from_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        print(f"Cannot read receiver settings {path}: {e}", file=sys.stderr)
    except ValidationError as e:
        print_validation_errors(f"Receiver settings {path} are invalid:", e)
    return None


def load_alerts(path: Path) -> tuple[NotifyContext, list[Alert]]:
    """Load alerts from a JSON file.

    Accepts either a plain list of alerts or an Alertmanager webhook payload
    with ``alerts``, ``groupLabels``, ``groupKey`` and ``receiver`` keys.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not valid JSON or has the wrong shape.
    """
    data: Any = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return NotifyContext(), _parse_alerts(data)
    if not isinstance(data, dict) or not isinstance(data.get("alerts"), list):
        raise ValueError("expected a list of alerts or an object with an 'alerts' list")
    group_labels = data.get("groupLabels") or {}
    if not isinstance(group_labels, dict):
        raise ValueError("groupLabels must be a JSON object")
    ctx = NotifyContext(
        group_key=str(data.get("groupKey", "")),
        group_labels={str(k): str(v) for k, v in group_labels.items()},
        receiver=str(data.get("receiver", "")),
    )
    return ctx, _parse_alerts(data["alerts"])


def _parse_alerts(items: list[Any]) -> list[Alert]:
    if not items:
        raise ValueError("no alerts to send")
    for item in items:
        if not isinstance(item, dict):
            raise ValueError("every alert must be a JSON object")
        for key in ("labels", "annotations"):
            if not isinstance(item.get(key) or {}, dict):
                raise ValueError(f"alert {key} must be a JSON object")
    return [Alert.from_dict(item) for item in items]


def print_config_summary(settings: Settings, config: DingDingConfig, dry_run: bool) -> None:
    """Print a summary of the configuration."""
    summary = settings.summary()
    print("Configuration:")
    print(f"  External URL: {summary['external_url']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Webhook Timeout: {summary['webhook_timeout']}s")
    print(f"  Dry Run: {dry_run}")
    print(f"  Message Type: {config.message_type.value}")
    at = config.at
    print(
        f"  Mentions: {len(at.at_mobiles)} mobiles, "
        f"{len(at.at_user_ids)} users, all={at.is_at_all}"
    )
    print()


async def run_notify(
    settings: Settings,
    config: DingDingConfig,
    ctx: NotifyContext,
    alerts: list[Alert],
    dry_run: bool,
) -> int:
    """Send one notification for the alert group.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    notifier = DingDingNotifier(
        ReceiverBase(name=ctx.receiver, type="dingding"),
        config,
        Template(external_url=settings.external_url),
        HttpWebhookSender(timeout=settings.webhook_timeout, dry_run=dry_run),
    )
    try:
        ok, err = await notifier.notify(ctx, *alerts)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED

    if not ok:
        logger.error(f"Notification failed: {err}")
        return EXIT_ERROR
    logger.info("Notification delivered")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    config = load_receiver_config(args.config)
    if config is None:
        sys.exit(EXIT_CONFIG_ERROR)

    dry_run = args.dry_run or settings.dry_run

    if args.config_check:
        print("Configuration is valid!")
        print()
        print_config_summary(settings, config, dry_run)
        sys.exit(EXIT_SUCCESS)

    if args.alerts is None:
        parser.error("--alerts is required unless --config-check is given")

    try:
        ctx, alerts = load_alerts(args.alerts)
    except (OSError, ValueError) as e:
        print(f"Cannot load alerts from {args.alerts}: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    exit_code = asyncio.run(run_notify(settings, config, ctx, alerts, dry_run))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
