"""Application entry point and CLI for fcm-dispatch.

This module implements the main entry point: CLI argument parsing,
configuration loading, logging setup, sender selection, and the HTTP server
lifecycle with graceful shutdown on SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import NoReturn

from aiohttp import web

from fcm_dispatch.app.web import create_app
from fcm_dispatch.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    MainConfig,
    load_config,
)
from fcm_dispatch.plugins.dry_run import DryRunSender
from fcm_dispatch.types import Sender
from fcm_dispatch.utils.logging import configure_logging, log_with_context

__all__ = ["main"]

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for fcm-dispatch.

    CLI Arguments:
        --config, -c: Path to YAML configuration file (optional)
        --host: Override bind address
        --port: Override bind port
        --log-level: Override log level from config
        --dry-run: Log notifications instead of sending them
    """
    parser = argparse.ArgumentParser(
        prog="fcm-dispatch",
        description="HTTP service that fans push notifications out to Firebase Cloud Messaging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fcm-dispatch
  fcm-dispatch --config /etc/fcm-dispatch.yaml
  fcm-dispatch --dry-run --log-level DEBUG --port 8080
        """,
    )

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: built-in defaults)",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--host",
        type=str,
        help="Override bind address from configuration",
        metavar="HOST",
    )

    _ = parser.add_argument(
        "--port",
        type=int,
        help="Override bind port from configuration",
        metavar="PORT",
    )

    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )

    _ = parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry-run mode: log notifications without contacting FCM (overrides config)",
    )

    return parser.parse_args(argv)


def apply_overrides(
    config: MainConfig,
    *,
    host: str | None = None,
    port: int | None = None,
    log_level: str | None = None,
    dry_run: bool = False,
) -> MainConfig:
    """Return a copy of ``config`` with CLI overrides applied and re-validated.

    Raises:
        ConfigurationError: If an override is invalid
    """
    data = config.model_dump()
    if host is not None:
        data["server"]["host"] = host
    if port is not None:
        data["server"]["port"] = port
    if log_level is not None:
        data["application"]["log_level"] = log_level
    if dry_run:
        data["application"]["dry_run"] = True
    try:
        return MainConfig.model_validate(data)
    except ValueError as exc:
        msg = f"Invalid command-line override:\n{exc}"
        raise ConfigurationError(msg) from exc


def build_sender(config: MainConfig) -> Sender:
    """Select the sender: dry-run recorder or the Firebase Admin SDK.

    Raises:
        ConfigurationError: If the Firebase credentials cannot be loaded
    """
    if config.application.dry_run:
        return DryRunSender()

    from fcm_dispatch.plugins.fcm import FirebaseSender

    try:
        return FirebaseSender.from_config(config.firebase)
    except (ValueError, OSError) as exc:
        msg = (
            f"Failed to initialize Firebase Admin SDK: {exc}\n"
            f"Check firebase.credentials_file or run with --dry-run."
        )
        raise ConfigurationError(msg) from exc


async def async_main(config: MainConfig) -> None:
    """Serve the HTTP API until SIGINT or SIGTERM.

    Raises:
        RuntimeError: If the server cannot be started
    """
    logger = logging.getLogger(__name__)

    sender = build_sender(config)
    dispatcher = config.build_dispatcher(sender)
    scheduler = config.build_scheduler(dispatcher)
    app = create_app(dispatcher, scheduler, config=config)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        _ = loop.add_signal_handler(sig, shutdown_event.set)

    try:
        try:
            await site.start()
        except OSError as exc:
            msg = f"Cannot listen on {config.server.host}:{config.server.port}: {exc}"
            raise RuntimeError(msg) from exc

        log_with_context(
            logger,
            logging.INFO,
            "fcm-dispatch listening",
            extra={
                "host": config.server.host,
                "port": config.server.port,
                "dry_run": config.application.dry_run,
                "max_concurrency": config.dispatch.max_concurrency,
            },
        )
        _ = await shutdown_event.wait()
        logger.info("Shutdown signal received, stopping server")

    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            _ = loop.remove_signal_handler(sig)
        await runner.cleanup()
        logger.info("fcm-dispatch shutdown complete")


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for fcm-dispatch.

    Exit Codes:
        0: Clean shutdown
        1: Configuration error or runtime error
    """
    args = parse_arguments(argv)

    # Extract args with type annotations to avoid reportAny at argparse boundary
    config_path_arg: Path | None = args.config  # pyright: ignore[reportAny]  # argparse boundary
    host_arg: str | None = args.host  # pyright: ignore[reportAny]  # argparse boundary
    port_arg: int | None = args.port  # pyright: ignore[reportAny]  # argparse boundary
    log_level_arg: str | None = args.log_level  # pyright: ignore[reportAny]  # argparse boundary
    dry_run_arg: bool = args.dry_run  # pyright: ignore[reportAny]  # argparse boundary

    try:
        config = apply_overrides(
            load_config(config_path_arg),
            host=host_arg,
            port=port_arg,
            log_level=log_level_arg,
            dry_run=dry_run_arg,
        )
        configure_logging(log_level=config.application.log_level)
        asyncio.run(async_main(config))

    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except RuntimeError as exc:
        print(f"Runtime error: {exc}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)

    except KeyboardInterrupt:
        print("\nShutdown complete", file=sys.stderr)
        sys.exit(EXIT_SUCCESS)

    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        logging.exception("Unexpected error during application execution")
        sys.exit(EXIT_RUNTIME_ERROR)

    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
