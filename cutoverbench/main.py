"""
CutoverBench command line entry point.

Drives a sustained read/write workload against a cluster endpoint while it
goes through a blue/green cutover (or failover) and reports error rates,
latency and the inferred cutover phase.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from cutoverbench.config import Settings, settings
from cutoverbench.connectors import create_connection_provider
from cutoverbench.core.executor.helpers import redact_dsn
from cutoverbench.core.simulator import WorkloadSimulator
from cutoverbench.exceptions import ConfigurationError, ConnectivityError
from cutoverbench.models import ConsoleFormat, WorkloadConfig
from cutoverbench.setup_schema import create_test_tables

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONNECTIVITY = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

_DRIVER_LOGGERS = ("aiomysql", "asyncpg", "pymysql")


def configure_logging(
    cfg: Settings,
    console_format: ConsoleFormat,
    driver_log_level: Optional[str] = None,
) -> None:
    """
    Configure process logging.

    Per-operation lines go to the `cutoverbench.operations` logger. They reach
    the console only in verbose mode; otherwise they are written to
    OPERATIONS_LOG_FILE so the dashboard/event output stays readable.
    """
    level = getattr(logging, str(cfg.LOG_LEVEL).upper(), logging.INFO)
    console = logging.StreamHandler()
    if console_format is not ConsoleFormat.VERBOSE:
        console.setLevel(max(level, logging.WARNING))

    logging.basicConfig(
        level=level,
        format=cfg.LOG_FORMAT,
        handlers=[
            console,
            logging.FileHandler(cfg.LOG_FILE) if cfg.LOG_FILE else logging.NullHandler(),
        ],
    )

    driver_level = str(driver_log_level or cfg.DRIVER_LOG_LEVEL).upper()
    for name in _DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(getattr(logging, driver_level, logging.WARNING))

    ops_logger = logging.getLogger("cutoverbench.operations")
    ops_logger.setLevel(logging.INFO)
    if cfg.OPERATIONS_LOG_FILE:
        handler = logging.FileHandler(cfg.OPERATIONS_LOG_FILE)
        handler.setFormatter(logging.Formatter(cfg.LOG_FORMAT))
        ops_logger.addHandler(handler)
    ops_logger.propagate = console_format is ConsoleFormat.VERBOSE


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cutoverbench",
        description=(
            "Run a sustained read/write workload against a database cluster "
            "and observe it through a blue/green cutover."
        ),
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help="Cluster endpoint host (default: DB_HOST).",
    )
    parser.add_argument(
        "--port", type=int, default=None, help="Port (default: DB_PORT or engine default)."
    )
    parser.add_argument(
        "--engine",
        choices=("mysql", "postgres"),
        default=None,
        help="Database engine (default: DB_ENGINE).",
    )
    parser.add_argument(
        "--database-name", default=None, help="Database name (default: DB_NAME)."
    )
    parser.add_argument("--username", default=None, help="Username (default: DB_USER).")
    parser.add_argument(
        "--password", default=None, help="Password (default: DB_PASSWORD)."
    )
    parser.add_argument(
        "--write-workers", type=int, default=10, help="Number of write workers (>= 1)."
    )
    parser.add_argument(
        "--write-rate",
        type=int,
        default=100,
        help="Writes per second per worker (0 = unthrottled).",
    )
    parser.add_argument(
        "--read-workers", type=int, default=0, help="Number of read workers."
    )
    parser.add_argument(
        "--read-rate",
        type=int,
        default=100,
        help="Reads per second per worker (0 = unthrottled).",
    )
    parser.add_argument(
        "--connection-pool-size",
        type=int,
        default=100,
        help="Maximum pooled connections.",
    )
    parser.add_argument(
        "--log-interval",
        type=float,
        default=10.0,
        help="Seconds between reports.",
    )
    parser.add_argument(
        "--blue-green-deployment-id",
        default=None,
        help="Blue/green deployment identifier, if one exists.",
    )
    parser.add_argument(
        "--console-format",
        choices=[f.value for f in ConsoleFormat],
        default=ConsoleFormat.DASHBOARD.value,
        help="Console output format.",
    )
    parser.add_argument(
        "--driver-log-level",
        default=None,
        help="Log level for database driver loggers (default: DRIVER_LOG_LEVEL).",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=5,
        help="Max attempts per operation.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create the test tables before starting the workload.",
    )
    return parser


def build_workload_config(args: argparse.Namespace) -> WorkloadConfig:
    """
    Raises:
        ConfigurationError: if any option is out of range
    """
    try:
        return WorkloadConfig(
            write_workers=args.write_workers,
            write_rate=args.write_rate,
            read_workers=args.read_workers,
            read_rate=args.read_rate,
            connection_pool_size=args.connection_pool_size,
            log_interval_seconds=args.log_interval,
            deployment_id=args.blue_green_deployment_id,
            console_format=ConsoleFormat(args.console_format),
            max_retries=args.max_retries,
        )
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def _install_signal_handlers(sim: WorkloadSimulator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, sim.request_stop)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform/loop; KeyboardInterrupt still applies.
            pass


async def _run(args: argparse.Namespace, config: WorkloadConfig) -> int:
    engine = args.engine or settings.DB_ENGINE
    host = args.endpoint or settings.DB_HOST
    if not host:
        logger.error("No endpoint given (use --endpoint or DB_HOST)")
        return EXIT_CONFIG
    port = args.port or settings.default_port(engine)

    provider = create_connection_provider(
        engine,
        host=host,
        port=port,
        database=args.database_name or settings.DB_NAME,
        user=args.username or settings.DB_USER,
        password=args.password if args.password is not None else settings.DB_PASSWORD,
        min_size=min(10, config.connection_pool_size),
        max_size=config.connection_pool_size,
        connect_timeout=settings.DB_CONNECT_TIMEOUT,
    )
    logger.info("Connecting to %s", redact_dsn(provider.describe()))

    sim = WorkloadSimulator(config, provider)
    _install_signal_handlers(sim)

    try:
        if args.create_tables:
            try:
                await provider.initialize()
                await create_test_tables(provider, config)
            except Exception as e:
                raise ConnectivityError(f"Table setup failed: {e}") from e
        await sim.start()
    except ConnectivityError as e:
        logger.error("Startup failed: %s", e)
        try:
            await provider.close()
        except Exception as close_err:
            logger.debug("Error closing provider after failed startup: %s", close_err)
        return EXIT_CONNECTIVITY

    await sim.stop_event.wait()
    await sim.shutdown()
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_workload_config(args)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings, config.console_format, args.driver_log_level)
    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        print("[cutoverbench] interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
