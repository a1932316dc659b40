"""
Command line entry point for the meter logger
"""
import argparse
import asyncio
import logging
import signal
import sys
from typing import Callable, List, Optional

from .core.adapter_session import BleakAdapterSession
from .core.config import SCANNING_MODES, ScanConfig
from .core.device_filter import DeviceFilter
from .core.discovery import discover_meters, format_discovery_line
from .core.scan_loop import ScanLoop
from .exceptions import AdapterConstructionError, AdapterFault, RetryBudgetExhausted, SinkError
from .exporters.base import MultiExporter, ReadingExporterBase
from .exporters.http_sender import HttpSender
from .exporters.json_file import JsonLinesExporter
from .exporters.tsv import TsvExporter, TsvFileExporter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meterlogger",
        description="Log temperature and humidity broadcast by SwitchBot Meter Plus sensors.",
    )
    parser.add_argument(
        "addresses", nargs="*", metavar="ADDRESS",
        help="Only accept these device addresses (default: any meter).",
    )
    parser.add_argument(
        "--discover", action="store_true",
        help="List nearby meters with their current reading and exit.",
    )
    parser.add_argument("--duration", type=float, default=10.0, help="Discovery scan time in seconds.")

    output = parser.add_argument_group("output")
    output.add_argument("--output", "-o", metavar="FILE", help="Append TSV lines to FILE instead of stdout.")
    output.add_argument("--json", metavar="FILE", help="Also append records to FILE as JSON Lines.")
    output.add_argument("--http-url", metavar="URL", help="Also POST records to URL.")
    output.add_argument(
        "--sink-errors", choices=("fatal", "warn"), default="fatal",
        help="Stop on output failures, or log them and keep scanning.",
    )

    scan = parser.add_argument_group("scanning")
    scan.add_argument(
        "--min-interval", type=float, default=10.0,
        help="Seconds an unchanged reading from one device is suppressed.",
    )
    scan.add_argument("--max-retries", type=int, default=10, help="Adapter recovery attempts before giving up.")
    scan.add_argument("--backoff-initial", type=float, default=1.0, help="First recovery delay in seconds.")
    scan.add_argument("--backoff-factor", type=float, default=2.0, help="Multiplier applied to each recovery delay.")
    scan.add_argument("--backoff-max", type=float, default=60.0, help="Maximum recovery delay in seconds.")
    scan.add_argument(
        "--poll-interval", type=float, default=0.5,
        help="Longest wait for an advertisement before checking for shutdown.",
    )
    scan.add_argument("--queue-size", type=int, default=256, help="Advertisements buffered before dropping.")
    scan.add_argument(
        "--idle-timeout", type=float, default=300.0,
        help="Log a notice after this many seconds without readings.",
    )
    scan.add_argument(
        "--stall-timeout", type=float, default=None,
        help="Treat the adapter as lost after this many seconds without any advertisement.",
    )
    scan.add_argument("--adapter", default=None, help="Bluetooth adapter to use (e.g. hci0).")
    scan.add_argument("--scanning-mode", choices=SCANNING_MODES, default="passive", help="BLE scanning mode.")

    parser.add_argument(
        "--log-level", default="INFO", choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log verbosity (logs go to stderr).",
    )
    return parser


def configure_logging(level: str):
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT, stream=sys.stderr)


def build_config(args: argparse.Namespace) -> ScanConfig:
    """Translate parsed arguments into a ScanConfig"""
    return ScanConfig(
        allowed_addresses=frozenset(args.addresses),
        min_emit_interval=args.min_interval,
        idle_timeout=args.idle_timeout,
        max_retries=args.max_retries,
        backoff_initial=args.backoff_initial,
        backoff_factor=args.backoff_factor,
        backoff_max=args.backoff_max,
        poll_interval=args.poll_interval,
        queue_size=args.queue_size,
        scanning_mode=args.scanning_mode,
        adapter=args.adapter,
        stall_timeout=args.stall_timeout,
    )


def build_exporter(args: argparse.Namespace) -> ReadingExporterBase:
    """Create the output sink(s) requested on the command line"""
    exporters: List[ReadingExporterBase] = []
    if args.output:
        exporters.append(TsvFileExporter(args.output))
    else:
        exporters.append(TsvExporter())
    if args.json:
        exporters.append(JsonLinesExporter(args.json))
    if args.http_url:
        exporters.append(HttpSender(args.http_url))

    if len(exporters) == 1:
        return exporters[0]
    return MultiExporter(exporters)


def build_session(config: ScanConfig) -> BleakAdapterSession:
    return BleakAdapterSession(
        adapter=config.adapter,
        scanning_mode=config.scanning_mode,
        stall_timeout=config.stall_timeout,
        queue_size=config.queue_size,
    )


def install_signal_handlers(callback: Callable[[], None]):
    """Route SIGINT/SIGTERM to `callback` on the running event loop"""
    loop = asyncio.get_running_loop()

    def handler(signum, frame):
        logger.info(f"Received signal {signal.Signals(signum).name}")
        loop.call_soon_threadsafe(callback)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


async def run_monitor(args: argparse.Namespace, config: ScanConfig) -> int:
    """Scan continuously until interrupted"""
    sink_error_handler = None
    if args.sink_errors == "warn":
        def sink_error_handler(error: SinkError):
            logger.warning(f"Output failed, record dropped: {error}")

    scan_loop = ScanLoop(
        build_session(config),
        build_exporter(args),
        config=config,
        sink_error_handler=sink_error_handler,
    )
    install_signal_handlers(scan_loop.stop)

    try:
        await scan_loop.run()
    except AdapterConstructionError as e:
        logger.critical(f"Bluetooth adapter unavailable: {e}")
        return EXIT_FATAL
    except RetryBudgetExhausted:
        # already reported by the scan loop
        return EXIT_FATAL
    except SinkError as e:
        logger.critical(f"Output failed: {e}")
        return EXIT_FATAL
    return EXIT_OK


async def run_discovery(args: argparse.Namespace, config: ScanConfig) -> int:
    """Print the meters seen within the discovery window"""
    try:
        readings = await discover_meters(
            build_session(config),
            duration=args.duration,
            device_filter=DeviceFilter(config.allowed_addresses),
            poll_interval=config.poll_interval,
        )
    except AdapterConstructionError as e:
        logger.critical(f"Bluetooth adapter unavailable: {e}")
        return EXIT_FATAL
    except AdapterFault as e:
        logger.critical(f"Bluetooth adapter lost during discovery: {e}")
        return EXIT_FATAL

    if not readings:
        logger.warning("No meters found. Check that Bluetooth is enabled and the meter is nearby.")
    for address, reading in sorted(readings.items()):
        print(format_discovery_line(address, reading))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.duration <= 0:
        parser.error("--duration must be positive")
    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    runner = run_discovery if args.discover else run_monitor
    try:
        return asyncio.run(runner(args, config))
    except KeyboardInterrupt:
        return EXIT_OK


def run():
    sys.exit(main())
