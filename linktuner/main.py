#!/usr/bin/env python3
"""
LinkTuner - Point-to-point radio link frequency scanner

Main entry point for the application.

Modes:
    1. **Service** (default)
       - FastAPI JSON API plus WebSocket push of progress, status, trace
         and result events
       - Sweeps run on a worker thread owned by the ScanController
       - Cleanup loop prunes old sweep history every 6 hours

    2. **Headless** (``--headless``)
       - Loads a JSON settings preset, connects, runs one sweep with
         results logged and persisted, then exits
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn

from config import (
    APP_VERSION,
    DEBUG_MODE,
    LOG_BACKUP_COUNT,
    LOG_DATE_FORMAT,
    LOG_FILE,
    LOG_FORMAT,
    LOG_MAX_BYTES,
    RESULT_RETENTION_DAYS,
    WEB_HOST,
    WEB_PORT,
)

from modules import (
    CallbackObserver,
    LoggingObserver,
    MultiObserver,
    ScanController,
    ScanResult,
    ScanSettings,
    ScanState,
    init_database,
    load_settings,
    save_settings,
)
from modules.observers import EVENT_PROGRESS, EVENT_RESULT, EVENT_STATUS, EVENT_TRACE

from dashboard import create_app
from dashboard.websocket import (
    broadcast_progress,
    broadcast_result,
    broadcast_status,
    broadcast_trace,
)

PRUNE_INTERVAL_SECONDS = 6 * 60 * 60


def setup_logging(verbose: bool = False) -> None:
    """
    Setup application logging.

    Args:
        verbose: Enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    # Create formatters and handlers
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    # File handler with rotation
    file_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Suppress noisy libraries
    logging.getLogger('paramiko').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    logging.info("Logging initialized")


logger = logging.getLogger(__name__)


def _log_broadcast_failure(future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Event broadcast failed: {error}")


class LinkTuner:
    """Main application class for LinkTuner."""

    def __init__(self, host: str = WEB_HOST, port: int = WEB_PORT):
        """
        Initialize LinkTuner application.

        Args:
            host: Web server bind address
            port: Web server port
        """
        self.host = host
        self.port = port
        self.running = False
        self.prune_task: Optional[asyncio.Task] = None
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None

        logger.info(f"Initializing LinkTuner v{APP_VERSION}")

        self.db = init_database()
        self.controller = ScanController(
            sink=self.db,
            observer=MultiObserver([
                LoggingObserver(),
                CallbackObserver(self._on_scan_event),
            ]),
        )
        self.app = self._build_app()

    # ------------------------------------------------------------------
    # FastAPI app construction with lifespan
    # ------------------------------------------------------------------

    def _build_app(self):
        """Create the FastAPI app, wiring in the lifespan context manager."""

        @asynccontextmanager
        async def lifespan(app):
            """Manage startup and shutdown of background tasks."""
            logger.info("Service starting")

            self.running = True
            self._event_loop = asyncio.get_running_loop()
            self.prune_task = asyncio.create_task(self.prune_loop())

            yield  # application is running

            # --- Shutdown ---
            logger.info("Service stopping: ending any sweep and closing the router session")
            self.running = False
            self._event_loop = None

            await asyncio.get_running_loop().run_in_executor(None, self.controller.disconnect)

            if self.prune_task is not None:
                self.prune_task.cancel()
                try:
                    await self.prune_task
                except asyncio.CancelledError:
                    pass

            logger.info("Service stopped")

        return create_app(
            db_manager=self.db,
            controller=self.controller,
            lifespan=lifespan,
        )

    # ------------------------------------------------------------------
    # Scan event handler (called from the scan worker thread)
    # ------------------------------------------------------------------

    def _on_scan_event(self, event_type: str, payload) -> None:
        """Hand a sweep event over to the event loop for WebSocket delivery."""
        loop = self._event_loop
        if loop is None or loop.is_closed():
            return

        if event_type == EVENT_PROGRESS:
            coro = broadcast_progress(payload)
        elif event_type == EVENT_STATUS:
            coro = broadcast_status(payload)
        elif event_type == EVENT_TRACE:
            coro = broadcast_trace(payload)
        elif event_type == EVENT_RESULT:
            coro = broadcast_result(payload.to_dict())
        else:
            return

        future = asyncio.run_coroutine_threadsafe(coro, loop)
        future.add_done_callback(_log_broadcast_failure)

    # ------------------------------------------------------------------
    # Background: sweep history pruning
    # ------------------------------------------------------------------

    async def prune_loop(self) -> None:
        """Delete sweeps older than the retention period, every few hours."""
        logger.info(
            "History pruning every %d s, keeping %d days", PRUNE_INTERVAL_SECONDS, RESULT_RETENTION_DAYS
        )
        loop = asyncio.get_running_loop()

        while self.running:
            try:
                await asyncio.sleep(PRUNE_INTERVAL_SECONDS)
                if not self.running:
                    break
                if self.controller.is_running():
                    logger.debug("Sweep in progress, pruning postponed")
                    continue

                stats = await loop.run_in_executor(
                    None, self.db.cleanup_old_data, RESULT_RETENTION_DAYS
                )
                if stats["runs_deleted"]:
                    logger.info(
                        f"Pruned {stats['runs_deleted']} sweeps "
                        f"({stats['results_deleted']} results)"
                    )

            except asyncio.CancelledError:
                break

            except Exception as e:
                logger.error(f"History pruning failed: {e}", exc_info=True)

        logger.debug("History pruning stopped")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Run the web service."""
        logger.info(f"Starting web server on {self.host}:{self.port}")

        try:
            uvicorn.run(
                self.app,
                host=self.host,
                port=self.port,
                log_level="info",
                access_log=True,
            )
        except Exception as e:
            logger.error(f"Server error: {e}", exc_info=True)
        finally:
            self.running = False
            logger.info("LinkTuner shut down")


def _print_result(event_type: str, payload) -> None:
    if event_type == EVENT_RESULT and isinstance(payload, ScanResult):
        print(
            f"[{payload.status}] {payload.frequency} MHz"
            f" {payload.wireless_protocol or '-'} {payload.channel_width or '-'}"
            f" signal={payload.signal_strength} noise={payload.noise_floor}"
            f" snr={payload.signal_to_noise_ratio} ccq={payload.ccq}"
            f" ping={payload.ping_avg_ms}ms loss={payload.ping_loss_percent}%"
            + (f" error={payload.error_message}" if payload.error_message else "")
        )


def run_headless(settings: ScanSettings) -> int:
    """
    Run one sweep without the web service.

    Returns:
        Process exit code
    """
    errors = settings.validate()
    if errors:
        for error in errors:
            logger.error(f"Invalid setting: {error}")
        return 2

    controller = ScanController(
        sink=init_database(),
        observer=MultiObserver([LoggingObserver(), CallbackObserver(_print_result)]),
    )

    def signal_handler(sig, frame):
        logger.info("Stop signal received (%s), restoring radio settings", signal.Signals(sig).name)
        controller.stop_scan()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not controller.connect(settings):
        failure = controller.last_failure
        logger.error(f"Could not connect: {failure}")
        return 1

    try:
        controller.start_scan(settings)
        # Join in slices so signal handlers get a chance to run
        while controller.is_running():
            controller.wait(1.0)
        report = controller.last_report
    finally:
        controller.disconnect()

    if report is None:
        return 1
    if report.available_interfaces and report.state == ScanState.IDLE:
        logger.error(f"Available interfaces: {', '.join(report.available_interfaces)}")
    if report.error:
        logger.error(str(report.error))
    logger.info(f"Sweep finished: {report.state.value}, {len(report.results)} results")
    return 0 if report.state in (ScanState.DONE, ScanState.CANCELLED) else 1


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="LinkTuner - Point-to-point radio link frequency scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --port 8080 --verbose
  python main.py --write-defaults preset.json
  LINKTUNER_PASSWORD=secret python main.py --headless --settings preset.json
        """
    )

    parser.add_argument(
        '--host',
        type=str,
        default=WEB_HOST,
        help=f'Web server bind address (default: {WEB_HOST})'
    )

    parser.add_argument(
        '-p', '--port',
        type=int,
        default=WEB_PORT,
        help=f'Web server port (default: {WEB_PORT})'
    )

    parser.add_argument(
        '--headless',
        action='store_true',
        help='Run one sweep from a settings preset and exit'
    )

    parser.add_argument(
        '-s', '--settings',
        type=str,
        default=None,
        help='JSON settings preset for --headless'
    )

    parser.add_argument(
        '--password',
        type=str,
        default=None,
        help='Router password (default: $LINKTUNER_PASSWORD or the preset)'
    )

    parser.add_argument(
        '--write-defaults',
        type=str,
        metavar='PATH',
        default=None,
        help='Write a default settings preset to PATH and exit'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'LinkTuner {APP_VERSION}'
    )

    args = parser.parse_args()

    setup_logging(verbose=args.verbose or DEBUG_MODE)

    if args.write_defaults:
        sys.exit(0 if save_settings(ScanSettings.defaults(), args.write_defaults) else 1)

    if args.headless:
        settings = load_settings(args.settings) if args.settings else ScanSettings.defaults()
        password = args.password or os.getenv("LINKTUNER_PASSWORD")
        if password:
            settings = settings.with_overrides(password=password)
        sys.exit(run_headless(settings))

    # Create and run application
    try:
        app = LinkTuner(host=args.host, port=args.port)
        app.run()

    except KeyboardInterrupt:
        logger.info("Application stopped by user")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
