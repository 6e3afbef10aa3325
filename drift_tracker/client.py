#!/usr/bin/env python3
"""
WebSocket Client for Live Drift Tracking

This module connects to a telemetry feed that streams gyroscope and GPS
messages, feeds them into the drift engine, and drives the engine's
recording tick at a fixed period. Session control (start/stop of reference
and drift recording) comes from the command line or from command messages on
the feed. Recorded data is logged to CSV files by the DataCollector.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from typing import Any, Dict, Optional, Union

import websockets

from .catalog import ReferenceCatalog
from .config import (
    TERM_BLUE,
    TERM_ORANGE,
    TERM_RESET,
    TICK_INTERVAL_SECONDS,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    WS_TIMEOUT_SECONDS,
    WS_URI,
)
from .data_collector import DataCollector
from .engine import DriftEngine
from .errors import DriftTrackerError
from .model import AngleSample, PositionSample, SessionState
from .summary import summarize

STATUS_EVERY_N_TICKS = 10
"""Log a live status line once per second at the default tick rate."""


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class DriftTrackerClient:
    """Live drift tracking with WebSocket sensor feed and CSV logging.

    This class manages the complete live pipeline:
    - WebSocket connection to the telemetry feed
    - Gyro samples into the angle estimator, GPS fixes as last known position
    - Fixed-period recording tick
    - Session control (reference / drift recording)

    Attributes:
        uri: WebSocket URI to connect to.
        engine: Drift engine receiving sensor data and ticks.
        store: DataCollector persisting recorded data.
        mode: Recording mode to start once the first position is known
            ("reference", "drift" or None).
        consent_granted: Tracking consent flag read by the engine.
        should_stop: Flag indicating whether to stop all loops.
    """

    def __init__(
        self,
        uri: str,
        store: DataCollector,
        mode: Optional[str] = None,
        duration: Optional[float] = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the client.

        Args:
            uri: WebSocket URI to connect to (must start with ws:// or wss://).
            store: DataCollector used as the engine's storage collaborator.
            mode: Recording mode to start automatically ("reference" or "drift").
            duration: Stop after this many seconds of recording (None = until
                interrupted or told to stop by the feed).
            tick_interval: Recording tick period (seconds).

        Raises:
            ValueError: If URI format or mode is invalid.
        """
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")
        if mode not in (None, "reference", "drift"):
            raise ValueError(f"Invalid mode: {mode}. Must be 'reference' or 'drift'")

        self.uri: str = uri
        self.mode: Optional[str] = mode
        self.duration: Optional[float] = duration
        self.tick_interval: float = tick_interval
        self.should_stop: bool = False
        self.consent_granted: bool = True

        self.store = store
        self.catalog = ReferenceCatalog(store)
        self.engine = DriftEngine(self.catalog, store, consent=lambda: self.consent_granted)

        self.recording_started_at: Optional[float] = None
        self.tick_count: int = 0

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def process_sensor_message(self, data: Dict[str, Any]) -> None:
        """Route gyro and GPS readings of a sensor message into the engine.

        Args:
            data: Parsed JSON message containing sensor data.
        """
        sensors = data.get("sensors", [])

        if not isinstance(sensors, list):
            logging.warning(f"Invalid sensors data type: expected list, got {type(sensors)}")
            return

        for sensor in sensors:
            sensor_name = sensor.get("name")
            sensor_data = sensor.get("data", [])
            timestamp = sensor.get("timestamp")
            if timestamp is None:
                timestamp = time.time()

            if sensor_name == "gyro" and len(sensor_data) >= 1:
                self.engine.on_angular_rate(AngleSample(float(timestamp), float(sensor_data[0])))

            elif sensor_name == "gps" and len(sensor_data) >= 2:
                speed = float(sensor_data[2]) if len(sensor_data) >= 3 else 0.0
                self.engine.on_position(
                    PositionSample(
                        timestamp=float(timestamp),
                        latitude_deg=float(sensor_data[0]),
                        longitude_deg=float(sensor_data[1]),
                        speed_m_per_sec=speed,
                    )
                )

    def process_command_message(self, data: Dict[str, Any]) -> None:
        """Apply a session control command from the feed.

        Supported commands: start_reference, stop_reference, start_drift,
        stop_drift, stop (shut the client down).
        """
        command = data.get("command")
        if command == "start_reference":
            self.start_recording("reference")
        elif command == "start_drift":
            self.start_recording("drift")
        elif command in ("stop_reference", "stop_drift"):
            self.stop_recording()
        elif command == "stop":
            self.should_stop = True
        else:
            logging.warning(f"Unknown command: {command}")

    def parse_and_route_message(self, message: Union[str, bytes]) -> None:
        """Parse incoming message and route to appropriate handler.

        Args:
            message: Raw JSON message string or bytes from WebSocket.
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)

            message_type = data.get("message_type")

            if message_type == "sensors":
                self.process_sensor_message(data)
            elif message_type == "command":
                self.process_command_message(data)
            elif message_type == "consent":
                self.consent_granted = bool(data.get("granted", False))
                logging.info(f"Tracking consent {'granted' if self.consent_granted else 'revoked'}")
            else:
                logging.debug(f"Received unknown message: {json.dumps(data)}")

        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logging.error(f"Error processing message data: {e}")

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start_recording(self, mode: str) -> bool:
        """Start reference or drift recording, logging any refusal.

        Returns:
            True if recording started.
        """
        try:
            if mode == "reference":
                path = self.engine.start_reference_recording()
                logging.info(f"{TERM_BLUE}✓ Recording reference '{path.name}'{TERM_RESET}")
            else:
                session = self.engine.start_drift_recording()
                logging.info(f"{TERM_BLUE}✓ Recording drift session '{session.name}'{TERM_RESET}")
        except DriftTrackerError as e:
            logging.warning(f"{TERM_ORANGE}Cannot start {mode} recording: {e}{TERM_RESET}")
            return False

        self.recording_started_at = time.monotonic()
        return True

    def stop_recording(self) -> None:
        """Stop whichever recording is running."""
        state = self.engine.state
        try:
            if state is SessionState.RECORDING_REFERENCE:
                path = self.engine.stop_reference_recording()
                logging.info(f"{TERM_BLUE}✓ Reference '{path.name}' saved with {len(path)} points{TERM_RESET}")
            elif state is SessionState.RECORDING_DRIFT:
                session = self.engine.stop_drift_recording()
                logging.info(f"{TERM_BLUE}→ {summarize(session)}{TERM_RESET}")
        except DriftTrackerError as e:
            logging.warning(f"Cannot stop recording: {e}")
        self.recording_started_at = None

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """One recording tick plus auto-start, duration limit and status output."""
        if self.mode is not None and self.engine.state is SessionState.IDLE and self.recording_started_at is None:
            if self.engine.current_position() is not None and self.start_recording(self.mode):
                # Auto-start only once
                self.mode = None

        self.engine.on_tick()
        self.tick_count += 1

        if (
            self.duration is not None
            and self.recording_started_at is not None
            and time.monotonic() - self.recording_started_at >= self.duration
        ):
            self.stop_recording()
            self.should_stop = True

        if self.tick_count % STATUS_EVERY_N_TICKS == 0:
            snapshot = self.engine.snapshot()
            if snapshot["state"] == SessionState.RECORDING_DRIFT.value:
                logging.info(
                    f"Drift {snapshot['drift_angle']:5.1f}°  Speed {snapshot['speed_kmh']:5.1f} km/h"
                )
            else:
                logging.debug(f"Status: {snapshot}")

    async def run_tick_loop(self) -> None:
        """Call ``tick`` at a fixed period until stopped.

        Deadlines are absolute; a slow tick shortens the following sleep.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self.should_stop:
            self.tick()
            next_tick += self.tick_interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def run_receive_loop(self) -> None:
        """Connect to the feed and route messages until stopped.

        Maintains a connection to the WebSocket server with automatic retry logic
        and exponential backoff.
        """
        retry_delay = WS_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to telemetry feed{TERM_RESET}")
                    retry_delay = WS_RETRY_DELAY_SECONDS

                    while not self.should_stop:
                        try:
                            message = await asyncio.wait_for(
                                websocket.recv(), timeout=WS_TIMEOUT_SECONDS
                            )
                            self.parse_and_route_message(message)
                        except asyncio.TimeoutError:
                            # No message received in timeout period, continue
                            continue
                        except websockets.exceptions.ConnectionClosed:
                            logging.warning("Connection closed by server")
                            break

            except (OSError, websockets.exceptions.WebSocketException) as e:
                if self.should_stop:
                    break
                logging.error(f"Connection error: {e}")
                logging.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, WS_MAX_RETRY_DELAY_SECONDS)

    async def run(self) -> None:
        """Run the receive loop and the tick loop until stopped."""
        receiver = asyncio.create_task(self.run_receive_loop())
        ticker = asyncio.create_task(self.run_tick_loop())
        try:
            await ticker
        finally:
            self.should_stop = True
            receiver.cancel()
            try:
                await receiver
            except asyncio.CancelledError:
                pass
            if self.engine.state is not SessionState.IDLE:
                self.stop_recording()

    def stop(self) -> None:
        """Signal the client to stop."""
        self.should_stop = True


async def main(
    uri: str = WS_URI,
    mode: Optional[str] = None,
    duration: Optional[float] = None,
    output_dir: str = ".",
) -> None:
    """Main entry point for the live client.

    Creates a DataCollector and a DriftTrackerClient, sets up signal handlers
    for graceful shutdown, and runs until stopped.

    Args:
        uri: WebSocket URI of the telemetry feed.
        mode: Recording mode to start automatically ("reference" or "drift").
        duration: Recording duration in seconds (None = until interrupted).
        output_dir: Base directory for CSV output.
    """
    with DataCollector(output_dir=output_dir) as store:
        client = DriftTrackerClient(uri, store, mode=mode, duration=duration)

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            client.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await client.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Live drift tracking against a recorded reference path"
    )
    parser.add_argument("--uri", default=WS_URI, help=f"Telemetry feed URI (default: {WS_URI})")
    parser.add_argument(
        "--mode",
        choices=("reference", "drift"),
        default=None,
        help="Start this recording mode once the first GPS fix arrives",
    )
    parser.add_argument(
        "--duration", type=float, default=None, help="Stop after this many seconds of recording"
    )
    parser.add_argument(
        "--output-dir", default=".", help="Base directory for results/ (default: current directory)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    return parser


def run_cli(argv=None) -> None:
    """Parse arguments, configure logging and run the client."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)

    try:
        asyncio.run(
            main(uri=args.uri, mode=args.mode, duration=args.duration, output_dir=args.output_dir)
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    run_cli()
