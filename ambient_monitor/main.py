"""Main Application Entry Point

This module wires the measurement pipeline to its surroundings: the
barometer, the microphone, Redis pub/sub for readings and status, and
start/stop commands.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import redis.asyncio as redis

from ambient_monitor.fusion.aggregator import MeasurementAggregator
from ambient_monitor.models.interfaces import AudioPlatform
from ambient_monitor.output.publishers import RedisReadingPublisher
from ambient_monitor.output.status import StatusNotifier
from ambient_monitor.sensing.pressure_sensor import IioPressureSensor
from ambient_monitor.session import MeasurementSession
from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure root logging to a log file and stdout."""
    log_file = Path(config.get('logging.file', 'logs/ambient_monitor.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, str(config.get('logging.level', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )


class AmbientMonitor:
    """Main orchestrator for the measurement service.

    Coordinates:
    1. Measurement session (altitude model, audio negotiation, sampling loop)
    2. Measurement aggregator (fused reading)
    3. Reading broadcast and status notification over Redis
    4. Barometer polling task
    5. Start/stop command listener

    Attributes:
        aggregator: Shared fused reading
        session: Capture session driven by start/stop commands
        pressure_sensor: Barometer source
        tasks: Running asyncio tasks
    """

    def __init__(self, platform: Optional[AudioPlatform] = None, pressure_sensor: Optional[IioPressureSensor] = None):
        logger.info("Initializing AmbientMonitor...")

        self.redis_url = config.get('redis.url', 'redis://localhost:6379')
        self.command_channel = config.get('redis.command_channel', 'ambient:commands')
        self.microphone_enabled = config.get('audio.microphone_enabled', True)

        self.reading_publisher = RedisReadingPublisher()
        self.status_notifier = StatusNotifier()
        self.aggregator = MeasurementAggregator([self.reading_publisher, self.status_notifier])
        self.session = MeasurementSession(self.aggregator, platform=platform)
        self.pressure_sensor = pressure_sensor or IioPressureSensor()

        self.redis_client: Optional[redis.Redis] = None
        self.tasks = []
        self.shutdown_event = asyncio.Event()
        self._shut_down = False

    async def connect(self) -> None:
        """Create the Redis client and attach the publishers to this loop."""
        self.redis_client = redis.from_url(self.redis_url)
        loop = asyncio.get_running_loop()
        self.reading_publisher.attach(self.redis_client, loop)
        self.status_notifier.attach(self.redis_client, loop)
        logger.info(f"Publishing to Redis at {self.redis_url}")

    def start_session(self) -> None:
        """Handle a Start command."""
        if self.session.is_active():
            logger.info("Start ignored, session already running")
            return
        self.status_notifier.reset()
        self.session.start(microphone_permission=self.microphone_enabled)

    async def stop_session(self) -> None:
        """Handle a Stop command. Joining the sampler may block, so it runs off the loop."""
        await asyncio.to_thread(self.session.stop)

    async def handle_command(self, command) -> None:
        if isinstance(command, bytes):
            command = command.decode('utf-8', errors='replace')
        command = str(command).strip().lower()

        if command == 'start':
            await asyncio.to_thread(self.start_session)
        elif command == 'stop':
            await self.stop_session()
        else:
            logger.warning(f"Unknown command: {command!r}")

    async def listen_for_commands(self) -> None:
        """Consume start/stop commands from the Redis command channel."""
        pubsub = self.redis_client.pubsub()
        try:
            await pubsub.subscribe(self.command_channel)
            logger.info(f"Listening for commands on {self.command_channel}")

            while True:
                try:
                    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    if message:
                        await self.handle_command(message['data'])

                except asyncio.CancelledError:
                    logger.info("Command listener cancelled")
                    break
                except Exception as e:
                    logger.error(f"Error in command listener: {e}", exc_info=True)
                    await asyncio.sleep(1.0)
        finally:
            await pubsub.aclose()

    def start_tasks(self) -> None:
        """Launch the barometer and command listener as independent tasks."""
        self.tasks.append(asyncio.create_task(
            self.pressure_sensor.start(self.session.on_pressure_event),
            name="pressure_sensor"
        ))
        self.tasks.append(asyncio.create_task(
            self.listen_for_commands(),
            name="command_listener"
        ))

    async def monitor_tasks(self) -> None:
        """Log tasks that finish so a failed channel is visible."""
        reported = set()
        while not self.shutdown_event.is_set():
            for task in self.tasks:
                if task.done() and task not in reported:
                    reported.add(task)
                    task_name = task.get_name()
                    if task.cancelled():
                        logger.info(f"Task {task_name} was cancelled")
                    elif task.exception():
                        logger.error(f"Task {task_name} failed with exception: {task.exception()}",
                                     exc_info=task.exception())
                    else:
                        logger.info(f"Task {task_name} completed")

            await asyncio.sleep(1.0)

    async def shutdown(self) -> None:
        """Stop sensing, cancel tasks and close Redis. Safe to call twice."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down AmbientMonitor...")

        self.shutdown_event.set()
        await self.stop_session()

        for task in self.tasks:
            if not task.done():
                task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)

        self.reading_publisher.detach()
        self.status_notifier.detach()
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None

        logger.info("AmbientMonitor shutdown complete")

    async def run(self) -> None:
        """Run until a shutdown signal arrives."""
        try:
            logger.info("=" * 60)
            logger.info("Starting Ambient Monitor")
            logger.info("=" * 60)

            await self.connect()
            await asyncio.to_thread(self.start_session)
            self.start_tasks()

            monitor_task = asyncio.create_task(self.monitor_tasks())
            await self.shutdown_event.wait()
            monitor_task.cancel()

        except Exception as e:
            logger.error(f"Fatal error in main loop: {e}", exc_info=True)
        finally:
            await self.shutdown()


def setup_signal_handlers(monitor: AmbientMonitor) -> None:
    """Setup signal handlers for graceful shutdown."""
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, monitor.shutdown_event.set)


async def main_async() -> None:
    monitor = AmbientMonitor()
    setup_signal_handlers(monitor)
    await monitor.run()


def main() -> None:
    """Main entry point."""
    try:
        setup_logging()
        config.validate()
        asyncio.run(main_async())

    except KeyboardInterrupt:
        logger.info("Application terminated by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
