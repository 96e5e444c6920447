"""Unit tests for the AmbientMonitor orchestrator"""

import asyncio
import threading
from unittest.mock import AsyncMock, Mock, patch

import pytest

from ambient_monitor.main import AmbientMonitor
from tests.fakes import FakePlatform, FakeStream


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def monitor(gate):
    platform = FakePlatform(stream_factory=lambda cfg: FakeStream(cfg, gate=gate))
    pressure_sensor = Mock()
    pressure_sensor.start = AsyncMock(return_value=None)

    monitor = AmbientMonitor(platform=platform, pressure_sensor=pressure_sensor)
    monitor.session.stop_join_timeout = 0.05
    return monitor


@pytest.fixture
def fake_redis():
    """Redis client whose pub/sub yields a single 'stop' command"""
    delivered = []

    async def get_message(**kwargs):
        if not delivered:
            delivered.append(True)
            return {'type': 'message', 'data': b'stop'}
        await asyncio.sleep(0.01)
        return None

    pubsub = Mock()
    pubsub.subscribe = AsyncMock()
    pubsub.get_message = AsyncMock(side_effect=get_message)
    pubsub.aclose = AsyncMock()

    client = Mock()
    client.publish = AsyncMock()
    client.aclose = AsyncMock()
    client.pubsub.return_value = pubsub
    return client


class TestCommands:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, monitor):
        await monitor.handle_command(b'start')
        assert monitor.session.is_active()
        assert monitor.session.is_capturing_audio()

        await monitor.handle_command('STOP\n')
        assert monitor.session.is_active() is False

    @pytest.mark.asyncio
    async def test_unknown_command_is_ignored(self, monitor):
        await monitor.handle_command(b'reboot')
        assert monitor.session.is_active() is False

    def test_start_while_running_does_not_reset_status(self, monitor):
        monitor.status_notifier.reset = Mock()

        monitor.start_session()
        monitor.start_session()

        monitor.status_notifier.reset.assert_called_once()
        monitor.session.stop()

    def test_microphone_disabled_runs_pressure_only(self, monitor):
        monitor.microphone_enabled = False
        monitor.start_session()

        assert monitor.session.is_active()
        assert monitor.session.is_capturing_audio() is False
        monitor.session.stop()


class TestCommandListener:

    @pytest.mark.asyncio
    async def test_listener_dispatches_and_closes(self, monitor, fake_redis):
        monitor.redis_client = fake_redis
        monitor.session.start(microphone_permission=False)

        task = asyncio.create_task(monitor.listen_for_commands())
        await asyncio.sleep(0.1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        pubsub = fake_redis.pubsub.return_value
        pubsub.subscribe.assert_awaited_once_with('ambient:commands')
        pubsub.aclose.assert_awaited_once()
        assert monitor.session.is_active() is False


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_run_until_shutdown(self, monitor, fake_redis):
        with patch('ambient_monitor.main.redis.from_url', return_value=fake_redis):
            asyncio.get_running_loop().call_later(0.2, monitor.shutdown_event.set)
            await asyncio.wait_for(monitor.run(), timeout=5.0)

        monitor.pressure_sensor.start.assert_awaited_once_with(monitor.session.on_pressure_event)
        assert fake_redis.publish.await_count >= 1
        fake_redis.aclose.assert_awaited_once()
        assert monitor.session.is_active() is False
        assert monitor.reading_publisher.redis_client is None
        assert all(task.done() for task in monitor.tasks)

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, monitor, fake_redis):
        monitor.redis_client = fake_redis

        await monitor.shutdown()
        await monitor.shutdown()

        fake_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initial_start_runs_off_the_event_loop(self, monitor, fake_redis):
        loop_thread = threading.get_ident()
        start_threads = []
        start_session = monitor.start_session

        def recording_start():
            start_threads.append(threading.get_ident())
            start_session()
        monitor.start_session = recording_start

        with patch('ambient_monitor.main.redis.from_url', return_value=fake_redis):
            asyncio.get_running_loop().call_later(0.1, monitor.shutdown_event.set)
            await asyncio.wait_for(monitor.run(), timeout=5.0)

        assert len(start_threads) == 1
        assert start_threads[0] != loop_thread
