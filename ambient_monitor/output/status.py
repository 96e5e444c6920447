"""Persistent status notification

Renders the latest reading as a two-line status text. The notification is
refreshed on every reading but only the first one of a session raises an
alert; later updates are visual refreshes. Consecutive identical texts are
not re-sent.
"""

import json
import logging
import math
from typing import Optional

from ambient_monitor.models.readings import FusedReading, StatusNotification
from ambient_monitor.output.publishers import RedisChannelPublisher
from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)

PLACEHOLDER = "--"


def _fmt(value: Optional[float], fmt: str) -> str:
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    return format(value, fmt)


def render_status(reading: FusedReading) -> StatusNotification:
    """Format a reading for the notification, with "--" for missing fields."""
    title = f"Pressure: {_fmt(reading.pressure_hpa, '.2f')} hPa"
    text = f"Altitude: {_fmt(reading.altitude_m, '.1f')} m | Sound: {_fmt(reading.decibel, '.1f')} dB"
    return StatusNotification(title=title, text=text)


def initial_status() -> StatusNotification:
    return StatusNotification(title="Ambient monitor", text="Initializing sensors...", alert=True)


class StatusNotifier(RedisChannelPublisher):
    """Publishes the status notification on every reading change.

    Attributes:
        current: Last notification sent (None before the first one)
    """

    def __init__(self, channel: Optional[str] = None, redis_client=None, loop=None):
        super().__init__(
            channel or config.get('redis.status_channel', 'ambient:status'),
            redis_client=redis_client,
            loop=loop
        )
        self.current: Optional[StatusNotification] = None
        self._alerted = False

    def reset(self) -> None:
        """Start a new session: show the initial text and alert once more."""
        self._alerted = False
        self.current = None
        self._send_notification(initial_status())

    def _send_notification(self, notification: StatusNotification) -> None:
        if notification.alert:
            self._alerted = True
        self.current = notification
        self._submit(json.dumps(notification.to_payload()))

    def publish(self, reading: FusedReading) -> None:
        rendered = render_status(reading)
        if self.current is not None and (rendered.title, rendered.text) == (self.current.title, self.current.text):
            return

        notification = StatusNotification(rendered.title, rendered.text, alert=not self._alerted)
        logger.debug(f"Status: {notification.title} / {notification.text}")
        self._send_notification(notification)
