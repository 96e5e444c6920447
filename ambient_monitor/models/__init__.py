"""Data models and interfaces"""

from ambient_monitor.models.frames import AudioBlock, AudioStreamConfig, DEFAULT_STREAM_CONFIGS
from ambient_monitor.models.readings import FusedReading, StatusNotification
from ambient_monitor.models.enums import AudioSource, AudioEffect, SessionState
from ambient_monitor.models.interfaces import (
    AudioInputStream,
    AudioPlatform,
    ReadingPublisher,
    TransientReadFailure
)

__all__ = [
    # Frames
    "AudioBlock",
    "AudioStreamConfig",
    "DEFAULT_STREAM_CONFIGS",
    # Readings
    "FusedReading",
    "StatusNotification",
    # Enums
    "AudioSource",
    "AudioEffect",
    "SessionState",
    # Interfaces
    "AudioInputStream",
    "AudioPlatform",
    "ReadingPublisher",
    "TransientReadFailure",
]
