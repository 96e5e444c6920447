"""Enumerations for audio sources, effects and session state"""

from enum import Enum


class AudioSource(Enum):
    """Kinds of microphone input a platform may offer"""
    RAW_UNPROCESSED_MIC = "raw_unprocessed_mic"  # No platform-side conditioning
    STANDARD_MIC = "standard_mic"


class AudioEffect(Enum):
    """Platform signal conditioning applied to an input session"""
    AUTOMATIC_GAIN_CONTROL = "automatic_gain_control"
    NOISE_SUPPRESSOR = "noise_suppressor"
    ACOUSTIC_ECHO_CANCELER = "acoustic_echo_canceler"


class SessionState(Enum):
    """Lifecycle of a capture session"""
    IDLE = "idle"
    SENSING = "sensing"
