"""Audio package."""

from .sounds import AlarmPlayer, SOUND_NAMES, sound_for_session

__all__ = ["AlarmPlayer", "SOUND_NAMES", "sound_for_session"]
