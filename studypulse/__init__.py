"""StudyPulse: a drift-corrected study timer."""

__version__ = "0.1.0"
