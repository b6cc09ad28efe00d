"""Real-time translation streaming with multi-provider credentials and gapless speech playback."""

__version__ = "1.0.0"
