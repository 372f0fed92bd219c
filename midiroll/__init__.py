"""Real-time MIDI file player with a scrolling piano-roll view."""

__version__ = "0.1.0"
__all__ = ["__version__"]