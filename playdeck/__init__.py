"""PlayDeck: playback control across cloud and local music players."""

__version__ = "0.1.0"
