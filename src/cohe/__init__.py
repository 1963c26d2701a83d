"""cohe: multi-account rotation and usage tracking for Z.AI and MiniMax."""

__version__ = "0.1.0"
