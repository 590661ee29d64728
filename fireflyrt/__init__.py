"""Runtime core for a handheld game console: netcode, menu, images, stats and stream helpers."""

__version__ = "0.9.1"

__all__ = [
    "connection",
    "connector",
    "errors",
    "frame_syncer",
    "image",
    "menu",
    "message",
    "ring",
    "stats",
    "utils",
]