"""padhooks: debounced webhook notifications for collaborative pad edits."""

__version__ = "0.1.0"
