"""AIHub: chat with several AI providers side by side."""

__version__ = "0.1.0"
