"""qtreload - hot-reload coordination for Qt desktop projects."""

__version__ = "0.1.0"
