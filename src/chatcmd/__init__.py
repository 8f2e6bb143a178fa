"""Chat command resolution, validation, cooldowns and dispatch."""

__version__ = "0.3.0"
