"""Live-state layer for the social events dashboard."""

__version__ = "0.1.0"
