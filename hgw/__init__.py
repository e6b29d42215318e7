"""Hack-grow-weaken batch scheduler over a simulated network."""

__version__ = "0.1.0"
