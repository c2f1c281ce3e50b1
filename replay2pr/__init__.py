"""Replay2PR: turn a bug replay into a verified patch."""

__version__ = "0.1.0"
