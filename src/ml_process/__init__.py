"""Decentralised task scheduler for multi-step processing scenarios."""

__version__ = "0.3.0"
