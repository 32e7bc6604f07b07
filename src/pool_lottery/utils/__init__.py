"""Logging, configuration, clocks and crypto helpers."""
