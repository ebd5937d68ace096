"""Core utilities: logging, exceptions and formatting."""
