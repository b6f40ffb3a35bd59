"""bridle - profile manager for AI coding harness configurations."""

__version__ = "0.1.0"
