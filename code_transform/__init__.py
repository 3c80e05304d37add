"""Code transformation job orchestrator."""

__version__ = "0.1.0"
