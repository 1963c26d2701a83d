"""Core utilities shared across cohe."""

from cohe.core.logging import setup_logging


__all__ = ["setup_logging"]
