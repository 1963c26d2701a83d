"""Constants for the rotation package."""

# Retry wrapper defaults
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
