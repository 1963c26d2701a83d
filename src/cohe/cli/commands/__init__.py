"""cohe CLI commands."""
