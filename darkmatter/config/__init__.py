"""Runtime paths and environment-driven settings."""
