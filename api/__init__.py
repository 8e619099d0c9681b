"""HTTP API for the attendance portal."""
