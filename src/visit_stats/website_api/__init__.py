"""HTTP API for recording visits and reading per-country statistics."""
