"""HTTP API for planning and rollback planning."""
