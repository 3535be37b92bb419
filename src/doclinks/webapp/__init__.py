"""HTTP API for doclinks."""
