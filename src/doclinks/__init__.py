"""doclinks: keyword indexing and resolution for documentation sites."""

__version__ = "0.3.0"
