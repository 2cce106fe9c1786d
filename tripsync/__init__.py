"""Trip sync coordinator: remote-first trip collection with offline fallback and image enrichment."""

__version__ = "1.0.0"
