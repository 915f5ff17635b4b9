# receiver/__init__.py
"""Schema-on-write JSON ingestion service backed by per-database SQLite files."""

__version__ = "0.1.0"
