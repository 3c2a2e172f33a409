"""Error types, database hints and asyncio task-stream plumbing for a PostgreSQL-backed job queue."""

__version__ = "0.2.0"
__all__ = ["errors", "hints", "streams", "poll_fetcher"]