"""
Durable background jobs.

This package provides the database-backed job system:
- a single `jobs` table whose state is derived from timestamps and counters
- an atomic claim statement safe across any number of worker processes
- bounded attempts with exponential backoff
- a polling worker with per-process concurrency and graceful drain
"""
