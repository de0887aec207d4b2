"""Configuration settings for the part cache service."""

import os

from common.constants import DEFAULT_DATABASE_TIMEOUT_SECONDS, DEFAULT_SWEEP_INTERVAL_SECONDS


DATABASE_PATH = os.environ.get("PARTCACHE_DATABASE_PATH", "/app/data/partcache.db")

# Busy timeout for SQLite locks; exceeding it surfaces as StorageUnavailableError
DATABASE_TIMEOUT_SECONDS = float(
    os.environ.get("PARTCACHE_DATABASE_TIMEOUT_SECONDS", str(DEFAULT_DATABASE_TIMEOUT_SECONDS))
)

SWEEP_INTERVAL_SECONDS = int(
    os.environ.get("PARTCACHE_SWEEP_INTERVAL_SECONDS", str(DEFAULT_SWEEP_INTERVAL_SECONDS))
)

PARTCACHE_HOST = os.environ.get("PARTCACHE_HOST", "0.0.0.0")

PARTCACHE_PORT = int(os.environ.get("PARTCACHE_PORT", "8000"))
