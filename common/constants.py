"""Project-wide constants (cache lifetimes, SQLite limits)."""

UPLOAD_PART_TTL_SECONDS: int = 3 * 24 * 3600  # parts stay reusable for 3 days

UPLOAD_PARTS_TABLE: str = "upload_parts"

SQLITE_MAX_BOUND_PARAMS: int = 500  # stay under SQLite parameter limit

DEFAULT_SWEEP_INTERVAL_SECONDS: int = 3600

DEFAULT_DATABASE_TIMEOUT_SECONDS: float = 5.0
