"""Repository layer for data access."""

from partcache.repositories.upload_part_repository import UploadPartRepository

__all__ = [
    "UploadPartRepository",
]
