"""Service layer for business logic."""

from partcache.services.upload_part_service import PartUploadResult, UploadPartService

__all__ = [
    "PartUploadResult",
    "UploadPartService",
]
