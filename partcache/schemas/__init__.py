"""Pydantic schemas for upload parts and API requests and responses."""

from partcache.schemas.upload_parts import (
    UploadPart,
    UploadPartKey,
    UploadPartCandidate,
    UploadPartCreate,
    UploadPartResponse,
    ValidPartResponse,
    ListPartsResponse,
    PartIdResponse,
    RemoveByCidsRequest,
    DeletedCountResponse
)
from partcache.schemas.common import ErrorResponse

__all__ = [
    "UploadPart",
    "UploadPartKey",
    "UploadPartCandidate",
    "UploadPartCreate",
    "UploadPartResponse",
    "ValidPartResponse",
    "ListPartsResponse",
    "PartIdResponse",
    "RemoveByCidsRequest",
    "DeletedCountResponse",
    "ErrorResponse"
]
