"""Pydantic schemas for upload part records and requests."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


@dataclass
class UploadPart:
    """
    One cached part as stored in the upload_parts table.

    Attributes:
        id: Store-assigned row id
        file_hash: Caller-computed fingerprint of the part bytes
        file_size: Byte length of the part
        cid: Chunk id assigned by the remote media service
        filename: Filename the remote service returned for the part
        expire_time: Unix seconds after which the part may not be reused
        created_at: Unix seconds when the row was inserted
    """
    id: int
    file_hash: str
    file_size: int
    cid: int
    filename: str
    expire_time: int
    created_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UploadPartKey(BaseModel):
    """Content key of a part: fingerprint plus byte length."""
    model_config = ConfigDict(extra="forbid")

    file_hash: StrictStr = Field(..., min_length=1)
    file_size: StrictInt = Field(..., ge=0)


class UploadPartCandidate(UploadPartKey):
    """Part reported by the uploader after a successful upload."""
    cid: StrictInt
    filename: StrictStr = Field(..., min_length=1)


class UploadPartCreate(UploadPartCandidate):
    """Fully specified part, including its expiry."""
    expire_time: StrictInt


class UploadPartResponse(BaseModel):
    """Response model for a single part."""
    id: int
    file_hash: str
    file_size: int
    cid: int
    filename: str
    expire_time: int
    created_at: Optional[int] = None


class ValidPartResponse(BaseModel):
    """Response model for a reuse lookup; part is null on a cache miss."""
    part: Optional[UploadPartResponse] = None


class ListPartsResponse(BaseModel):
    """Response model for a diagnostic lookup."""
    parts: List[UploadPartResponse]


class PartIdResponse(BaseModel):
    """Response model for add and add-or-update."""
    id: int


class RemoveByCidsRequest(BaseModel):
    """Request model for purging parts of a deleted remote item."""
    cids: List[StrictInt]


class DeletedCountResponse(BaseModel):
    """Response model for bulk deletions."""
    deleted_count: int
