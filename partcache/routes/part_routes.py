"""Upload part routes for the upload orchestrator and scheduler."""

from fastapi import APIRouter, Depends, Query, Request, status

from common.logging_config import get_logger
from partcache.repositories.upload_part_repository import UploadPartRepository
from partcache.schemas.common import ErrorResponse
from partcache.schemas.upload_parts import (
    DeletedCountResponse,
    ListPartsResponse,
    PartIdResponse,
    RemoveByCidsRequest,
    UploadPartCandidate,
    UploadPartCreate,
    UploadPartResponse,
    ValidPartResponse,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/parts",
    tags=["parts"],
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    }
)


def get_upload_part_repository(request: Request) -> UploadPartRepository:
    """Dependency to get the repository bound to this app"""
    return request.app.state.upload_parts


@router.get("/valid", response_model=ValidPartResponse)
def get_valid_part(
    file_hash: str = Query(..., min_length=1),
    file_size: int = Query(..., ge=0),
    repository: UploadPartRepository = Depends(get_upload_part_repository)
):
    """
    Return the reusable part for this content; part is null on a cache miss.
    """
    part = repository.find_valid_part_by_hash(file_hash, file_size)
    if part is None:
        return ValidPartResponse(part=None)
    return ValidPartResponse(part=UploadPartResponse(**part.to_dict()))


@router.get("", response_model=ListPartsResponse)
def list_parts(
    file_hash: str = Query(..., min_length=1),
    file_size: int = Query(..., ge=0),
    repository: UploadPartRepository = Depends(get_upload_part_repository)
):
    parts = repository.find_by_hash(file_hash, file_size)
    return ListPartsResponse(parts=[UploadPartResponse(**part.to_dict()) for part in parts])


@router.post(
    "",
    response_model=PartIdResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}}
)
def register_part(
    candidate: UploadPartCandidate,
    repository: UploadPartRepository = Depends(get_upload_part_repository)
):
    """
    Register an uploaded part, refreshing the live row for the same content.
    """
    return PartIdResponse(id=repository.add_or_update(candidate))


@router.post(
    "/records",
    response_model=PartIdResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}}
)
def add_part(
    part: UploadPartCreate,
    repository: UploadPartRepository = Depends(get_upload_part_repository)
):
    return PartIdResponse(id=repository.add(part))


@router.post("/remove-by-cids", response_model=DeletedCountResponse)
def remove_parts_by_cids(
    body: RemoveByCidsRequest,
    repository: UploadPartRepository = Depends(get_upload_part_repository)
):
    """
    Purge cached parts of a remote item that was deleted upstream.
    """
    deleted = repository.remove_by_cids(body.cids)
    return DeletedCountResponse(deleted_count=deleted)


@router.post("/sweep", response_model=DeletedCountResponse)
def sweep_expired_parts(repository: UploadPartRepository = Depends(get_upload_part_repository)):
    deleted = repository.remove_expired()
    return DeletedCountResponse(deleted_count=deleted)
