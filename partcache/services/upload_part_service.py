"""Upload part service: best-effort dedup around a part upload."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Tuple

from common.logging_config import get_logger
from partcache.exceptions import StorageUnavailableError, ValidationError
from partcache.repositories.upload_part_repository import UploadPartRepository, validate_model
from partcache.schemas.upload_parts import UploadPartKey

logger = get_logger(__name__)

UploadCallable = Callable[[], Awaitable[Tuple[int, str]]]


@dataclass
class PartUploadResult:
    cid: int
    filename: str
    reused: bool


class UploadPartService:
    """
    Wraps part uploads with the part cache.

    The cache never blocks an upload: if the database is unavailable the part
    is uploaded directly and simply not registered.
    """

    def __init__(self, repository: UploadPartRepository):
        self.repository = repository

    async def upload_part(self, file_hash: str, file_size: int, upload: UploadCallable) -> PartUploadResult:
        """
        Reuse a cached part for this content or upload it and remember it.

        Args:
            file_hash: Fingerprint of the part bytes
            file_size: Byte length of the part
            upload: Coroutine function performing the real upload, returning (cid, filename)

        Returns:
            PartUploadResult with reused=True when the network upload was skipped

        Raises:
            ValidationError: If file_hash or file_size is malformed, before any upload
        """
        validate_model(UploadPartKey, {"file_hash": file_hash, "file_size": file_size})

        try:
            cached = await asyncio.to_thread(
                self.repository.find_valid_part_by_hash, file_hash, file_size
            )
        except StorageUnavailableError as e:
            logger.warning(f"Part cache unavailable, uploading without dedup [hash={file_hash}]: {e}")
            cached = None

        if cached is not None:
            logger.info(f"Reusing uploaded part [cid={cached.cid}] [hash={file_hash}] [size={file_size}]")
            await self._register(file_hash, file_size, cached.cid, cached.filename)
            return PartUploadResult(cid=cached.cid, filename=cached.filename, reused=True)

        cid, filename = await upload()
        await self._register(file_hash, file_size, cid, filename)
        return PartUploadResult(cid=cid, filename=filename, reused=False)

    async def forget_remote_parts(self, cids: Iterable[int]) -> int:
        """
        Purge cached parts whose remote chunks were deleted.

        Returns:
            Number of parts removed (0 when the cache is unavailable)
        """
        try:
            return await asyncio.to_thread(self.repository.remove_by_cids, list(cids))
        except StorageUnavailableError as e:
            logger.warning(f"Part cache unavailable, stale parts left to expire: {e}")
            return 0

    async def _register(self, file_hash: str, file_size: int, cid: int, filename: str) -> None:
        try:
            await asyncio.to_thread(
                self.repository.add_or_update,
                {"file_hash": file_hash, "file_size": file_size, "cid": cid, "filename": filename}
            )
        except StorageUnavailableError as e:
            logger.warning(f"Failed to register uploaded part [cid={cid}] [hash={file_hash}]: {e}")
        except ValidationError as e:
            logger.warning(f"Uploaded part not cached, invalid upload result [cid={cid!r}] [hash={file_hash}]: {e}")
