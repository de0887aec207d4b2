"""Upload part repository: content-addressed cache of already uploaded parts."""

import time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Type, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from common.constants import SQLITE_MAX_BOUND_PARAMS, UPLOAD_PART_TTL_SECONDS, UPLOAD_PARTS_TABLE
from common.logging_config import get_logger
from partcache.database import SqliteStorage, row_to_dict
from partcache.exceptions import ValidationError
from partcache.schemas.upload_parts import (
    RemoveByCidsRequest,
    UploadPart,
    UploadPartCandidate,
    UploadPartCreate,
)

logger = get_logger(__name__)

# Most recently refreshed row wins; ties go to the newest row
VALID_PART_ORDER = "expire_time DESC, id DESC"


def validate_model(model: Type[BaseModel], data: Union[BaseModel, Mapping[str, Any]]):
    """
    Validate data against model, raising ValidationError with one message per bad field.
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(loc) for loc in err['loc']) or 'part'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid upload part: {'; '.join(errors)}", errors) from e


def _row_to_part(row) -> UploadPart:
    return UploadPart(**row_to_dict(row))


class UploadPartRepository:
    """
    Remembers which parts were already uploaded to the remote service.

    Parts are keyed by (file_hash, file_size) and stay reusable until their
    expire_time. Every public method is a single transaction against the
    injected storage, so the repository can be shared by concurrent upload
    workers and the expiry sweeper without caller-side locking.
    """

    def __init__(
        self,
        storage: SqliteStorage,
        clock: Callable[[], float] = time.time,
        ttl_seconds: int = UPLOAD_PART_TTL_SECONDS
    ):
        self.storage = storage
        self.clock = clock
        self.ttl_seconds = ttl_seconds

    def now(self) -> int:
        return int(self.clock())

    def add(self, part: Union[UploadPartCreate, Mapping[str, Any]]) -> int:
        """
        Insert a part without any dedup check.

        Returns:
            The id of the new row

        Raises:
            ValidationError: If a field is missing or invalid, or expire_time is not in the future
            StorageUnavailableError: If the database cannot be reached
        """
        data = validate_model(UploadPartCreate, part)
        now = self.now()
        if data.expire_time <= now:
            raise ValidationError(
                f"Invalid upload part: expire_time {data.expire_time} is not after {now}",
                ["expire_time: must be in the future"]
            )

        part_id = self.storage.insert(
            UPLOAD_PARTS_TABLE,
            {**data.model_dump(), "created_at": now}
        )
        logger.debug(f"Added upload part [id={part_id}] [cid={data.cid}] [hash={data.file_hash}]")
        return part_id

    def add_or_update(self, candidate: Union[UploadPartCandidate, Mapping[str, Any]]) -> int:
        """
        Register an uploaded part, reusing the live row for the same content.

        If a valid part exists for (file_hash, file_size) its expiry is pushed
        to now + ttl and its cid and filename are left untouched. Otherwise a
        new row is inserted with that expiry. Lookup and write share one
        write-locked transaction.

        Returns:
            The id of the refreshed or inserted row

        Raises:
            ValidationError: If the candidate is malformed
            StorageUnavailableError: If the database cannot be reached
        """
        data = validate_model(UploadPartCandidate, candidate)
        now = self.now()
        expire_time = now + self.ttl_seconds

        with self.storage.transaction(immediate=True) as conn:
            row = self.storage.query_one(
                UPLOAD_PARTS_TABLE,
                "file_hash = ? AND file_size = ? AND expire_time > ?",
                (data.file_hash, data.file_size, now),
                order_by=VALID_PART_ORDER,
                conn=conn
            )
            if row is not None:
                self.storage.update_by_id(
                    UPLOAD_PARTS_TABLE, row["id"], {"expire_time": expire_time}, conn=conn
                )
                logger.debug(f"Refreshed upload part [id={row['id']}] [expire_time={expire_time}]")
                return row["id"]

            part_id = self.storage.insert(
                UPLOAD_PARTS_TABLE,
                {**data.model_dump(), "expire_time": expire_time, "created_at": now},
                conn=conn
            )
            logger.debug(f"Added upload part [id={part_id}] [cid={data.cid}] [hash={data.file_hash}]")
            return part_id

    def find_by_hash(self, file_hash: str, file_size: int) -> List[UploadPart]:
        """Return every part for the pair, expired or not, oldest first."""
        rows = self.storage.query_many(
            UPLOAD_PARTS_TABLE,
            "file_hash = ? AND file_size = ?",
            (file_hash, file_size),
            order_by="id"
        )
        return [_row_to_part(row) for row in rows]

    def find_valid_part_by_hash(self, file_hash: str, file_size: int) -> Optional[UploadPart]:
        """
        Return the part that may be reused for this content, or None.

        A part is valid while expire_time > now. When several are valid the
        one with the latest expire_time wins, then the highest id.
        """
        row = self.storage.query_one(
            UPLOAD_PARTS_TABLE,
            "file_hash = ? AND file_size = ? AND expire_time > ?",
            (file_hash, file_size, self.now()),
            order_by=VALID_PART_ORDER
        )
        return _row_to_part(row) if row is not None else None

    def remove_expired(self) -> int:
        """Delete every part with expire_time <= now; returns the number deleted."""
        deleted = self.storage.delete_where(UPLOAD_PARTS_TABLE, "expire_time <= ?", (self.now(),))
        if deleted:
            logger.info(f"Removed {deleted} expired upload parts")
        return deleted

    def remove_by_cids(self, cids: Iterable[int]) -> int:
        """
        Delete every part whose cid is in cids.

        Used when the remote item owning those chunks was deleted. An empty
        input deletes nothing.

        Raises:
            ValidationError: If any cid is not an int; nothing is deleted
        """
        request = validate_model(RemoveByCidsRequest, {"cids": list(cids)})
        unique_cids = list(set(request.cids))
        if not unique_cids:
            return 0

        deleted = 0
        with self.storage.transaction() as conn:
            for i in range(0, len(unique_cids), SQLITE_MAX_BOUND_PARAMS):
                batch = unique_cids[i : i + SQLITE_MAX_BOUND_PARAMS]
                placeholders = ", ".join("?" for _ in batch)
                deleted += self.storage.delete_where(
                    UPLOAD_PARTS_TABLE, f"cid IN ({placeholders})", batch, conn=conn
                )

        logger.info(f"Removed {deleted} upload parts for {len(unique_cids)} cids")
        return deleted
