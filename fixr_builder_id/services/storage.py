"""Claim record storage: one Builder ID per FID"""
import logging
from abc import ABC, abstractmethod
from datetime import timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fixr_builder_id.db import Database
from fixr_builder_id.errors import ClaimError, ClaimErrorCode
from fixr_builder_id.models.claim import BuilderIDRecord, SaveResult
from fixr_builder_id.models.db import BuilderIDRow

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

def clamp_limit(limit: int) -> int:
    return max(1, min(int(limit), MAX_PAGE_SIZE))

class ClaimRecordStore(ABC):
    """
    Single source of truth for "has this FID minted".

    Records are insert-only. save() must reject a second record for the same
    FID at the storage layer, not only through a prior exists() check.
    """

    @abstractmethod
    def get_by_fid(self, fid: int) -> Optional[BuilderIDRecord]:
        ...

    def exists(self, fid: int) -> bool:
        return self.get_by_fid(fid) is not None

    @abstractmethod
    def save(self, record: BuilderIDRecord) -> SaveResult:
        ...

    @abstractmethod
    def list_holders(self, limit: int = 20, offset: int = 0) -> List[BuilderIDRecord]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...

class SqlClaimStore(ClaimRecordStore):
    """Handles Builder ID database operations"""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _to_record(row: BuilderIDRow) -> BuilderIDRecord:
        minted_at = row.minted_at
        if minted_at is not None and minted_at.tzinfo is None:
            # SQLite drops the offset; values are always written in UTC
            minted_at = minted_at.replace(tzinfo=timezone.utc)
        return BuilderIDRecord(
            fid=row.fid,
            username=row.username,
            wallet_address=row.wallet_address,
            token_id=row.token_id,
            image_url=row.image_url or '',
            metadata_url=row.metadata_url or '',
            tx_hash=row.tx_hash,
            minted_at=minted_at,
            builder_score=row.builder_score,
            neynar_score=row.neynar_score,
            talent_score=row.talent_score,
            ethos_score=row.ethos_score,
            ethos_level=row.ethos_level,
            shipped_count=row.shipped_count,
            power_badge=row.power_badge,
        )

    @staticmethod
    def _to_row(record: BuilderIDRecord) -> BuilderIDRow:
        return BuilderIDRow(**record.model_dump())

    def get_by_fid(self, fid: int) -> Optional[BuilderIDRecord]:
        try:
            with self.database.session() as session:
                row = session.query(BuilderIDRow).filter_by(fid=fid).first()
                return self._to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Database error loading Builder ID for FID {fid}: {e}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

    def save(self, record: BuilderIDRecord) -> SaveResult:
        """Insert a new record; a second record for the same FID is rejected"""
        if record.minted_at is None:
            raise ValueError(f"Builder ID for FID {record.fid} has no mint time")
        try:
            with self.database.session() as session:
                session.add(self._to_row(record))
                session.flush()
            logger.info(f"Stored Builder ID for FID {record.fid} (@{record.username})")
            return SaveResult(success=True)
        except IntegrityError:
            logger.info(f"Builder ID for FID {record.fid} already recorded")
            return SaveResult(success=False, error=ClaimErrorCode.DUPLICATE_CLAIM)
        except SQLAlchemyError as e:
            logger.error(f"Database error storing Builder ID for FID {record.fid}: {e}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

    def list_holders(self, limit: int = 20, offset: int = 0) -> List[BuilderIDRecord]:
        try:
            with self.database.session() as session:
                rows = (
                    session.query(BuilderIDRow)
                    .order_by(BuilderIDRow.minted_at.desc(), BuilderIDRow.fid.desc())
                    .offset(max(0, int(offset)))
                    .limit(clamp_limit(limit))
                    .all()
                )
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Database error listing Builder ID holders: {e}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)

    def count(self) -> int:
        try:
            with self.database.session() as session:
                return session.query(func.count(BuilderIDRow.id)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Database error counting Builder IDs: {e}")
            raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
