"""Builder ID claim models"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from fixr_builder_id.errors import ClaimError, ClaimErrorCode
from fixr_builder_id.models.profile import BuilderProfile
from fixr_builder_id.models.transaction import MintTransaction

class BuilderIDRecord(BaseModel):
    """
    Point-in-time certificate of a minted Builder ID.

    Reputation fields are the values captured at mint time and are never
    refreshed afterwards. minted_at is only ever set by the recorder, never
    defaulted on read. Instances are frozen; the wire format is snake_case
    and to_client() renders the camelCase view used by the mini app.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    fid: int
    username: str
    wallet_address: str
    token_id: Optional[int] = None
    image_url: str = ""
    metadata_url: str = ""
    tx_hash: Optional[str] = None
    minted_at: Optional[datetime] = None
    builder_score: Optional[int] = None
    neynar_score: Optional[float] = None
    talent_score: Optional[float] = None
    ethos_score: Optional[int] = None
    ethos_level: Optional[str] = None
    shipped_count: Optional[int] = None
    power_badge: Optional[bool] = None

    @field_validator('image_url', 'metadata_url', mode='before')
    @classmethod
    def blank_missing_url(cls, value: Any) -> Any:
        return '' if value is None else value

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')

    def to_client(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)

class ClaimState(str, Enum):
    CHECK = "CHECK"
    VERIFYING = "VERIFYING"
    BUILDING_TX = "BUILDING_TX"
    AWAITING_SUBMISSION = "AWAITING_SUBMISSION"
    RECORDING = "RECORDING"
    DONE = "DONE"
    FAILED = "FAILED"

@dataclass
class OwnershipResult:
    authorized: bool
    reason: Optional[ClaimErrorCode] = None

@dataclass
class SaveResult:
    success: bool
    error: Optional[ClaimErrorCode] = None

@dataclass
class ClaimSession:
    """State of one claim attempt, handed back to the caller between steps"""
    fid: int
    wallet_address: str
    state: ClaimState = ClaimState.CHECK
    profile: Optional[BuilderProfile] = None
    message: Optional[str] = None
    timestamp: Optional[int] = None
    transaction: Optional[MintTransaction] = None
    tx_hash: Optional[str] = None
    image_url: str = ""
    record: Optional[BuilderIDRecord] = None
    error: Optional[ClaimError] = None
    cancelled: bool = False

    @property
    def finished(self) -> bool:
        return self.state in (ClaimState.DONE, ClaimState.FAILED)

    def fail(self, error: ClaimError) -> 'ClaimSession':
        self.state = ClaimState.FAILED
        self.error = error
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fid': self.fid,
            'walletAddress': self.wallet_address,
            'state': self.state.value,
            'message': self.message,
            'timestamp': self.timestamp,
            'transaction': self.transaction.to_rpc_params() if self.transaction else None,
            'txHash': self.tx_hash,
            'record': self.record.to_client() if self.record else None,
            'error': self.error.to_dict() if self.error else None,
        }
