"""Domain models for Farcaster builder identity data"""
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

ADDRESS_PATTERN = re.compile(r'^0x[0-9a-f]{40}$')

def normalize_address(address: Optional[str]) -> Optional[str]:
    """Lower-case a hex address; anything but 0x + 40 hex chars is rejected as is"""
    if not isinstance(address, str):
        return None
    candidate = address.lower()
    if not ADDRESS_PATTERN.match(candidate):
        return None
    return candidate

def normalize_addresses(addresses: Iterable[str]) -> FrozenSet[str]:
    """Normalize a collection of addresses, dropping malformed entries"""
    normalized = (normalize_address(address) for address in addresses or ())
    return frozenset(address for address in normalized if address)

@dataclass(frozen=True)
class BuilderProfile:
    """
    Farcaster profile as seen at fetch time.

    Only verified_addresses is security relevant; everything else is
    display metadata or advisory reputation.
    """
    fid: int
    username: str
    display_name: Optional[str] = None
    pfp_url: Optional[str] = None
    bio: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    verified_addresses: FrozenSet[str] = frozenset()
    neynar_score: Optional[float] = None
    power_badge: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'verified_addresses', normalize_addresses(self.verified_addresses))

@dataclass
class BuilderStats:
    """Reputation snapshot captured when a Builder ID is minted"""
    shipped_count: int = 0
    total_engagement: int = 0
    top_topics: List[str] = field(default_factory=list)
    builder_score: int = 0
    talent_score: Optional[float] = None
    ethos_score: Optional[int] = None
    ethos_level: Optional[str] = None
