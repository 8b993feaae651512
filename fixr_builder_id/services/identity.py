"""Farcaster identity lookups via the Neynar API"""
import logging
from typing import Any, Dict, Optional

import httpx

from fixr_builder_id.models.profile import BuilderProfile

logger = logging.getLogger(__name__)

def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default

def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}

def parse_profile(payload: Any) -> Optional[BuilderProfile]:
    """
    Build a BuilderProfile from a Neynar bulk-user response.

    Missing or malformed fields degrade to empty values. Returns None when the
    payload has no usable user.
    """
    if not isinstance(payload, dict):
        return None
    users = payload.get('users')
    if not isinstance(users, list) or not users or not isinstance(users[0], dict):
        return None

    user = users[0]
    fid = _as_int(user.get('fid'))
    if fid <= 0:
        return None

    addresses = _section(user, 'verified_addresses').get('eth_addresses')
    if not isinstance(addresses, list):
        addresses = []

    bio = _section(_section(user, 'profile'), 'bio').get('text')

    return BuilderProfile(
        fid=fid,
        username=str(user.get('username') or ''),
        display_name=user.get('display_name'),
        pfp_url=user.get('pfp_url'),
        bio=bio if isinstance(bio, str) else None,
        follower_count=_as_int(user.get('follower_count')),
        following_count=_as_int(user.get('following_count')),
        verified_addresses=frozenset(a for a in addresses if isinstance(a, str)),
        neynar_score=_as_float(_section(user, 'experimental').get('neynar_user_score')),
        power_badge=user.get('power_badge') is True,
    )

class NeynarIdentityProvider:
    """
    Read-only Farcaster profile lookups.

    Every failure mode (transport error, non-2xx, bad payload) is reported as
    None so callers can only ever treat an unknown state as "not verified".
    """

    DEFAULT_BASE_URL = "https://api.neynar.com/v2"

    def __init__(self, api_key: Optional[str], base_url: Optional[str] = None,
                 timeout: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        if not api_key:
            logger.warning("NEYNAR_API_KEY not set - profile lookups will fail")
        self.api_key = api_key or ''
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip('/')
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    def _get_headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "x-api-key": self.api_key,
        }

    async def fetch_profile(self, fid: int) -> Optional[BuilderProfile]:
        """Fetch a fresh profile for fid, or None when it cannot be established"""
        if isinstance(fid, bool) or not isinstance(fid, int) or fid <= 0:
            logger.warning(f"Rejecting invalid FID: {fid!r}")
            return None

        try:
            response = await self._client.get(
                f"{self.base_url}/farcaster/user/bulk",
                params={"fids": str(fid)},
                headers=self._get_headers(),
            )
        except httpx.HTTPError as e:
            logger.error(f"Neynar user fetch failed for FID {fid}: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Neynar user fetch failed: {response.status_code}")
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Neynar returned malformed JSON for FID {fid}")
            return None

        profile = parse_profile(payload)
        if profile is None:
            logger.info(f"No Farcaster user found for FID {fid}")
        elif profile.fid != fid:
            logger.error(f"Neynar returned FID {profile.fid} for requested FID {fid}")
            return None
        return profile

    async def aclose(self) -> None:
        await self._client.aclose()
