"""Wallet ownership verification against Farcaster verified addresses"""
import logging
from typing import Optional

from fixr_builder_id.errors import ClaimErrorCode
from fixr_builder_id.models.claim import OwnershipResult
from fixr_builder_id.models.profile import BuilderProfile, normalize_address

logger = logging.getLogger(__name__)

def verify_ownership(profile: Optional[BuilderProfile], wallet_address: str) -> OwnershipResult:
    """
    Decide whether wallet_address may act for profile.fid.

    Authorized iff the normalized address is in the profile's verified set.
    This is the security boundary of the claim flow; a signature never
    substitutes for it.
    """
    if profile is None:
        return OwnershipResult(authorized=False, reason=ClaimErrorCode.PROFILE_NOT_FOUND)

    normalized = normalize_address(wallet_address)
    if normalized is None:
        logger.info(f"Malformed wallet address {wallet_address!r} for FID {profile.fid}")
        return OwnershipResult(authorized=False, reason=ClaimErrorCode.WALLET_NOT_VERIFIED)

    if normalized not in profile.verified_addresses:
        logger.info(f"Wallet {normalized} NOT in verified addresses for FID {profile.fid}")
        logger.info(f"Verified addresses: {', '.join(sorted(profile.verified_addresses)) or 'none'}")
        return OwnershipResult(authorized=False, reason=ClaimErrorCode.WALLET_NOT_VERIFIED)

    return OwnershipResult(authorized=True)
