"""Builder ID claim flow: check, verify, build tx, await submission, record"""
import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

from fixr_builder_id.config import Settings
from fixr_builder_id.errors import ClaimError, ClaimErrorCode, WalletProviderError
from fixr_builder_id.models.claim import BuilderIDRecord, ClaimSession, ClaimState
from fixr_builder_id.models.profile import BuilderProfile, BuilderStats, normalize_address
from fixr_builder_id.services.claim_message import (
    CLAIM_MESSAGE_TTL_MS, build_claim_message, now_ms, verify_claim_signature
)
from fixr_builder_id.services.identity import NeynarIdentityProvider
from fixr_builder_id.services.metadata import MetadataPublisher, build_metadata
from fixr_builder_id.services.mint import MintTransactionBuilder
from fixr_builder_id.services.ownership import verify_ownership
from fixr_builder_id.services.stats import BuilderStatsService
from fixr_builder_id.services.storage import ClaimRecordStore
from fixr_builder_id.services.wallet import WalletProvider

logger = logging.getLogger(__name__)

TX_HASH_PATTERN = re.compile(r'^0x[0-9a-fA-F]{64}$')

class ClaimOrchestrator:
    """
    Drives one claim attempt at a time per session.

    Nothing is persisted before RECORDING, so a caller may abandon a session
    (or cancel the awaiting task) at any point before submit() without
    cleanup. Concurrent claims for one FID are settled by the store's unique
    key: the losing attempt returns the winner's record.
    """

    def __init__(self, identity: NeynarIdentityProvider, store: ClaimRecordStore,
                 mint_builder: MintTransactionBuilder, wallet: WalletProvider,
                 stats: Optional[BuilderStatsService] = None,
                 metadata_publisher: Optional[MetadataPublisher] = None,
                 strict_signatures: bool = True,
                 message_ttl_ms: int = CLAIM_MESSAGE_TTL_MS,
                 product: str = "Fixr",
                 clock: Callable[[], int] = now_ms):
        self.identity = identity
        self.store = store
        self.mint_builder = mint_builder
        self.wallet = wallet
        self.stats = stats
        self.metadata_publisher = metadata_publisher
        self.strict_signatures = strict_signatures
        self.message_ttl_ms = message_ttl_ms
        self.product = product
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, store: ClaimRecordStore,
                      wallet: WalletProvider) -> 'ClaimOrchestrator':
        s3_settings = settings.s3_settings
        return cls(
            identity=NeynarIdentityProvider(
                settings.NEYNAR_API_KEY, settings.NEYNAR_API_URL, timeout=settings.HTTP_TIMEOUT
            ),
            store=store,
            mint_builder=MintTransactionBuilder.from_settings(settings),
            wallet=wallet,
            stats=BuilderStatsService.from_settings(settings),
            metadata_publisher=MetadataPublisher(s3_settings) if s3_settings else None,
            strict_signatures=settings.STRICT_SIGNATURE_RECOVERY,
            message_ttl_ms=settings.CLAIM_MESSAGE_TTL_MS,
            product=settings.PRODUCT_NAME,
        )

    @staticmethod
    def _require_state(session: ClaimSession, *states: ClaimState) -> None:
        if session.state not in states:
            raise RuntimeError(
                f"Claim for FID {session.fid} is {session.state.value}, "
                f"expected {' or '.join(state.value for state in states)}"
            )

    async def _existing_record(self, fid: int) -> Optional[BuilderIDRecord]:
        return await asyncio.to_thread(self.store.get_by_fid, fid)

    async def _verified_profile(self, fid: int, wallet_address: str) -> BuilderProfile:
        """Fresh profile fetch plus membership check; fails closed"""
        profile = await self.identity.fetch_profile(fid)
        if profile is None:
            raise ClaimError(ClaimErrorCode.PROFILE_NOT_FOUND)

        ownership = verify_ownership(profile, wallet_address)
        if not ownership.authorized:
            raise ClaimError(
                ownership.reason,
                f"Wallet {wallet_address} is not a verified address for @{profile.username}. "
                "Please verify this wallet on Farcaster first."
            )
        return profile

    async def start(self, fid: int, wallet_address: str, image_url: str = "") -> ClaimSession:
        """Run CHECK, VERIFYING and BUILDING_TX; stops at AWAITING_SUBMISSION"""
        session = ClaimSession(
            fid=fid,
            wallet_address=normalize_address(wallet_address) or wallet_address.lower(),
            image_url=image_url,
        )

        try:
            existing = await self._existing_record(fid)
            if existing:
                logger.info(f"FID {fid} already holds a Builder ID")
                session.record = existing
                session.state = ClaimState.DONE
                return session

            session.state = ClaimState.VERIFYING
            session.profile = await self._verified_profile(fid, session.wallet_address)
            session.timestamp = self.clock()
            session.message = build_claim_message(
                fid, session.wallet_address, session.profile.username, session.timestamp, self.product
            )

            session.state = ClaimState.BUILDING_TX
            await self.mint_builder.preflight(self.wallet, session.wallet_address)
            session.transaction = self.mint_builder.build_mint_transaction(
                fid, session.profile.username, session.wallet_address
            )
        except ClaimError as e:
            logger.info(f"Claim for FID {fid} failed in {session.state.value}: {e.code.value}")
            return session.fail(e)

        session.state = ClaimState.AWAITING_SUBMISSION
        logger.info(f"Claim for FID {fid} ready for submission from {session.wallet_address}")
        return session

    def confirm_signature(self, session: ClaimSession, signature: str,
                          now: Optional[int] = None) -> ClaimSession:
        """Optional check of the signed claim message while awaiting submission"""
        self._require_state(session, ClaimState.AWAITING_SUBMISSION)
        try:
            verify_claim_signature(
                session.message, signature, session.wallet_address, session.timestamp,
                now=self.clock() if now is None else now,
                strict=self.strict_signatures,
                ttl_ms=self.message_ttl_ms,
            )
        except ClaimError as e:
            return session.fail(e)
        return session

    async def request_signature(self, session: ClaimSession) -> ClaimSession:
        """Ask the wallet to personal_sign the claim message, then check it"""
        self._require_state(session, ClaimState.AWAITING_SUBMISSION)
        try:
            signature = await self.wallet.request('personal_sign', [session.message, session.wallet_address])
        except WalletProviderError as e:
            if e.code == WalletProviderError.USER_REJECTED:
                return self.cancel(session)
            logger.error(f"personal_sign failed for FID {session.fid}: {e}")
            return session.fail(ClaimError(ClaimErrorCode.WALLET_UNAVAILABLE))
        return self.confirm_signature(session, signature)

    def cancel(self, session: ClaimSession) -> ClaimSession:
        """User declined in the wallet: back to CHECK, nothing to roll back"""
        if session.state == ClaimState.DONE:
            return session
        logger.info(f"Claim for FID {session.fid} cancelled by user")
        session.state = ClaimState.CHECK
        session.cancelled = True
        session.error = ClaimError(ClaimErrorCode.USER_CANCELLED)
        session.profile = None
        session.message = None
        session.timestamp = None
        session.transaction = None
        return session

    async def send(self, session: ClaimSession) -> ClaimSession:
        """Submit the prepared transaction through the wallet, then record it"""
        self._require_state(session, ClaimState.AWAITING_SUBMISSION)
        try:
            tx_hash = await self.mint_builder.submit(self.wallet, session.transaction)
        except ClaimError as e:
            if e.code == ClaimErrorCode.USER_CANCELLED:
                return self.cancel(session)
            return session.fail(e)
        return await self.submit(session, tx_hash)

    async def submit(self, session: ClaimSession, tx_hash: str) -> ClaimSession:
        """
        External callback with the broadcast tx hash.

        Also accepts a session that FAILED with STORAGE_UNAVAILABLE so only the
        recording step is retried. Late hashes are recorded like any other.
        """
        retrying = (
            session.state == ClaimState.FAILED
            and session.error is not None
            and session.error.code == ClaimErrorCode.STORAGE_UNAVAILABLE
            and session.profile is not None
        )
        if not retrying:
            self._require_state(session, ClaimState.AWAITING_SUBMISSION)
        if not isinstance(tx_hash, str) or not TX_HASH_PATTERN.match(tx_hash):
            raise ValueError(f"Invalid transaction hash: {tx_hash!r}")

        session.tx_hash = tx_hash.lower()
        session.error = None
        session.state = ClaimState.RECORDING
        try:
            session.record = await self._record(
                session.profile, session.wallet_address, session.tx_hash, session.image_url
            )
        except ClaimError as e:
            logger.error(f"Recording Builder ID for FID {session.fid} failed: {e.code.value}")
            return session.fail(e)

        session.state = ClaimState.DONE
        return session

    async def record_claim(self, fid: int, wallet_address: str, tx_hash: str,
                           image_url: str = "") -> ClaimSession:
        """Retry RECORDING alone for a mint whose tx hash is already known"""
        session = ClaimSession(
            fid=fid,
            wallet_address=normalize_address(wallet_address) or wallet_address.lower(),
            image_url=image_url,
        )
        try:
            existing = await self._existing_record(fid)
            if existing:
                session.record = existing
                session.state = ClaimState.DONE
                return session

            session.state = ClaimState.VERIFYING
            session.profile = await self._verified_profile(fid, session.wallet_address)
        except ClaimError as e:
            return session.fail(e)

        session.state = ClaimState.AWAITING_SUBMISSION
        return await self.submit(session, tx_hash)

    async def _snapshot_stats(self, fid: int) -> BuilderStats:
        if self.stats is None:
            return BuilderStats()
        try:
            return await self.stats.fetch_stats(fid)
        except Exception as e:
            logger.error(f"Error fetching builder stats for FID {fid}: {e}")
            return BuilderStats()

    async def _publish_metadata(self, profile: BuilderProfile, stats: BuilderStats, image_url: str) -> str:
        if self.metadata_publisher is None:
            return ""
        metadata = build_metadata(profile, stats, image_url)
        try:
            return await asyncio.to_thread(self.metadata_publisher.publish, profile.fid, metadata)
        except Exception as e:
            # The mint may already be on-chain; record without a metadata URL
            logger.warning(f"Recording FID {profile.fid} without metadata URL: {e}")
            return ""

    async def _record(self, profile: BuilderProfile, wallet_address: str, tx_hash: str,
                      image_url: str) -> BuilderIDRecord:
        stats = await self._snapshot_stats(profile.fid)
        metadata_url = await self._publish_metadata(profile, stats, image_url)

        record = BuilderIDRecord(
            fid=profile.fid,
            username=profile.username,
            wallet_address=wallet_address,
            image_url=image_url,
            metadata_url=metadata_url,
            tx_hash=tx_hash,
            minted_at=datetime.now(timezone.utc),
            builder_score=stats.builder_score,
            neynar_score=profile.neynar_score,
            talent_score=stats.talent_score,
            ethos_score=stats.ethos_score,
            ethos_level=stats.ethos_level,
            shipped_count=stats.shipped_count,
            power_badge=profile.power_badge,
        )

        result = await asyncio.to_thread(self.store.save, record)
        if result.success:
            logger.info(f"Builder ID recorded for @{profile.username} (FID {profile.fid}) tx {tx_hash}")
            return record

        if result.error == ClaimErrorCode.DUPLICATE_CLAIM:
            existing = await self._existing_record(profile.fid)
            if existing:
                logger.info(f"FID {profile.fid} was claimed concurrently; returning existing record")
                return existing
        raise ClaimError(ClaimErrorCode.STORAGE_UNAVAILABLE)
