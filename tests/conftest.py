"""
Shared fixtures for the Builder ID claim tests.
"""
from typing import Any, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from fixr_builder_id.db import Database
from fixr_builder_id.errors import WalletProviderError
from fixr_builder_id.models.profile import BuilderProfile
from fixr_builder_id.orchestrator import ClaimOrchestrator
from fixr_builder_id.services.mint import MintTransactionBuilder
from fixr_builder_id.services.storage import SqlClaimStore
from fixr_builder_id.services.wallet import WalletProvider

VERIFIED_WALLET = "0xABCDEF0123456789ABCDEF0123456789ABCDEF01"
OTHER_WALLET = "0x1111111111111111111111111111111111111111"
CONTRACT = "0xbe2940989E203FE1cfD75e0bAa1202D58A273956"
TX_HASH = "0x" + "ab" * 32
BASE_CHAIN_ID = 8453
MINT_PRICE = 100_000_000_000_000
GAS_BUFFER = 100_000_000_000_000
NOW_MS = 1_700_000_000_000

class FakeWallet(WalletProvider):
    """Scriptable EIP-1193 provider recording every method it receives"""

    def __init__(self, chain_id: int = BASE_CHAIN_ID, balance: int = 10 ** 18,
                 can_switch: bool = True, reject_send: bool = False, tx_hash: str = TX_HASH,
                 send_error: Optional[int] = None, sign_error: Optional[int] = None):
        self.chain = chain_id
        self.balance = balance
        self.can_switch = can_switch
        self.reject_send = reject_send
        self.tx_hash = tx_hash
        self.send_error = send_error
        self.sign_error = sign_error
        self.calls: List[str] = []
        self.sent: List[dict] = []

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self.calls.append(method)
        if method == 'eth_chainId':
            return hex(self.chain)
        if method == 'wallet_switchEthereumChain':
            if not self.can_switch:
                raise WalletProviderError(4001, 'User rejected the request.')
            self.chain = int(params[0]['chainId'], 16)
            return None
        if method == 'eth_getBalance':
            return hex(self.balance)
        if method == 'eth_requestAccounts':
            return [VERIFIED_WALLET]
        if method == 'eth_sendTransaction':
            if self.reject_send:
                raise WalletProviderError(4001, 'User rejected the request.')
            if self.send_error is not None:
                raise WalletProviderError(self.send_error, 'send failed')
            self.sent.append(params[0])
            return self.tx_hash
        if method == 'personal_sign' and self.sign_error is not None:
            raise WalletProviderError(self.sign_error, 'personal_sign failed')
        raise WalletProviderError(4200, f'Unsupported method {method}')

@pytest.fixture
def wallet_factory():
    return FakeWallet

@pytest.fixture
def wallet():
    return FakeWallet()

@pytest.fixture
def profile_factory():
    def make(fid: int = 1234, username: str = "alice", verified=(VERIFIED_WALLET,), **kwargs):
        return BuilderProfile(fid=fid, username=username, verified_addresses=frozenset(verified), **kwargs)
    return make

@pytest.fixture
def profile(profile_factory):
    return profile_factory(neynar_score=0.87, power_badge=True, follower_count=420)

@pytest.fixture
def database(tmp_path):
    """File-backed SQLite database so worker threads share one store"""
    database = Database()
    database.init(f"sqlite:///{tmp_path / 'builder_ids.db'}")
    try:
        yield database
    finally:
        database.dispose()

@pytest.fixture
def store(database):
    return SqlClaimStore(database)

@pytest.fixture
def mint_builder():
    return MintTransactionBuilder(
        contract_address=CONTRACT,
        chain_id=BASE_CHAIN_ID,
        mint_price_wei=MINT_PRICE,
        gas_buffer_wei=GAS_BUFFER,
    )

@pytest.fixture
def identity(profile):
    provider = MagicMock()
    provider.fetch_profile = AsyncMock(return_value=profile)
    provider.aclose = AsyncMock()
    return provider

@pytest.fixture
def orchestrator(identity, store, mint_builder, wallet):
    return ClaimOrchestrator(
        identity=identity,
        store=store,
        mint_builder=mint_builder,
        wallet=wallet,
        clock=lambda: NOW_MS,
    )
