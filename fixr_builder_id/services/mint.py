"""Soulbound Builder ID mint transaction construction and pre-flight checks"""
import logging

from eth_abi import encode
from eth_utils import from_wei, function_signature_to_4byte_selector

from fixr_builder_id.config import Settings
from fixr_builder_id.errors import ClaimError, ClaimErrorCode, WalletProviderError
from fixr_builder_id.models.profile import normalize_address
from fixr_builder_id.models.transaction import MintTransaction
from fixr_builder_id.services.wallet import WalletProvider

logger = logging.getLogger(__name__)

CLAIM_FUNCTION = 'claim(uint256,string)'
CLAIM_SELECTOR = function_signature_to_4byte_selector(CLAIM_FUNCTION)
MAX_UINT256 = 2 ** 256 - 1

class MintTransactionBuilder:
    """Builds the payable claim(fid, username) call and validates wallet preconditions"""

    def __init__(self, contract_address: str, chain_id: int, mint_price_wei: int, gas_buffer_wei: int):
        contract = normalize_address(contract_address)
        if contract is None:
            raise ValueError(f"Invalid contract address: {contract_address}")
        self.contract_address = contract
        self.chain_id = chain_id
        self.mint_price_wei = mint_price_wei
        self.gas_buffer_wei = gas_buffer_wei

    @classmethod
    def from_settings(cls, settings: Settings) -> 'MintTransactionBuilder':
        return cls(
            contract_address=settings.BUILDER_ID_CONTRACT,
            chain_id=settings.CHAIN_ID,
            mint_price_wei=settings.MINT_PRICE_WEI,
            gas_buffer_wei=settings.GAS_BUFFER_WEI,
        )

    @property
    def required_balance(self) -> int:
        return self.mint_price_wei + self.gas_buffer_wei

    @staticmethod
    def encode_claim_call(fid: int, username: str) -> str:
        if not 0 < fid <= MAX_UINT256:
            raise ValueError(f"FID out of range: {fid}")
        return '0x' + (CLAIM_SELECTOR + encode(['uint256', 'string'], [fid, username])).hex()

    def build_mint_transaction(self, fid: int, username: str, wallet_address: str) -> MintTransaction:
        sender = normalize_address(wallet_address)
        if sender is None:
            raise ValueError(f"Invalid wallet address: {wallet_address}")
        return MintTransaction(
            from_address=sender,
            to=self.contract_address,
            data=self.encode_claim_call(fid, username),
            value=self.mint_price_wei,
            chain_id=self.chain_id,
        )

    async def check_network(self, wallet: WalletProvider) -> None:
        """Ensure the wallet is on the target chain, asking it to switch if not"""
        try:
            current = await wallet.chain_id()
        except (WalletProviderError, ValueError) as e:
            logger.error(f"Could not read wallet chain: {e}")
            raise ClaimError(ClaimErrorCode.NETWORK_MISMATCH, "Could not determine the wallet network.")

        if current == self.chain_id:
            return

        logger.info(f"Wallet on chain {current}, requesting switch to {self.chain_id}")
        try:
            await wallet.switch_chain(self.chain_id)
            current = await wallet.chain_id()
        except (WalletProviderError, ValueError) as e:
            logger.warning(f"Network switch failed: {e}")
            raise ClaimError(
                ClaimErrorCode.NETWORK_MISMATCH,
                details={'expected': self.chain_id, 'actual': current}
            )

        if current != self.chain_id:
            raise ClaimError(
                ClaimErrorCode.NETWORK_MISMATCH,
                details={'expected': self.chain_id, 'actual': current}
            )

    async def check_balance(self, wallet: WalletProvider, wallet_address: str) -> int:
        """Ensure the wallet balance exceeds mint price plus the fixed gas buffer"""
        try:
            balance = await wallet.get_balance(wallet_address)
        except (WalletProviderError, ValueError) as e:
            logger.error(f"Could not read balance of {wallet_address}: {e}")
            raise ClaimError(ClaimErrorCode.NETWORK_MISMATCH, "Could not read the wallet balance.")

        required = self.required_balance
        if balance <= required:
            shortfall = required - balance + 1
            raise ClaimError(
                ClaimErrorCode.INSUFFICIENT_BALANCE,
                f"Insufficient balance: have {from_wei(balance, 'ether')} ETH, "
                f"need more than {from_wei(required, 'ether')} ETH.",
                details={'balance': balance, 'required': required, 'shortfall': shortfall}
            )
        return balance

    async def preflight(self, wallet: WalletProvider, wallet_address: str) -> None:
        """Network check first, then balance; each is a hard stop"""
        await self.check_network(wallet)
        await self.check_balance(wallet, wallet_address)

    async def submit(self, wallet: WalletProvider, transaction: MintTransaction) -> str:
        """Hand the call to the wallet for signing and broadcast"""
        try:
            tx_hash = await wallet.request('eth_sendTransaction', [transaction.to_rpc_params()])
        except WalletProviderError as e:
            if e.code == WalletProviderError.USER_REJECTED:
                raise ClaimError(ClaimErrorCode.USER_CANCELLED)
            logger.error(f"eth_sendTransaction failed: {e}")
            raise ClaimError(ClaimErrorCode.WALLET_UNAVAILABLE)
        logger.info(f"Mint transaction submitted: {tx_hash}")
        return tx_hash
