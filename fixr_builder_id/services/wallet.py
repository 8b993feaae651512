"""EIP-1193 style wallet providers"""
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_hexstr, to_checksum_address, to_hex

from fixr_builder_id.config import Settings
from fixr_builder_id.errors import WalletProviderError

logger = logging.getLogger(__name__)

INTERNAL_ERROR = -32603

def parse_quantity(value: Any) -> int:
    """Decode a JSON-RPC hex quantity (ints pass through)"""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith('0x') else int(value)
    raise ValueError(f"Not a quantity: {value!r}")

class WalletProvider(ABC):
    """The request({method, params}) contract the claim flow depends on"""

    @abstractmethod
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        ...

    async def request_accounts(self) -> List[str]:
        accounts = await self.request('eth_requestAccounts')
        return [account.lower() for account in accounts or []]

    async def chain_id(self) -> int:
        return parse_quantity(await self.request('eth_chainId'))

    async def get_balance(self, address: str) -> int:
        return parse_quantity(await self.request('eth_getBalance', [address, 'latest']))

    async def switch_chain(self, chain_id: int) -> None:
        await self.request('wallet_switchEthereumChain', [{'chainId': hex(chain_id)}])

    async def aclose(self) -> None:
        pass

class JsonRpcWalletProvider(WalletProvider):
    """Forwards every request as JSON-RPC 2.0 over HTTP (wallet bridge or node)"""

    def __init__(self, url: str, timeout: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._ids = itertools.count(1)
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            'jsonrpc': '2.0',
            'id': next(self._ids),
            'method': method,
            'params': params or [],
        }
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Wallet RPC {method} failed: {e}")
            raise WalletProviderError(INTERNAL_ERROR, f"{method} failed")

        error = body.get('error') if isinstance(body, dict) else None
        if error:
            raise WalletProviderError(int(error.get('code', INTERNAL_ERROR)), str(error.get('message', '')))
        return body.get('result') if isinstance(body, dict) else None

    async def aclose(self) -> None:
        await self._client.aclose()

class LocalAccountWalletProvider(WalletProvider):
    """
    Wallet environment for scripts and the CLI: signs with a local key and
    uses a node for reads and broadcasting.
    """

    def __init__(self, private_key: str, node: WalletProvider):
        self.account = Account.from_key(private_key)
        self.address = self.account.address.lower()
        self.node = node

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        params = params or []
        if method in ('eth_requestAccounts', 'eth_accounts'):
            return [self.address]
        if method == 'personal_sign':
            return self._personal_sign(params[0])
        if method == 'wallet_switchEthereumChain':
            return await self._switch_chain(params[0])
        if method == 'eth_sendTransaction':
            return await self._send_transaction(params[0])
        return await self.node.request(method, params)

    def _personal_sign(self, message: str) -> str:
        if is_hexstr(message) and message.startswith('0x'):
            signable = encode_defunct(hexstr=message)
        else:
            signable = encode_defunct(text=message)
        return to_hex(self.account.sign_message(signable).signature)

    async def _switch_chain(self, params: Dict[str, Any]) -> None:
        requested = parse_quantity(params.get('chainId'))
        current = await self.node.chain_id()
        if requested != current:
            raise WalletProviderError(
                WalletProviderError.UNRECOGNIZED_CHAIN,
                f"Node is on chain {current}, cannot switch to {requested}"
            )
        return None

    async def _send_transaction(self, tx: Dict[str, Any]) -> str:
        sender = str(tx.get('from', self.address)).lower()
        if sender != self.address:
            raise WalletProviderError(4100, f"Account {sender} is not managed by this wallet")

        call = {
            'from': self.address,
            'to': tx['to'],
            'data': tx.get('data', '0x'),
            'value': tx.get('value', '0x0'),
        }
        nonce = parse_quantity(await self.node.request('eth_getTransactionCount', [self.address, 'pending']))
        gas = parse_quantity(await self.node.request('eth_estimateGas', [call]))
        gas_price = parse_quantity(await self.node.request('eth_gasPrice'))
        chain_id = await self.node.chain_id()

        signed = self.account.sign_transaction({
            'to': to_checksum_address(call['to']),
            'data': call['data'],
            'value': parse_quantity(call['value']),
            'nonce': nonce,
            'gas': gas,
            'gasPrice': gas_price,
            'chainId': chain_id,
        })
        tx_hash = await self.node.request('eth_sendRawTransaction', [to_hex(signed.raw_transaction)])
        logger.info(f"Broadcast transaction {tx_hash} from {self.address}")
        return tx_hash

    async def aclose(self) -> None:
        await self.node.aclose()

def select_wallet_provider(settings: Settings) -> WalletProvider:
    """Pick the wallet provider for this environment once, at startup"""
    if settings.WALLET_MODE not in ('rpc', 'local'):
        raise ValueError(f"Unsupported WALLET_MODE: {settings.WALLET_MODE}")
    if settings.WALLET_MODE == 'local' and not settings.WALLET_PRIVATE_KEY:
        raise ValueError("WALLET_PRIVATE_KEY is required when WALLET_MODE=local")

    node = JsonRpcWalletProvider(settings.WALLET_RPC_URL, timeout=settings.HTTP_TIMEOUT)
    if settings.WALLET_MODE == 'local':
        return LocalAccountWalletProvider(settings.WALLET_PRIVATE_KEY, node)
    return node
