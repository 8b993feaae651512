from dataclasses import dataclass
from typing import Dict

@dataclass(frozen=True)
class MintTransaction:
    """Call parameters for the soulbound claim(uint256,string) mint"""
    from_address: str
    to: str
    data: str
    value: int
    chain_id: int

    def to_rpc_params(self) -> Dict[str, str]:
        """Render as the eth_sendTransaction parameter object"""
        return {
            'from': self.from_address,
            'to': self.to,
            'data': self.data,
            'value': hex(self.value),
        }
