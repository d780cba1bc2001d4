"""
Bridge Proof - Configuration.
"""

from dataclasses import dataclass
from typing import Optional

from core.constants import ERC20_MANAGER_MAINNET, ERC20_MANAGER_TESTNET


@dataclass
class BridgeConfig:
    """Which bridge contract emits the freeze events to trust."""

    is_testnet: bool = False
    erc20_manager: Optional[str] = None
    """Override for the bridge contract address."""

    @property
    def manager_address(self) -> str:
        if self.erc20_manager:
            return self.erc20_manager.lower()
        return (ERC20_MANAGER_TESTNET if self.is_testnet else ERC20_MANAGER_MAINNET).lower()

    def to_dict(self) -> dict:
        return {"is_testnet": self.is_testnet, "erc20_manager": self.manager_address}
