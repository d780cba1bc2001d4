"""
Wallet - Configuration.

============================================================
CONFIGURABLE WALLET CORE
============================================================

All wallet components are configured from one WalletConfig:
- Network selection
- Index service endpoint and retries
- Notary timeouts and failure policy
- Fee rate ceiling
- Signer persistence
- Bridge contract

Configuration can be loaded from:
- Default values
- Environment variables (a .env file is honoured)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from bridge_proof.config import BridgeConfig
from core.exceptions import ConfigurationError
from core.networks import NetworkParams, SYSCOIN_NETWORKS
from key_authority.persistence import DEFAULT_SCRYPT_N
from notarization.config import NotaryConfig
from transaction_assembler.config import FeeConfig


logger = logging.getLogger(__name__)


ENV_PREFIX = "WALLET_"


# =============================================================
# SUB-CONFIGS
# =============================================================


@dataclass
class IndexServiceConfig:
    """Blockbook-compatible index service."""

    url: str = ""
    timeout_seconds: float = 30.0
    max_retries: int = 3

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "timeout_seconds": self.timeout_seconds,
            "max_retries": self.max_retries,
        }


@dataclass
class SignerConfig:
    """Signer persistence."""

    storage_dir: Optional[str] = None
    """Directory for the encrypted signer state; None keeps it in memory."""

    scrypt_n: int = DEFAULT_SCRYPT_N
    account_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_dir": self.storage_dir,
            "scrypt_n": self.scrypt_n,
            "account_index": self.account_index,
        }


# =============================================================
# MAIN CONFIG
# =============================================================


@dataclass
class WalletConfig:
    """
    Main configuration for the wallet core.

    Combines all sub-configurations.
    """

    is_testnet: bool = False

    index_service: IndexServiceConfig = field(default_factory=IndexServiceConfig)
    notary: NotaryConfig = field(default_factory=NotaryConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    signer: SignerConfig = field(default_factory=SignerConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)

    @property
    def network(self) -> NetworkParams:
        return SYSCOIN_NETWORKS.select(self.is_testnet)

    @classmethod
    def for_testing(cls) -> "WalletConfig":
        """Get configuration for testing."""
        return cls(
            is_testnet=True,
            index_service=IndexServiceConfig(url="http://localhost:9130", timeout_seconds=5.0, max_retries=1),
            notary=NotaryConfig(timeout_seconds=2.0),
            signer=SignerConfig(scrypt_n=2 ** 10),
            bridge=BridgeConfig(is_testnet=True),
        )

    @classmethod
    def for_production(cls) -> "WalletConfig":
        """Get configuration for production."""
        return cls(
            is_testnet=False,
            index_service=IndexServiceConfig(max_retries=3),
            notary=NotaryConfig(timeout_seconds=15.0, abort_on_failure=False),
            bridge=BridgeConfig(is_testnet=False),
        )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "WalletConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - WALLET_TESTNET
        - WALLET_INDEX_URL
        - WALLET_INDEX_TIMEOUT
        - WALLET_INDEX_MAX_RETRIES
        - WALLET_NOTARY_TIMEOUT
        - WALLET_NOTARY_ABORT_ON_FAILURE
        - WALLET_MAX_FEE_RATE
        - WALLET_SIGNER_STORAGE_DIR
        - WALLET_ERC20_MANAGER
        """
        load_dotenv(dotenv_path)
        config = cls()

        def env(name: str) -> Optional[str]:
            return os.getenv(f"{ENV_PREFIX}{name}")

        def env_bool(value: str) -> bool:
            return value.strip().lower() in ("1", "true", "yes", "on")

        try:
            if env("TESTNET"):
                config.is_testnet = env_bool(env("TESTNET"))
                config.bridge.is_testnet = config.is_testnet
            if env("INDEX_URL"):
                config.index_service.url = env("INDEX_URL")
            if env("INDEX_TIMEOUT"):
                config.index_service.timeout_seconds = float(env("INDEX_TIMEOUT"))
            if env("INDEX_MAX_RETRIES"):
                config.index_service.max_retries = int(env("INDEX_MAX_RETRIES"))
            if env("NOTARY_TIMEOUT"):
                config.notary.timeout_seconds = float(env("NOTARY_TIMEOUT"))
            if env("NOTARY_ABORT_ON_FAILURE"):
                config.notary.abort_on_failure = env_bool(env("NOTARY_ABORT_ON_FAILURE"))
            if env("MAX_FEE_RATE"):
                config.fees = FeeConfig(maximum_fee_rate=int(env("MAX_FEE_RATE")))
            if env("SIGNER_STORAGE_DIR"):
                config.signer.storage_dir = env("SIGNER_STORAGE_DIR")
            if env("ERC20_MANAGER"):
                config.bridge.erc20_manager = env("ERC20_MANAGER")
        except ValueError as e:
            raise ConfigurationError(f"Invalid wallet environment configuration: {e}", cause=e)

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "WalletConfig":
        """
        Load configuration from a YAML file.

        Raises:
            ConfigurationError: file missing or malformed
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config from {path}", cause=e)

        try:
            config = cls(is_testnet=bool(data.get("is_testnet", False)))
            if "index_service" in data:
                config.index_service = IndexServiceConfig(**data["index_service"])
            if "notary" in data:
                config.notary = NotaryConfig(**data["notary"])
            if "fees" in data:
                config.fees = FeeConfig(**data["fees"])
            if "signer" in data:
                config.signer = SignerConfig(**data["signer"])
            bridge_data = dict(data.get("bridge") or {})
            bridge_data.setdefault("is_testnet", config.is_testnet)
            config.bridge = BridgeConfig(**bridge_data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid wallet configuration in {path}: {e}", cause=e)
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_testnet": self.is_testnet,
            "network": self.network.name,
            "index_service": self.index_service.to_dict(),
            "notary": self.notary.to_dict(),
            "fees": self.fees.to_dict(),
            "signer": self.signer.to_dict(),
            "bridge": self.bridge.to_dict(),
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[WalletConfig] = None


def get_config() -> WalletConfig:
    """Get the process-wide wallet configuration (loaded from env on first use)."""
    global _default_config
    if _default_config is None:
        _default_config = WalletConfig.from_env()
    return _default_config


def set_config(config: WalletConfig) -> None:
    """Replace the process-wide wallet configuration."""
    global _default_config
    _default_config = config
