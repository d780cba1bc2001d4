"""
Key Authority - HD Signer.

============================================================
PURPOSE
============================================================
Owns the wallet seed and everything derived from it:

- BIP44 / BIP84 account derivation
- Change and receiving address indices (never decrease)
- Key pairs and public keys for arbitrary paths
- Encrypted backup / restore of the signer state

============================================================
INDEX DISCOVERY
============================================================
When an address index is still unknown (-1) and an index
service is configured, the first request for a new address
asks the service which addresses of the account xpub have been
used and raises the local indices to the highest used ones.

Index mutation is serialized per account so that concurrent
requests never hand out the same address twice.

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from mnemonic import Mnemonic

from core.addresses import pubkey_to_p2wpkh_address
from core.exceptions import PersistenceError
from core.logging_utils import mask_extended_keys
from core.networks import (
    NetworkPair,
    NetworkParams,
    PubTypes,
    SYSCOIN_NETWORKS,
    SYSCOIN_SLIP44,
    SYSCOIN_ZPUB_TYPES,
    TESTNET_SLIP44,
)
from key_authority.hdkeys import ExtendedKey, parse_path
from key_authority.models import Account, KeyPair, UNKNOWN_INDEX, XPubToken
from key_authority.persistence import EncryptedStore


logger = logging.getLogger(__name__)


CHANGE_BRANCH = 1
RECEIVING_BRANCH = 0


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """BIP39 seed. Runs of whitespace between words collapse to one space."""
    return Mnemonic.to_seed(" ".join(mnemonic.split()), passphrase=passphrase)


class HDSigner:
    """
    Hierarchical deterministic signer.

    Args:
        mnemonic: BIP39 mnemonic phrase
        password: Encrypts the persisted state; no persistence without it
        is_testnet: Select testnet parameters (forces SLIP44 coin type 1)
        networks: Mainnet/testnet parameter pair
        slip44: Coin type for account paths
        pub_types: zpub/vpub versions; selects BIP84 paths when given
        store: Encrypted persistence backend
        index_service: Object exposing fetch_history(...) for index discovery
    """

    def __init__(
        self,
        mnemonic: str,
        password: Optional[str] = None,
        is_testnet: bool = False,
        networks: NetworkPair = SYSCOIN_NETWORKS,
        slip44: int = SYSCOIN_SLIP44,
        pub_types: Optional[PubTypes] = SYSCOIN_ZPUB_TYPES,
        store: Optional[EncryptedStore] = None,
        index_service: Optional[Any] = None,
    ) -> None:
        self.is_testnet = is_testnet
        self.networks = networks
        self.network: NetworkParams = networks.select(is_testnet)
        self.slip44 = TESTNET_SLIP44 if is_testnet else slip44
        self.pub_types = pub_types
        self.password = password
        self.index_service = index_service

        self._store = store
        self._mnemonic = mnemonic
        self._root = ExtendedKey.from_seed(mnemonic_to_seed(mnemonic))

        self.accounts: List[Account] = []
        self.account_index = UNKNOWN_INDEX
        self._locks: Dict[int, asyncio.Lock] = {}

        if not self.password or not self.restore(self.password):
            self.create_account()

    # ============================================================
    # ACCOUNTS
    # ============================================================

    @property
    def purpose(self) -> int:
        return 84 if self.pub_types is not None else 44

    @property
    def storage_key(self) -> str:
        return f"{self.network.bech32}_hdsigner"

    @property
    def current_account(self) -> Account:
        return self.accounts[self.account_index]

    @property
    def change_index(self) -> int:
        return self.current_account.change_index

    @property
    def receiving_index(self) -> int:
        return self.current_account.receiving_index

    def derive_account(self, index: int) -> Account:
        """Account node at m/purpose'/coin'/index'."""
        path = f"m/{self.purpose}'/{self.slip44}'/{index}'"
        return Account(index=index, node=self._root.derive_path(path), path=path)

    def create_account(self) -> int:
        """Derive and select the next account; returns its index."""
        self.account_index += 1
        account = self.derive_account(self.account_index)
        self.accounts.append(account)
        self.backup()
        logger.info(f"Created account {self.account_index} at {account.path}")
        return self.account_index

    def set_account_index(self, index: int) -> None:
        if not 0 <= index < len(self.accounts):
            raise IndexError(f"Account {index} does not exist")
        self.account_index = index
        self.current_account.reset_indexes()

    def _xpub_version(self) -> int:
        if self.pub_types is not None:
            return self.pub_types.for_network(self.is_testnet).public
        return self.network.bip32.public

    def get_account_xpub(self) -> str:
        return self.current_account.node.to_xpub(self._xpub_version())

    def get_root_node(self) -> ExtendedKey:
        return self._root

    @property
    def master_fingerprint(self) -> bytes:
        return self._root.fingerprint

    # ============================================================
    # ADDRESSES
    # ============================================================

    def _lock_for(self, account_index: int) -> asyncio.Lock:
        lock = self._locks.get(account_index)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_index] = lock
        return lock

    async def _discover_indexes(self) -> None:
        if self.index_service is None:
            return
        xpub = self.get_account_xpub()
        logger.debug(f"Discovering used indexes for {mask_extended_keys(xpub)}")
        await self.index_service.fetch_history(
            xpub,
            options={"tokens": "used", "details": "tokens"},
            xpub=True,
            on_tokens=self.set_latest_indexes_from_xpub_tokens,
        )

    async def get_new_change_address(self, skip_increment: bool = False) -> str:
        """Next unused change address; advances the index unless skip_increment."""
        return await self._next_address(is_change=True, skip_increment=skip_increment)

    async def get_new_receiving_address(self, skip_increment: bool = False) -> str:
        """Next unused receiving address; advances the index unless skip_increment."""
        return await self._next_address(is_change=False, skip_increment=skip_increment)

    async def _next_address(self, is_change: bool, skip_increment: bool) -> str:
        account = self.current_account
        async with self._lock_for(account.index):
            current = account.change_index if is_change else account.receiving_index
            if current == UNKNOWN_INDEX:
                await self._discover_indexes()
                current = account.change_index if is_change else account.receiving_index

            keypair = self.create_keypair(current + 1, is_change)
            if not skip_increment:
                if is_change:
                    account.change_index = current + 1
                else:
                    account.receiving_index = current + 1
            return self.get_address_from_keypair(keypair)

    def set_latest_indexes_from_xpub_tokens(
        self,
        tokens: Optional[Iterable[Union[XPubToken, Dict[str, Any]]]],
    ) -> None:
        """Raise change/receiving indices to the highest used path in tokens."""
        if not tokens:
            return
        account = self.current_account
        for token in tokens:
            if isinstance(token, dict):
                token = XPubToken.from_dict(token)
            if not token.path:
                continue
            parsed = token.branch_and_index()
            if parsed is None:
                continue
            branch, index = parsed
            if branch == CHANGE_BRANCH:
                if index > account.change_index:
                    account.change_index = index
            elif index > account.receiving_index:
                account.receiving_index = index

    def create_keypair(self, address_index: int, is_change: bool) -> KeyPair:
        branch = CHANGE_BRANCH if is_change else RECEIVING_BRANCH
        node = self.current_account.node.child(branch).child(address_index)
        return KeyPair.from_node(node, self.network)

    def get_address_from_keypair(self, keypair: KeyPair) -> str:
        return pubkey_to_p2wpkh_address(keypair.public_key, self.network)

    def get_address_from_pub_key(self, pubkey: bytes) -> str:
        return pubkey_to_p2wpkh_address(pubkey, self.network)

    # ============================================================
    # PATH DERIVATION
    # ============================================================

    def derive_keypair(self, path: str) -> Optional[KeyPair]:
        """Key pair at an absolute path, None when the path is malformed."""
        try:
            parse_path(path)
        except ValueError:
            return None
        return KeyPair.from_node(self._root.derive_path(path), self.network)

    def derive_pub_key(self, path: str) -> Optional[bytes]:
        """Compressed public key at an absolute path, None when malformed."""
        try:
            parse_path(path)
        except ValueError:
            return None
        return self._root.derive_path(path).public_key

    # ============================================================
    # PERSISTENCE
    # ============================================================

    def backup(self) -> None:
        """Encrypt {mnemonic, account count} to the configured store."""
        if self._store is None or not self.password:
            return
        payload = {"mnemonic": self._mnemonic, "numAccounts": len(self.accounts)}
        self._store.save(self.storage_key, payload, self.password)

    def restore(self, password: str) -> bool:
        """
        Reload the signer from the encrypted store.

        Returns:
            False when nothing is stored

        Raises:
            PersistenceError: wrong password or corrupted state
        """
        if self._store is None:
            return False
        data = self._store.load(self.storage_key, password)
        if data is None:
            return False

        mnemonic = data.get("mnemonic")
        num_accounts = int(data.get("numAccounts", 0))
        if not mnemonic or num_accounts < 1:
            raise PersistenceError(
                "Stored signer state is incomplete",
                context={"key": self.storage_key},
                recoverable=False,
            )

        self._mnemonic = mnemonic
        self._root = ExtendedKey.from_seed(mnemonic_to_seed(mnemonic))
        self.accounts = [self.derive_account(i) for i in range(num_accounts)]
        self.account_index = 0
        self.password = password
        logger.info(f"Restored {num_accounts} account(s) from {self.storage_key}")
        return True
