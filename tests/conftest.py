"""
Shared fixtures for wallet core tests.
"""

import base64
from typing import Dict, List

import pytest

from core.addresses import address_to_script, null_data_script
from core.constants import (
    SYSCOIN_TX_VERSION_ALLOCATION_BURN_TO_SYSCOIN,
    SYSCOIN_TX_VERSION_ALLOCATION_MINT,
    SYSCOIN_TX_VERSION_ALLOCATION_SEND,
    SYSCOIN_TX_VERSION_ASSET_ACTIVATE,
    SYSCOIN_TX_VERSION_ASSET_SEND,
    SYSCOIN_TX_VERSION_ASSET_UPDATE,
    SYSCOIN_TX_VERSION_SYSCOIN_BURN_TO_ALLOCATION,
)
from key_authority.persistence import MemoryEncryptedStore
from key_authority.signer import HDSigner
from transaction_assembler.types import RequestInput, RequestOutput, TransactionRequest
from wallet.builder import RequestType, TransactionBuilder


TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

FUNDING_TXID = "aa" * 32
NOTARY_ENDPOINT = "https://notary.example.org/sign"
NOTARIZED_GUID = "341906151"
PLAIN_GUID = "2369540753"
NOTARY_KEY_ID = "ab" * 20

RECEIVING_PATH_0 = "m/84'/57'/0'/0/0"
RECEIVING_PATH_1 = "m/84'/57'/0'/0/1"


VERSION_BY_REQUEST = {
    RequestType.CREATE_TRANSACTION: 2,
    RequestType.ASSET_NEW: SYSCOIN_TX_VERSION_ASSET_ACTIVATE,
    RequestType.ASSET_UPDATE: SYSCOIN_TX_VERSION_ASSET_UPDATE,
    RequestType.ASSET_SEND: SYSCOIN_TX_VERSION_ASSET_SEND,
    RequestType.ALLOCATION_SEND: SYSCOIN_TX_VERSION_ALLOCATION_SEND,
    RequestType.ALLOCATION_BURN: SYSCOIN_TX_VERSION_ALLOCATION_BURN_TO_SYSCOIN,
    RequestType.ALLOCATION_MINT: SYSCOIN_TX_VERSION_ALLOCATION_MINT,
    RequestType.BURN_TO_ALLOCATION: SYSCOIN_TX_VERSION_SYSCOIN_BURN_TO_ALLOCATION,
}


class FakeTransactionBuilder(TransactionBuilder):
    """
    Spends every normalized UTXO, pays the requested outputs and
    returns the rest (minus a flat fee) as change.

    Notary signatures are appended as one OP_RETURN output.
    """

    FLAT_FEE = 10_000

    def __init__(self) -> None:
        self.requests: List[tuple] = []
        self.notarization_calls: List[Dict[str, bytes]] = []

    def build_request(self, request_type, utxos, network, **params):
        self.requests.append((request_type, params))
        tx_opts = params.get("tx_opts")
        sequence = tx_opts.sequence if tx_opts is not None else 0xFFFFFFFF

        inputs = [
            RequestInput(
                txid=u.txid,
                vout=u.vout,
                value=u.value,
                witness_script=address_to_script(u.address, network),
                path=u.path,
                sequence=sequence,
            )
            for u in utxos.utxos
        ]
        outputs = [
            RequestOutput(
                value=o["value"],
                address=o["address"],
                asset_guid=o.get("asset_guid"),
            )
            for o in params.get("outputs") or []
        ]
        for guid in params.get("asset_map") or {}:
            outputs.append(RequestOutput(value=0, address=params["change_address"], asset_guid=str(guid)))

        change = utxos.total_value - sum(o.value for o in outputs) - self.FLAT_FEE
        outputs.append(RequestOutput(value=change, address=params["change_address"]))
        return TransactionRequest(
            inputs=inputs,
            outputs=outputs,
            version=VERSION_BY_REQUEST[request_type],
        )

    def add_notarization_signatures(self, version, signatures, outputs):
        self.notarization_calls.append(dict(signatures))
        if not signatures:
            return -1
        payload = b"".join(signatures[guid] for guid in sorted(signatures))
        outputs.append(RequestOutput(value=0, script=null_data_script(payload[:80])))
        return len(outputs) - 1


def notarized_asset_record(guid: str = NOTARIZED_GUID, endpoint: str = NOTARY_ENDPOINT) -> Dict:
    return {
        "assetGuid": guid,
        "symbol": "Tk9U",
        "decimals": 8,
        "maxSupply": "100000000000",
        "notaryKeyID": NOTARY_KEY_ID,
        "notaryDetails": {
            "endPoint": base64.b64encode(endpoint.encode()).decode(),
            "instantTransfers": True,
            "HDRequired": False,
        },
    }


def plain_asset_record(guid: str = PLAIN_GUID) -> Dict:
    return {
        "assetGuid": guid,
        "symbol": "UExBSU4=",
        "decimals": 8,
        "maxSupply": "100000000000",
    }


@pytest.fixture
def mnemonic():
    return TEST_MNEMONIC


@pytest.fixture
def signer():
    """Mainnet BIP84 signer without persistence."""
    return HDSigner(TEST_MNEMONIC)


@pytest.fixture
def store():
    """Fast in-memory encrypted store."""
    return MemoryEncryptedStore(scrypt_n=2 ** 10)


@pytest.fixture
def builder():
    return FakeTransactionBuilder()


@pytest.fixture
def funding_address(signer):
    return signer.get_address_from_keypair(signer.create_keypair(0, False))


@pytest.fixture
def second_address(signer):
    return signer.get_address_from_keypair(signer.create_keypair(1, False))


@pytest.fixture
def blockbook_utxos(funding_address, second_address):
    """Index-service document: one native UTXO, one plain asset, one notarized asset."""
    return {
        "utxos": [
            {
                "txid": FUNDING_TXID,
                "vout": 0,
                "value": "100000000",
                "address": funding_address,
                "path": RECEIVING_PATH_0,
            },
            {
                "txid": "bb" * 32,
                "vout": 1,
                "value": "980",
                "address": second_address,
                "path": RECEIVING_PATH_1,
                "assetInfo": {"assetGuid": PLAIN_GUID, "value": "5000"},
            },
            {
                "txid": "cc" * 32,
                "vout": 2,
                "value": "980",
                "address": second_address,
                "path": RECEIVING_PATH_1,
                "assetInfo": {"assetGuid": NOTARIZED_GUID, "value": "7000"},
            },
        ],
        "assets": [plain_asset_record(), notarized_asset_record()],
    }
