"""
Bridge Proof Tests.

============================================================
PURPOSE
============================================================
Tests for extracting mint parameters from EVM bridge burns.

TEST CATEGORIES:
- Precision tests: amount rescaling
- Decoding tests: envelopes, call data and freeze logs
- Builder tests: found / not-found / malformed proofs

============================================================
"""

import pytest
import rlp
from eth_abi import encode as abi_encode

from bridge_proof import (
    BridgeConfig,
    BridgeProofBuilder,
    ProofBundle,
    ProofService,
    decode_transaction_call,
    decode_typed_envelope,
    find_freeze_event,
    reconcile_precision,
    split_transfer_id_and_precisions,
)
from core.addresses import p2wpkh_address
from core.constants import ERC20_MANAGER_MAINNET, ERC20_MANAGER_TESTNET, TOKEN_FREEZE_TOPIC
from core.exceptions import DataIntegrityError, ProofNotFoundError
from core.networks import SYSCOIN_MAINNET


MANAGER = bytes.fromhex(ERC20_MANAGER_MAINNET[2:])
FREEZER = "0x" + "12" * 20
DESTINATION = p2wpkh_address(bytes.fromhex("751e76e8199196d454941c45d1b3a323f1433bd6"), SYSCOIN_MAINNET)
ASSET_GUID = 341906151
TX_ROOT = b"\x01" * 32
RECEIPT_ROOT = b"\x02" * 32
BLOCK_NUMBER = 10_500_123


def pack_transfer(transfer_id, source_precision, native_precision):
    return transfer_id | (source_precision << 32) | (native_precision << 40)


def bridge_call_data(value, guid=ASSET_GUID, destination=DESTINATION):
    return bytes.fromhex("d2c4cbaf") + abi_encode(["uint256", "uint32", "string"], [value, guid, destination])


def legacy_tx(call_data):
    return rlp.encode([b"\x01", b"\x3b\x9a\xca\x00", b"\x01\x86\xa0", MANAGER, b"", call_data, b"\x1b", b"\x01", b"\x02"])


def eip1559_tx(call_data):
    fields = [b"\x39", b"\x01", b"\x01", b"\x3b\x9a\xca\x00", b"\x01\x86\xa0", MANAGER, b"", call_data, [], b"", b"\x01", b"\x02"]
    return b"\x02" + rlp.encode(fields)


def freeze_log(value, packed, address=MANAGER, topics=None):
    data = abi_encode(["address", "uint256", "uint256"], [FREEZER, value, packed])
    if topics is None:
        topics = [bytes.fromhex(TOKEN_FREEZE_TOPIC)]
    return [address, topics, data]


def receipt(logs, typed=False):
    encoded = rlp.encode([b"\x01", b"\x52\x08", b"\x00" * 256, logs])
    return b"\x02" + encoded if typed else encoded


def bundle(leaf):
    header = [b"\x00" * 32] * 4 + [TX_ROOT, RECEIPT_ROOT, b"", b"", BLOCK_NUMBER.to_bytes(3, "big")]
    return ProofBundle(header=header, nodes=[[b"\x20", b"\x30"], [b"\x80", leaf]], index=b"\x80")


class StaticProofService(ProofService):
    """Serves fixed transaction and receipt leaves."""

    def __init__(self, tx_leaf, receipt_leaf):
        self.tx_leaf = tx_leaf
        self.receipt_leaf = receipt_leaf
        self.requested = []

    async def transaction_proof(self, txid):
        self.requested.append(("tx", txid))
        return bundle(self.tx_leaf)

    async def receipt_proof(self, txid):
        self.requested.append(("receipt", txid))
        return bundle(self.receipt_leaf)


# ============================================================
# PRECISION TESTS
# ============================================================

class TestPrecision:
    """Tests for amount rescaling."""

    def test_eighteen_to_eight(self):
        """Test 1.23 tokens moving from 18 to 8 decimals."""
        assert reconcile_precision(1_230_000_000_000_000_000, 18, 8) == 123_000_000

    def test_eight_to_eighteen(self):
        assert reconcile_precision(123_000_000, 8, 18) == 1_230_000_000_000_000_000

    def test_truncates_dust(self):
        assert reconcile_precision(1_230_000_000_000_000_999, 18, 8) == 123_000_000

    def test_same_precision(self):
        assert reconcile_precision(42, 8, 8) == 42

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            reconcile_precision(1, 19, 8)

    @pytest.mark.parametrize("native", range(9))
    @pytest.mark.parametrize("value", [0, 1, 9, 123_456_789, 2 ** 64 - 1])
    def test_round_trip_through_source_precision(self, native, value):
        """Test that scaling up to 18 decimals and back returns the original amount."""
        scaled = reconcile_precision(value, native, 18)
        dust = 10 ** (18 - native) - 1

        assert scaled == value * 10 ** (18 - native)
        assert reconcile_precision(scaled, 18, native) == value
        assert reconcile_precision(scaled + dust, 18, native) == value

    def test_split_packed_word(self):
        packed = pack_transfer(0xDEADBEEF, 18, 8) | (0xFF << 48)

        assert split_transfer_id_and_precisions(packed) == (0xDEADBEEF, 18, 8)


# ============================================================
# DECODING TESTS
# ============================================================

class TestDecoding:
    """Tests for envelope and log decoding."""

    def test_legacy_envelope(self):
        tx_type, fields = decode_typed_envelope(legacy_tx(b""))
        assert tx_type == 0
        assert fields[3] == MANAGER

    def test_typed_envelope(self):
        tx_type, fields = decode_typed_envelope(eip1559_tx(b""))
        assert tx_type == 2
        assert fields[5] == MANAGER

    def test_empty_envelope(self):
        with pytest.raises(ValueError):
            decode_typed_envelope(b"")

    @pytest.mark.parametrize("build", [legacy_tx, eip1559_tx])
    def test_transaction_call(self, build):
        value, guid, destination = decode_transaction_call(build(bridge_call_data(5 * 10 ** 18)))

        assert value == 5 * 10 ** 18
        assert guid == ASSET_GUID
        assert destination == DESTINATION

    def test_unsupported_type(self):
        with pytest.raises(ValueError):
            decode_transaction_call(b"\x05" + rlp.encode([b"\x01"]))

    def test_freeze_event(self):
        raw = receipt([freeze_log(10 ** 18, pack_transfer(7, 18, 8))], typed=True)

        event = find_freeze_event(raw, ERC20_MANAGER_MAINNET)
        assert event.value == 10 ** 18
        assert event.transfer_id == 7
        assert event.source_precision == 18
        assert event.native_precision == 8
        assert event.freezer.lower() == FREEZER

    def test_logs_from_other_contracts_ignored(self):
        raw = receipt([
            freeze_log(1, pack_transfer(1, 18, 8), address=b"\x99" * 20),
            freeze_log(2, pack_transfer(2, 18, 8), topics=[bytes.fromhex(TOKEN_FREEZE_TOPIC), b"\x00" * 32]),
        ])

        assert find_freeze_event(raw, ERC20_MANAGER_MAINNET) is None

    def test_manager_address_by_network(self):
        assert BridgeConfig().manager_address == ERC20_MANAGER_MAINNET.lower()
        assert BridgeConfig(is_testnet=True).manager_address == ERC20_MANAGER_TESTNET.lower()
        assert BridgeConfig(erc20_manager="0xABCD").manager_address == "0xabcd"


# ============================================================
# BUILDER TESTS
# ============================================================

class TestBridgeProofBuilder:
    """Tests for the proof builder."""

    @pytest.mark.asyncio
    async def test_build_proof(self):
        """Test a complete proof with precision reconciliation."""
        tx_leaf = eip1559_tx(bridge_call_data(1_230_000_000_000_000_000))
        receipt_leaf = receipt([freeze_log(1_230_000_000_000_000_000, pack_transfer(99, 18, 8))], typed=True)
        service = StaticProofService(tx_leaf, receipt_leaf)

        result = await BridgeProofBuilder(service).build("0x" + "ab" * 32)

        assert result.found
        proof = result.require()
        assert proof.amount == 123_000_000
        assert proof.asset_guid == ASSET_GUID
        assert proof.destination_address == DESTINATION
        assert proof.bridge_transfer_id == 99
        assert proof.block_number == BLOCK_NUMBER
        assert proof.tx_value == tx_leaf.hex()
        assert proof.receipt_value == receipt_leaf.hex()
        assert proof.tx_root == rlp.encode(TX_ROOT).hex()
        assert proof.receipt_root == rlp.encode(RECEIPT_ROOT).hex()
        assert proof.tx_path == rlp.encode(b"\x80").hex()
        assert rlp.decode(bytes.fromhex(proof.tx_parent_nodes))[-1][-1] == tx_leaf
        assert service.requested == [("tx", "0x" + "ab" * 32), ("receipt", "0x" + "ab" * 32)]

    @pytest.mark.asyncio
    async def test_asset_opts_layout(self):
        tx_leaf = legacy_tx(bridge_call_data(10 ** 8))
        receipt_leaf = receipt([freeze_log(10 ** 8, pack_transfer(1, 8, 8))])

        result = await BridgeProofBuilder(StaticProofService(tx_leaf, receipt_leaf)).build("0x01")
        opts = result.proof.to_asset_opts()

        assert opts["amount"] == 10 ** 8
        assert opts["assetguid"] == ASSET_GUID
        assert opts["blocknumber"] == BLOCK_NUMBER
        assert set(opts) == {
            "assetguid", "destinationaddress", "amount", "txvalue", "txroot",
            "txparentnodes", "txpath", "blocknumber", "receiptvalue", "receiptroot",
            "receiptparentnodes", "bridgetransferid",
        }

    @pytest.mark.asyncio
    async def test_not_found(self):
        """Test a burn receipt without a trusted freeze log."""
        tx_leaf = legacy_tx(bridge_call_data(10 ** 8))
        receipt_leaf = receipt([freeze_log(10 ** 8, pack_transfer(1, 8, 8), address=b"\x99" * 20)])

        result = await BridgeProofBuilder(StaticProofService(tx_leaf, receipt_leaf)).build("0x02")

        assert not result.found
        assert result.reasons
        with pytest.raises(ProofNotFoundError):
            result.require()

    @pytest.mark.asyncio
    async def test_testnet_manager(self):
        """Test that the configured network selects the trusted contract."""
        tx_leaf = legacy_tx(bridge_call_data(10 ** 8))
        receipt_leaf = receipt([freeze_log(10 ** 8, pack_transfer(1, 8, 8))])
        builder = BridgeProofBuilder(StaticProofService(tx_leaf, receipt_leaf), BridgeConfig(is_testnet=True))

        result = await builder.build("0x03")
        assert not result.found

    @pytest.mark.asyncio
    async def test_malformed_transaction(self):
        service = StaticProofService(b"\x01\x02\x03", receipt([]))

        with pytest.raises(DataIntegrityError):
            await BridgeProofBuilder(service).build("0x04")

    @pytest.mark.asyncio
    async def test_malformed_receipt(self):
        service = StaticProofService(legacy_tx(bridge_call_data(1)), b"\xc1")

        with pytest.raises(DataIntegrityError):
            await BridgeProofBuilder(service).build("0x05")

    @pytest.mark.asyncio
    async def test_precision_out_of_range(self):
        """Test that a decodable freeze event with 24-decimal tokens is a data error."""
        tx_leaf = legacy_tx(bridge_call_data(10 ** 24))
        receipt_leaf = receipt([freeze_log(10 ** 24, pack_transfer(5, 24, 8))])

        with pytest.raises(DataIntegrityError) as exc_info:
            await BridgeProofBuilder(StaticProofService(tx_leaf, receipt_leaf)).build("0x06")

        assert exc_info.value.context["txid"] == "0x06"
        assert exc_info.value.context["source_precision"] == 24
        assert exc_info.value.context["native_precision"] == 8
