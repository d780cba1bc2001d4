"""
Wallet Tests.

============================================================
PURPOSE
============================================================
End-to-end tests for the asset wallet pipeline and its
configuration loading.

TEST CATEGORIES:
- Lifecycle tests: closing owned clients
- Pipeline tests: UTXO resolution, change addresses, signing
- Notarization tests: notarized sends through the wallet
- Bridge tests: minting from a bridge proof
- Broadcast tests: extraction and sending
- Config tests: defaults, env, YAML, process singleton

============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

import wallet.config as wallet_config
from core.exceptions import (
    ConfigurationError,
    FeeTooHighError,
    NotFinalizedError,
    ProofNotFoundError,
    SignerUnavailableError,
)
from core.networks import SYSCOIN_MAINNET, SYSCOIN_TESTNET
from index_adapters import BlockbookAdapter
from transaction_assembler import FeeConfig
from utxo_normalizer import TransactionOptions
from wallet import AssetWallet, RequestType, WalletConfig, get_config, set_config

from tests.conftest import FUNDING_TXID, NOTARIZED_GUID, PLAIN_GUID


NOTARY_SIG = bytes(range(65))


@pytest.fixture
def config():
    """Configuration without an index service."""
    return WalletConfig()


@pytest.fixture
def wallet(builder, config, signer):
    return AssetWallet(builder, config=config, signer=signer)


@pytest.fixture
def index_adapter(blockbook_utxos):
    adapter = MagicMock()
    adapter.fetch_utxos = AsyncMock(return_value=blockbook_utxos)
    adapter.fetch_history = AsyncMock(return_value={})
    adapter.send_raw_transaction = AsyncMock(return_value={"result": "ff" * 32})
    return adapter


def first_change_address(signer):
    return signer.get_address_from_keypair(signer.create_keypair(0, True))


# ============================================================
# PIPELINE TESTS
# ============================================================

class TestConstruction:
    """Tests for wallet wiring."""

    def test_network_from_signer(self, builder, signer):
        wallet = AssetWallet(builder, config=WalletConfig(is_testnet=True), signer=signer)
        assert wallet.network is SYSCOIN_MAINNET

    def test_network_from_config_without_signer(self, builder):
        wallet = AssetWallet(builder, config=WalletConfig(is_testnet=True))
        assert wallet.network is SYSCOIN_TESTNET
        assert wallet.signer is None

    def test_index_adapter_built_from_config(self, builder, signer):
        config = WalletConfig()
        config.index_service.url = "https://blockbook.example.org"

        wallet = AssetWallet(builder, config=config, signer=signer)

        assert isinstance(wallet.index_adapter, BlockbookAdapter)
        assert signer.index_service is wallet.index_adapter

    def test_no_index_adapter_without_url(self, wallet, signer):
        assert wallet.index_adapter is None
        assert signer.index_service is None

    def test_set_account_index_needs_signer(self, builder, config):
        with pytest.raises(SignerUnavailableError):
            AssetWallet(builder, config=config).set_account_index(1)


class TestLifecycle:
    """Tests for closing the clients a wallet owns."""

    @pytest.mark.asyncio
    async def test_close_owned_clients(self, builder, signer):
        """Test that clients built by the wallet are closed with it."""
        config = WalletConfig()
        config.index_service.url = "https://blockbook.example.org"

        async with AssetWallet(builder, config=config, signer=signer) as wallet:
            wallet.index_adapter.close = AsyncMock()
            wallet.coordinator.client.close = AsyncMock()

        wallet.index_adapter.close.assert_awaited_once()
        wallet.coordinator.client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_injected_clients_left_open(self, builder, config, signer, index_adapter):
        index_adapter.close = AsyncMock()
        notary_client = MagicMock()
        notary_client.close = AsyncMock()

        wallet = AssetWallet(
            builder, config=config, signer=signer,
            index_adapter=index_adapter, notary_client=notary_client,
        )
        await wallet.close()

        index_adapter.close.assert_not_awaited()
        notary_client.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_without_index_service(self, wallet):
        wallet.coordinator.client.close = AsyncMock()

        await wallet.close()

        wallet.coordinator.client.close.assert_awaited_once()


class TestPipeline:
    """Tests for the shared operation pipeline."""

    @pytest.mark.asyncio
    async def test_create_transaction_signed(self, wallet, builder, signer, blockbook_utxos):
        """Test a native payment with signer-derived change."""
        outputs = [{"value": 50_000_000, "address": first_change_address(signer)}]

        result = await wallet.create_transaction(outputs, fee_rate=10, utxos=blockbook_utxos)

        assert result.pst.is_finalized
        assert not result.resigned
        assert result.report.outcomes == []
        request_type, params = builder.requests[0]
        assert request_type is RequestType.CREATE_TRANSACTION
        assert params["fee_rate"] == 10
        assert params["change_address"] == first_change_address(signer)
        assert signer.change_index == 0

    @pytest.mark.asyncio
    async def test_notarized_utxos_left_out_by_default(self, wallet, blockbook_utxos):
        result = await wallet.create_transaction([], fee_rate=10, utxos=blockbook_utxos)

        txids = {i.txid for i in result.pst.inputs}
        assert txids == {FUNDING_TXID, "bb" * 32}

    @pytest.mark.asyncio
    async def test_explicit_change_address(self, wallet, builder, signer, second_address, blockbook_utxos):
        await wallet.create_transaction([], fee_rate=10, change_address=second_address, utxos=blockbook_utxos)

        assert builder.requests[0][1]["change_address"] == second_address
        assert signer.change_index == -1

    @pytest.mark.asyncio
    async def test_tx_opts_passed_through(self, wallet, blockbook_utxos):
        result = await wallet.create_transaction(
            [], fee_rate=10, utxos=blockbook_utxos, tx_opts=TransactionOptions(rbf=True),
        )

        assert all(i.sequence == 0xFFFFFFFD for i in result.pst.inputs)

    @pytest.mark.asyncio
    async def test_watch_only_from_xpub(self, wallet, signer, second_address, blockbook_utxos):
        """Test that an explicit xpub yields an unsigned PST."""
        result = await wallet.create_transaction(
            [], fee_rate=10, change_address=second_address,
            from_xpub_or_address=signer.get_account_xpub(), utxos=blockbook_utxos,
        )

        assert not result.pst.is_finalized
        assert all(i.partial_sigs == {} for i in result.pst.inputs)
        with pytest.raises(NotFinalizedError):
            result.pst.extract_transaction()

    @pytest.mark.asyncio
    async def test_watch_only_wallet_needs_change_address(self, builder, config, signer, blockbook_utxos):
        wallet = AssetWallet(builder, config=config)

        with pytest.raises(ConfigurationError):
            await wallet.create_transaction(
                [], fee_rate=10, from_xpub_or_address=signer.get_account_xpub(), utxos=blockbook_utxos,
            )

    @pytest.mark.asyncio
    async def test_xpub_spend_never_uses_signer_change(self, wallet, builder, signer, blockbook_utxos):
        """Test that spending from a foreign xpub does not hand out the signer's change address."""
        with pytest.raises(ConfigurationError) as exc_info:
            await wallet.create_transaction(
                [], fee_rate=10, from_xpub_or_address=signer.get_account_xpub(), utxos=blockbook_utxos,
            )

        assert exc_info.value.context["field"] == "change_address"
        assert signer.current_account.change_index == -1
        assert builder.requests == []

    @pytest.mark.asyncio
    async def test_utxos_fetched_for_account_xpub(self, builder, config, signer, index_adapter):
        """Test that the signer's account xpub is fetched when no UTXOs are given."""
        wallet = AssetWallet(builder, config=config, signer=signer, index_adapter=index_adapter)

        result = await wallet.asset_send({PLAIN_GUID: {"amount": 100}}, fee_rate=10)

        index_adapter.fetch_utxos.assert_awaited_once_with(signer.get_account_xpub())
        index_adapter.fetch_history.assert_awaited_once()
        assert result.pst.is_finalized
        assert builder.requests[0][0] is RequestType.ASSET_SEND

    @pytest.mark.asyncio
    async def test_utxos_fetched_for_given_address(self, builder, config, signer, index_adapter, funding_address):
        wallet = AssetWallet(builder, config=config, signer=signer, index_adapter=index_adapter)

        await wallet.create_transaction(
            [], fee_rate=10, change_address=funding_address, from_xpub_or_address=funding_address,
        )

        index_adapter.fetch_utxos.assert_awaited_once_with(funding_address)

    @pytest.mark.asyncio
    async def test_fetch_without_index_service(self, wallet):
        with pytest.raises(ConfigurationError):
            await wallet.create_transaction([], fee_rate=10)

    @pytest.mark.asyncio
    async def test_sign_without_signer(self, builder, config, funding_address, blockbook_utxos):
        """Test that a watch-only wallet cannot sign."""
        wallet = AssetWallet(builder, config=config)

        with pytest.raises(SignerUnavailableError):
            await wallet.create_transaction(
                [], fee_rate=10, change_address=funding_address, utxos=blockbook_utxos,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation, args, request_type", [
        ("asset_new", ({"precision": 8},), RequestType.ASSET_NEW),
        ("asset_update", (PLAIN_GUID, {"description": "x"}, {PLAIN_GUID: {}}), RequestType.ASSET_UPDATE),
        ("asset_allocation_burn", ({"ethaddress": "0x" + "12" * 20}, {PLAIN_GUID: {}}), RequestType.ALLOCATION_BURN),
        ("asset_allocation_mint", ({"amount": 1}, {PLAIN_GUID: {}}), RequestType.ALLOCATION_MINT),
        ("burn_to_asset_allocation", ({PLAIN_GUID: {}}, 5000), RequestType.BURN_TO_ALLOCATION),
    ])
    async def test_operation_request_types(self, wallet, builder, blockbook_utxos, operation, args, request_type):
        await getattr(wallet, operation)(*args, fee_rate=10, utxos=blockbook_utxos)

        assert builder.requests[0][0] is request_type
        assert builder.requests[0][1]["fee_rate"] == 10


# ============================================================
# NOTARIZATION TESTS
# ============================================================

class TestNotarizedSend:
    """Tests for notarized allocation sends."""

    @pytest.mark.asyncio
    async def test_notarized_send_resigned(self, builder, config, signer, blockbook_utxos):
        notary_client = MagicMock()
        notary_client.request_signature = AsyncMock(return_value=NOTARY_SIG)
        wallet = AssetWallet(builder, config=config, signer=signer, notary_client=notary_client)

        result = await wallet.asset_allocation_send(
            {NOTARIZED_GUID: {"amount": 7000}}, fee_rate=10, utxos=blockbook_utxos,
        )

        assert result.resigned
        assert result.report.is_complete
        assert result.pst.is_finalized
        assert "cc" * 32 in {i.txid for i in result.pst.inputs}
        assert builder.notarization_calls == [{NOTARIZED_GUID: NOTARY_SIG}]

    @pytest.mark.asyncio
    async def test_prebuilt_request(self, builder, config, signer, blockbook_utxos):
        """Test notarizing a request the caller built directly."""
        wallet = AssetWallet(builder, config=config, signer=signer)
        normalized = wallet.normalizer.normalize(blockbook_utxos)
        request = builder.build_request(
            RequestType.CREATE_TRANSACTION, normalized, signer.network,
            change_address=first_change_address(signer),
        )

        result = await wallet.notarize_and_sign(request)

        assert result.pst.is_finalized
        assert result.report.outcomes == []


# ============================================================
# BRIDGE TESTS
# ============================================================

class TestMintFromBridge:
    """Tests for minting from a bridge burn."""

    @pytest.mark.asyncio
    async def test_mint_uses_proof_opts(self, wallet, builder, blockbook_utxos):
        asset_opts = {"assetguid": int(PLAIN_GUID), "amount": 123_000_000}
        proof_result = MagicMock()
        proof_result.require.return_value.to_asset_opts.return_value = asset_opts
        proof_builder = MagicMock()
        proof_builder.build = AsyncMock(return_value=proof_result)

        await wallet.mint_from_bridge(proof_builder, "0x" + "ab" * 32, {PLAIN_GUID: {}}, fee_rate=10, utxos=blockbook_utxos)

        proof_builder.build.assert_awaited_once_with("0x" + "ab" * 32)
        request_type, params = builder.requests[0]
        assert request_type is RequestType.ALLOCATION_MINT
        assert params["asset_opts"] == asset_opts

    @pytest.mark.asyncio
    async def test_missing_proof(self, wallet, builder, blockbook_utxos):
        proof_result = MagicMock()
        proof_result.require.side_effect = ProofNotFoundError("0x01")
        proof_builder = MagicMock()
        proof_builder.build = AsyncMock(return_value=proof_result)

        with pytest.raises(ProofNotFoundError):
            await wallet.mint_from_bridge(proof_builder, "0x01", {PLAIN_GUID: {}}, fee_rate=10, utxos=blockbook_utxos)
        assert builder.requests == []


# ============================================================
# BROADCAST TESTS
# ============================================================

class TestSendTransaction:
    """Tests for extraction and broadcast."""

    @pytest.mark.asyncio
    async def test_send_extracted_hex(self, builder, config, signer, index_adapter, blockbook_utxos):
        wallet = AssetWallet(builder, config=config, signer=signer, index_adapter=index_adapter)
        result = await wallet.create_transaction([], fee_rate=10, utxos=blockbook_utxos)

        response = await wallet.send_transaction(result.pst)

        assert response == {"result": "ff" * 32}
        index_adapter.send_raw_transaction.assert_awaited_once_with(
            result.pst.extract_transaction().to_hex(), signer=signer,
        )

    @pytest.mark.asyncio
    async def test_send_without_index_service(self, wallet, blockbook_utxos):
        result = await wallet.create_transaction([], fee_rate=10, utxos=blockbook_utxos)

        with pytest.raises(ConfigurationError):
            await wallet.send_transaction(result.pst)

    @pytest.mark.asyncio
    async def test_fee_ceiling_enforced(self, builder, signer, index_adapter, blockbook_utxos):
        config = WalletConfig(fees=FeeConfig(maximum_fee_rate=1))
        wallet = AssetWallet(builder, config=config, signer=signer, index_adapter=index_adapter)
        result = await wallet.create_transaction([], fee_rate=10, utxos=blockbook_utxos)

        with pytest.raises(FeeTooHighError):
            await wallet.send_transaction(result.pst)
        index_adapter.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fee_check_disabled(self, builder, signer, index_adapter, blockbook_utxos):
        config = WalletConfig(fees=FeeConfig(maximum_fee_rate=1, disable_fee_check=True))
        wallet = AssetWallet(builder, config=config, signer=signer, index_adapter=index_adapter)
        result = await wallet.create_transaction([], fee_rate=10, utxos=blockbook_utxos)

        await wallet.send_transaction(result.pst)
        index_adapter.send_raw_transaction.assert_awaited_once()


# ============================================================
# CONFIG TESTS
# ============================================================

class TestWalletConfig:
    """Tests for configuration loading."""

    def test_defaults(self):
        config = WalletConfig()

        assert config.network is SYSCOIN_MAINNET
        assert config.index_service.url == ""
        assert not config.notary.abort_on_failure

    def test_for_testing(self):
        config = WalletConfig.for_testing()

        assert config.network is SYSCOIN_TESTNET
        assert config.bridge.is_testnet
        assert config.index_service.max_retries == 1

    def test_to_dict(self):
        data = WalletConfig.for_production().to_dict()

        assert data["network"] == "syscoin"
        assert data["notary"]["timeout_seconds"] == 15.0
        assert set(data) == {"is_testnet", "network", "index_service", "notary", "fees", "signer", "bridge"}

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WALLET_TESTNET", "true")
        monkeypatch.setenv("WALLET_INDEX_URL", "https://blockbook.example.org")
        monkeypatch.setenv("WALLET_INDEX_MAX_RETRIES", "5")
        monkeypatch.setenv("WALLET_NOTARY_ABORT_ON_FAILURE", "yes")
        monkeypatch.setenv("WALLET_MAX_FEE_RATE", "50")

        config = WalletConfig.from_env(str(tmp_path / "missing.env"))

        assert config.is_testnet
        assert config.bridge.is_testnet
        assert config.index_service.url == "https://blockbook.example.org"
        assert config.index_service.max_retries == 5
        assert config.notary.abort_on_failure
        assert config.fees.maximum_fee_rate == 50

    def test_from_dotenv_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WALLET_INDEX_URL", "unset")
        monkeypatch.delenv("WALLET_INDEX_URL")
        dotenv = tmp_path / ".env"
        dotenv.write_text("WALLET_INDEX_URL=https://dotenv.example.org\n")

        config = WalletConfig.from_env(str(dotenv))

        assert config.index_service.url == "https://dotenv.example.org"

    @pytest.mark.parametrize("name, value", [
        ("WALLET_INDEX_MAX_RETRIES", "many"),
        ("WALLET_MAX_FEE_RATE", "0"),
    ])
    def test_invalid_env(self, monkeypatch, tmp_path, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError):
            WalletConfig.from_env(str(tmp_path / "missing.env"))

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "wallet.yaml"
        path.write_text(
            "is_testnet: true\n"
            "index_service:\n"
            "  url: http://localhost:9130\n"
            "  max_retries: 2\n"
            "fees:\n"
            "  maximum_fee_rate: 100\n"
        )

        config = WalletConfig.from_yaml(path)

        assert config.network is SYSCOIN_TESTNET
        assert config.bridge.is_testnet
        assert config.index_service.max_retries == 2
        assert config.fees.maximum_fee_rate == 100

    def test_yaml_unknown_key(self, tmp_path):
        path = tmp_path / "wallet.yaml"
        path.write_text("notary:\n  retries: 3\n")

        with pytest.raises(ConfigurationError):
            WalletConfig.from_yaml(path)

    def test_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            WalletConfig.from_yaml(tmp_path / "absent.yaml")

    def test_singleton(self, monkeypatch):
        monkeypatch.setattr(wallet_config, "_default_config", None)
        config = WalletConfig.for_testing()

        set_config(config)

        assert get_config() is config
