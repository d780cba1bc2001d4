"""
Notarization - Coordinator.

============================================================
PURPOSE
============================================================
Two-phase signing for transactions that move notarized assets.

============================================================
FLOW
============================================================
1. Determine ownership and build/sign the PST (phase one)
2. For every asset referenced by the outputs that names a
   notary endpoint, POST the unsigned transaction and collect
   the notary signature (hex computed once per round)
3. Hand the signatures to the transaction builder, which
   embeds them in the outputs
4. If the builder changed anything (return value != -1),
   rebuild and re-sign the PST from scratch (phase two)

Notary failures become per-asset outcomes in a report. The
PST is still returned unless abort_on_failure is configured.

============================================================
"""

import logging
from typing import Any, Mapping, Optional

from core.exceptions import NotarizationError, NotaryUnreachableError
from notarization.client import NotaryClient
from notarization.config import NotaryConfig
from notarization.models import (
    NotarizationOutcome,
    NotarizationReport,
    NotarizationResult,
    NotarizationStatus,
)
from transaction_assembler.assembler import TransactionAssembler
from transaction_assembler.types import TransactionRequest
from utxo_normalizer.models import AssetMetadata


logger = logging.getLogger(__name__)


NO_NOTARIZATION_CHANGE = -1


class NotarizationCoordinator:
    """
    Runs notarize-and-sign rounds.

    Args:
        assembler: Builds and signs PSTs
        builder: Transaction-construction engine exposing
            add_notarization_signatures(version, signatures, outputs) -> int
        client: Notary HTTP client
        config: Notary policy
    """

    def __init__(
        self,
        assembler: TransactionAssembler,
        builder: Any,
        client: Optional[NotaryClient] = None,
        config: Optional[NotaryConfig] = None,
    ) -> None:
        self.assembler = assembler
        self.builder = builder
        self.config = config or NotaryConfig()
        self.client = client or NotaryClient(timeout=self.config.timeout_seconds)

    async def get_notarization_signatures(
        self,
        assets: Mapping[str, AssetMetadata],
        request: TransactionRequest,
    ) -> NotarizationReport:
        """Contact the notary of every referenced asset that has an endpoint."""
        report = NotarizationReport()
        tx_hex: Optional[str] = None

        for asset_guid in request.referenced_assets():
            asset = assets.get(asset_guid)
            if asset is None or not asset.has_notary_endpoint:
                continue
            endpoint = asset.notary_details.endpoint_url
            if tx_hex is None:
                tx_hex = self.assembler.create_pst(request).unsigned_transaction().to_hex()

            try:
                signature = await self.client.request_signature(endpoint, tx_hex, asset_guid)
            except NotarizationError as e:
                status = (
                    NotarizationStatus.UNREACHABLE
                    if isinstance(e, NotaryUnreachableError)
                    else NotarizationStatus.REJECTED
                )
                logger.warning(f"Notary for asset {asset_guid} failed: {e}")
                report.outcomes.append(NotarizationOutcome(
                    asset_guid=asset_guid,
                    status=status,
                    endpoint=endpoint,
                    error=str(e),
                ))
                continue

            logger.info(f"Notary for asset {asset_guid} signed")
            report.outcomes.append(NotarizationOutcome(
                asset_guid=asset_guid,
                status=NotarizationStatus.SIGNED,
                endpoint=endpoint,
                signature=signature,
            ))
        return report

    async def notarize_and_sign(
        self,
        request: TransactionRequest,
        sign: bool,
        assets: Mapping[str, AssetMetadata],
    ) -> NotarizationResult:
        """
        Assemble, sign, notarize and re-sign when notarization changed the outputs.

        Raises:
            SignerUnavailableError: sign requested without a signer
            NotaryUnreachableError: a notary failed and abort_on_failure is set
        """
        ownership = self.assembler.determine_ownership(request) if sign else {}
        pst = self.assembler.create_and_sign(request, sign, ownership)

        report = await self.get_notarization_signatures(assets, request)
        if report.failures and self.config.abort_on_failure:
            raise NotaryUnreachableError(
                f"{len(report.failures)} notary request(s) failed",
                report=report,
            )

        resigned = False
        signatures = report.signatures
        if signatures:
            changed = self.builder.add_notarization_signatures(
                request.version, signatures, request.outputs,
            )
            if changed != NO_NOTARIZATION_CHANGE:
                pst = self.assembler.create_and_sign(request, sign, ownership)
                resigned = True
                logger.info(f"Re-signed after {len(signatures)} notary signature(s)")
        return NotarizationResult(pst=pst, report=report, resigned=resigned)
