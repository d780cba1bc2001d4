"""
Transaction Assembler - Assembler.

============================================================
PURPOSE
============================================================
Turns a TransactionRequest into a PartiallySignedTransaction
and signs the inputs the configured signer owns.

============================================================
FLOW
============================================================
1. determine_ownership(request)
   - derive the public key for every input path
   - attach BIP32 derivation metadata to owned inputs
2. create_and_sign(request, sign, ownership)
   - build a fresh PST from the request
   - sign owned inputs
   - finalize only if every input's signatures validate

A PST that stays partially signed is a normal outcome (other
co-signers still have to sign); it is not an error.

============================================================
"""

import logging
from typing import Dict, Optional

from core.addresses import pubkey_hash_from_script, hash160
from core.exceptions import SignerUnavailableError
from core.networks import NetworkParams
from key_authority.signer import HDSigner
from transaction_assembler.config import FeeConfig
from transaction_assembler.pst import PartiallySignedTransaction
from transaction_assembler.types import Bip32Derivation, TransactionRequest


logger = logging.getLogger(__name__)


OwnershipIndex = Dict[int, bool]


class TransactionAssembler:
    """
    Builds and signs PSTs from transaction requests.

    Args:
        network: Network used to resolve output addresses
        signer: HD signer; None for watch-only assembly
        fee_config: Fee rate ceiling policy
    """

    def __init__(
        self,
        network: NetworkParams,
        signer: Optional[HDSigner] = None,
        fee_config: Optional[FeeConfig] = None,
    ) -> None:
        self.network = network
        self.signer = signer
        self.fee_config = fee_config or FeeConfig()

    def _require_signer(self) -> HDSigner:
        if self.signer is None:
            raise SignerUnavailableError("No HD signer configured, cannot sign transaction")
        return self.signer

    # ============================================================
    # OWNERSHIP
    # ============================================================

    def determine_ownership(self, request: TransactionRequest) -> OwnershipIndex:
        """
        Map input index -> owned, attaching derivation metadata to owned inputs.

        An input is owned when it carries a derivation path, the path derives,
        and (when the spent script is known) the derived key hash matches it.
        """
        signer = self._require_signer()
        ownership: OwnershipIndex = {}
        for index, req_in in enumerate(request.inputs):
            ownership[index] = False
            if not req_in.path:
                continue
            pubkey = signer.derive_pub_key(req_in.path)
            if pubkey is None:
                logger.warning(f"Input {index} has malformed path {req_in.path}")
                continue
            if req_in.witness_script is not None:
                expected = pubkey_hash_from_script(req_in.witness_script)
                if expected is not None and expected != hash160(pubkey):
                    logger.debug(f"Input {index} path {req_in.path} does not match its script")
                    continue
            req_in.bip32_derivation = [Bip32Derivation(
                master_fingerprint=signer.master_fingerprint,
                path=req_in.path,
                pubkey=pubkey,
            )]
            ownership[index] = True
        return ownership

    # ============================================================
    # ASSEMBLY
    # ============================================================

    def create_pst(self, request: TransactionRequest) -> PartiallySignedTransaction:
        return PartiallySignedTransaction.from_request(
            request,
            self.network,
            maximum_fee_rate=self.fee_config.maximum_fee_rate,
        )

    def create_and_sign(
        self,
        request: TransactionRequest,
        sign: bool,
        ownership: Optional[OwnershipIndex] = None,
    ) -> PartiallySignedTransaction:
        """
        Build a fresh PST and, when sign is set, sign the owned inputs.

        Raises:
            SignerUnavailableError: sign requested without a signer
        """
        if not sign:
            return self.create_pst(request)

        signer = self._require_signer()
        if ownership is None:
            ownership = self.determine_ownership(request)
        pst = self.create_pst(request)

        signed = 0
        for index in range(len(pst.inputs)):
            if ownership.get(index):
                pst.sign_input_hd(index, signer)
                signed += 1

        if signed and pst.validate_signatures_of_all_inputs():
            pst.finalize_all_inputs()
            logger.info(f"Signed and finalized {signed}/{len(pst.inputs)} inputs")
        else:
            logger.info(f"Signed {signed}/{len(pst.inputs)} inputs, PST left partially signed")
        return pst
