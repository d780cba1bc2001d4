"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines chain-level constants shared by every component.

- Syscoin transaction versions
- Notarization and bridge constants
- Fee policy defaults

============================================================
"""

# ============================================================
# TRANSACTION VERSIONS
# ============================================================

SYSCOIN_TX_VERSION_ALLOCATION_BURN_TO_SYSCOIN = 128
SYSCOIN_TX_VERSION_SYSCOIN_BURN_TO_ALLOCATION = 129
SYSCOIN_TX_VERSION_ASSET_ACTIVATE = 130
SYSCOIN_TX_VERSION_ASSET_UPDATE = 131
SYSCOIN_TX_VERSION_ASSET_SEND = 132
SYSCOIN_TX_VERSION_ALLOCATION_MINT = 133
SYSCOIN_TX_VERSION_ALLOCATION_BURN_TO_ETHEREUM = 134
SYSCOIN_TX_VERSION_ALLOCATION_SEND = 135

# Versions whose outputs may exceed their inputs
BURN_TX_VERSIONS = frozenset({
    SYSCOIN_TX_VERSION_ALLOCATION_BURN_TO_SYSCOIN,
    SYSCOIN_TX_VERSION_SYSCOIN_BURN_TO_ALLOCATION,
    SYSCOIN_TX_VERSION_ALLOCATION_BURN_TO_ETHEREUM,
})

MINT_TX_VERSIONS = frozenset({
    SYSCOIN_TX_VERSION_ALLOCATION_MINT,
})

# ============================================================
# NOTARIZATION
# ============================================================

NOTARY_SIGNATURE_LENGTH = 65
EMPTY_NOTARY_SIGNATURE = bytes(NOTARY_SIGNATURE_LENGTH)

# ============================================================
# FEES
# ============================================================

DEFAULT_MAXIMUM_FEE_RATE = 5000  # sat/vB
DEFAULT_SEQUENCE = 0xFFFFFFFF
RBF_SEQUENCE = 0xFFFFFFFD

# ============================================================
# BRIDGE
# ============================================================

TOKEN_FREEZE_TOPIC = "9c6dea23fe3b510bb5d170df49dc74e387692eaa3258c691918cd3aa94f5fb74"

ERC20_MANAGER_MAINNET = "0xFF957eA28b537b34E0c6E6B50c6c938668DD28a0"
ERC20_MANAGER_TESTNET = "0x0765efb302d504751c652c5b1d65e8e9edf2e70f"

MAX_PRECISION = 18
