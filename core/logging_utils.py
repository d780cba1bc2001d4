"""
Core Module - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Masking helpers so that key material never reaches a log:

- Mnemonics, passwords and private keys are always masked
- Extended public keys are shortened (they reveal every address)
- Request parameters are sanitized recursively

============================================================
"""

import re
from typing import Any, Dict


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

SENSITIVE_PARAMS = {
    "mnemonic",
    "seed",
    "password",
    "passphrase",
    "private_key",
    "privatekey",
    "xprv",
    "wif",
    "secret",
}

# Serialized extended keys (xpub/zpub/vpub/tpub and private variants)
EXTENDED_KEY_PATTERN = re.compile(r"\b[xyztuv](?:pub|prv)[1-9A-HJ-NP-Za-km-z]{100,112}\b")


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_extended_keys(text: str) -> str:
    """Shorten every serialized extended key found in text."""
    if not text:
        return text
    return EXTENDED_KEY_PATTERN.sub(lambda m: mask_value(m.group(0), show_chars=8), text)


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Args:
        params: Parameters about to be logged

    Returns:
        Parameters with sensitive values masked
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        elif isinstance(value, str):
            masked[key] = mask_extended_keys(value)
        else:
            masked[key] = value
    return masked
