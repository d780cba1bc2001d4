"""
Transaction Assembler - Configuration.
"""

from dataclasses import dataclass

from core.constants import DEFAULT_MAXIMUM_FEE_RATE


@dataclass
class FeeConfig:
    """Fee policy applied when extracting a finalized transaction."""

    maximum_fee_rate: int = DEFAULT_MAXIMUM_FEE_RATE
    """Ceiling in sat/vB; extraction fails above it."""

    disable_fee_check: bool = False

    def __post_init__(self) -> None:
        if self.maximum_fee_rate <= 0:
            raise ValueError("maximum_fee_rate must be positive")

    def to_dict(self) -> dict:
        return {
            "maximum_fee_rate": self.maximum_fee_rate,
            "disable_fee_check": self.disable_fee_check,
        }
