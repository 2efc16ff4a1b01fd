"""Configuration management for the loan schedule engine."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple

Tier = Tuple[Decimal, Decimal]

# (loan amount ceiling, brokerage fee) pairs, ascending
DEFAULT_BROKERAGE_FEE_TIERS: Tuple[Tier, ...] = (
    (Decimal("250"), Decimal("170.00")),
    (Decimal("500"), Decimal("340.00")),
    (Decimal("750"), Decimal("510.00")),
    (Decimal("1000"), Decimal("680.00")),
    (Decimal("1500"), Decimal("1020.00")),
    (Decimal("2000"), Decimal("1360.00")),
    (Decimal("3000"), Decimal("2040.00")),
)


@dataclass
class EngineConfig:
    """Tunable constants of the schedule engine."""

    deferral_fee_default: Decimal = Decimal("50.00")
    reconciliation_tolerance: Decimal = Decimal("0.05")
    skip_weekends: bool = False
    brokerage_fee_tiers: Tuple[Tier, ...] = field(default=DEFAULT_BROKERAGE_FEE_TIERS)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        tiers_str = os.getenv("LOAN_BROKERAGE_TIERS")
        return cls(
            deferral_fee_default=Decimal(os.getenv("LOAN_DEFERRAL_FEE", "50.00")),
            reconciliation_tolerance=Decimal(os.getenv("LOAN_RECONCILIATION_TOLERANCE", "0.05")),
            skip_weekends=os.getenv("LOAN_SKIP_WEEKENDS", "false").lower() == "true",
            brokerage_fee_tiers=parse_tiers(tiers_str) if tiers_str else DEFAULT_BROKERAGE_FEE_TIERS,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def parse_tiers(raw: str) -> Tuple[Tier, ...]:
    """Parse ``[[ceiling, fee], ...]`` JSON into a sorted tier table."""
    pairs = json.loads(raw)
    tiers = tuple(sorted((Decimal(str(c)), Decimal(str(f))) for c, f in pairs))
    fees = [fee for _, fee in tiers]
    if fees != sorted(fees):
        raise ValueError("Brokerage fee tiers must not decrease as the loan amount grows")
    return tiers


_default_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Return the process-wide config, read from the environment once."""
    global _default_config
    if _default_config is None:
        _default_config = EngineConfig.from_env()
    return _default_config
