# src/stakeledger/ledger/constants.py
from __future__ import annotations

"""Reward-accounting constants.

Rate encoding:
- The on-ledger rate is an integer scaled by RATE_DENOMINATOR (1,000,000),
  giving percent per second.
- Percent per second is divided by PERCENT (100) to give the fraction per second.

Amounts:
- All ledger amounts are raw integers (smallest indivisible unit).
- Transfers are bounded by the u64 range of the token program.
"""

# Rate encoding (two fixed steps: /1_000_000 then /100)
RATE_DENOMINATOR: int = 1_000_000
PERCENT: int = 100
RATE_ENCODED_MIN: int = 1
RATE_ENCODED_MAX: int = 1_000_000

# Admin-configured values that must round-trip exactly
CANONICAL_ENCODED_RATES = (
    1,
    12,
    120,
    1_200,
    12_000,
    120_000,
    125,
    1_250,
    12_500,
    125_000,
    1_000_000,
)

# Token precision (stake token and reward token share it in the default deployment)
DEFAULT_TOKEN_DECIMALS: int = 9
MAX_TOKEN_DECIMALS: int = 30

# u64 raw-amount ceiling
U64_MAX: int = 2**64 - 1

# Reward models
REWARD_MODEL_LINEAR: str = "linear"
REWARD_MODEL_COMPOUND: str = "compound"
REWARD_MODELS = (REWARD_MODEL_LINEAR, REWARD_MODEL_COMPOUND)
DEFAULT_REWARD_MODEL: str = REWARD_MODEL_LINEAR

# Significant digits for compound exponentiation
COMPOUND_PRECISION: int = 60

# Default thresholds in whole tokens, scaled by the program decimals at initialization
DEFAULT_HARVEST_THRESHOLD_TOKENS: int = 1
DEFAULT_STAKE_THRESHOLD_TOKENS: int = 10
DEFAULT_UNSTAKE_THRESHOLD_TOKENS: int = 10

# Fixed periods for rate summaries (a month is 30 days)
SECONDS_PER_DAY: int = 86_400
REWARD_SUMMARY_PERIODS = (
    ("daily", SECONDS_PER_DAY),
    ("weekly", 7 * SECONDS_PER_DAY),
    ("monthly", 30 * SECONDS_PER_DAY),
    ("yearly", 365 * SECONDS_PER_DAY),
)
