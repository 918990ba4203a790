# Copyright (c) LenderPool Contributors. All rights reserved.
# Licensed under the MIT License.
"""Shared constants for rate math, chain walking and defaults."""

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Rates are expressed in basis points per year (10_000 == 100 %/year)
BPS_DENOMINATOR = 10_000

DEFAULT_PRINCIPAL_DECIMALS = 6
DEFAULT_REWARD_DECIMALS = 6

MIN_REWARD_ASSETS = 1
MAX_REWARD_ASSETS = 2

DEFAULT_CHAIN_MAX_HOPS = 32

DEFAULT_CUSTODY_ACCOUNT = "lender-pool"
