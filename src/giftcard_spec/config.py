"""Gift card configuration constants.

Keep this file aligned with the deployed program limits (record field sizes,
metadata arguments, derivation seeds).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

# Integer bounds
U64_MAX = (1 << 64) - 1
I64_MAX = (1 << 63) - 1
I64_MIN = -(1 << 63)

# Voucher record limits
MAX_MERCHANT_NAME_LEN = 32
TOKEN_DECIMALS = 0
TOKEN_SUPPLY = 1

# Metadata (best-effort, not consulted by any invariant)
METADATA_NAME_PREFIX = "Gift Card - "
METADATA_SYMBOL = "GIFTCARD"
MAX_METADATA_NAME_LEN = 32
MAX_METADATA_SYMBOL_LEN = 10
MAX_METADATA_URI_LEN = 200
SELLER_FEE_BASIS_POINTS = 0

# Derivation
PROGRAM_ID = bytes.fromhex(
    "f8c26a0b9e4d3a5f1c7e2b6d90a4f3e8c1b5d7a92e6f0c48b3d1a7e5c9f2b604"
)
VOUCHER_SEED = b"gift_card"
VAULT_SEED = b"escrow"
HOLDING_SEED = b"holding"
ACCOUNT_DISCRIMINATOR_PREIMAGE = b"account:GiftCard"
ADDRESS_LEN = 32

# Defaults
DEFAULT_STATE_PATH = "giftcards.yaml"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass
class RuntimeConfig:
    """Settings for the command line front end."""

    state_path: str = DEFAULT_STATE_PATH
    verbose: bool = False
    redeem_by_role: bool = False

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Load configuration from environment variables."""
        config = cls()
        config.state_path = os.environ.get("GIFTCARD_STATE", DEFAULT_STATE_PATH)
        config.verbose = _env_flag("GIFTCARD_VERBOSE")
        config.redeem_by_role = _env_flag("GIFTCARD_REDEEM_BY_ROLE")
        return config
