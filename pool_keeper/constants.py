"""Stake Pool Keeper Constants."""

from solders.pubkey import Pubkey

STAKE_POOL_PROGRAM_ID = Pubkey.from_string("SPoo1Ku8WFXoNDMHPsrGSTSG1Y47rzgn41SLUNakuHy")
"""Public key that identifies the SPL Stake Pool program."""

STAKE_PROGRAM_ID = Pubkey.from_string("Stake11111111111111111111111111111111111111")
"""Public key that identifies the Stake program."""

SYSVAR_STAKE_CONFIG_ID = Pubkey.from_string("StakeConfig11111111111111111111111111111111")
"""Public key that identifies the Stake config sysvar."""

LAMPORTS_PER_SOL: int = 1_000_000_000
"""Number of lamports per SOL"""

U64_MAX: int = 2**64 - 1
"""Largest lamport amount an instruction can carry."""

MAX_VALIDATORS_TO_UPDATE: int = 5
"""Maximum number of validators to update during UpdateValidatorListBalance."""

AUTHORITY_WITHDRAW = b"withdraw"
"""Seed used to derive the stake pool withdraw authority."""
TRANSIENT_STAKE_SEED_PREFIX = b"transient"
"""Seed used to derive transient stake accounts."""
EPHEMERAL_STAKE_SEED_PREFIX = b"ephemeral"
"""Seed for ephemeral stake account"""
