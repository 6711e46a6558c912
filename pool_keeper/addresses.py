"""Program address derivation for the stake pool and its accounts."""

from typing import Optional, Tuple

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from pool_keeper.constants import \
    AUTHORITY_WITHDRAW, \
    EPHEMERAL_STAKE_SEED_PREFIX, \
    TRANSIENT_STAKE_SEED_PREFIX


def find_withdraw_authority_program_address(
    program_id: Pubkey,
    stake_pool_address: Pubkey,
) -> Tuple[Pubkey, int]:
    """Generates the withdraw authority program address for the stake pool"""
    return Pubkey.find_program_address(
        [bytes(stake_pool_address), AUTHORITY_WITHDRAW],
        program_id,
    )


def find_stake_program_address(
    program_id: Pubkey,
    vote_account_address: Pubkey,
    stake_pool_address: Pubkey,
    seed: Optional[int]
) -> Tuple[Pubkey, int]:
    """Generates the stake program address for a validator's vote account.

    A missing or zero seed selects the validator's canonical stake account.
    """
    return Pubkey.find_program_address(
        [
            bytes(vote_account_address),
            bytes(stake_pool_address),
            seed.to_bytes(4, 'little') if seed else bytes(),
        ],
        program_id,
    )


def find_transient_stake_program_address(
    program_id: Pubkey,
    vote_account_address: Pubkey,
    stake_pool_address: Pubkey,
    seed: int,
) -> Tuple[Pubkey, int]:
    """Generates the transient stake program address for a validator's vote account"""
    return Pubkey.find_program_address(
        [
            TRANSIENT_STAKE_SEED_PREFIX,
            bytes(vote_account_address),
            bytes(stake_pool_address),
            seed.to_bytes(8, 'little'),
        ],
        program_id,
    )


def find_ephemeral_stake_program_address(
    program_id: Pubkey,
    stake_pool_address: Pubkey,
    seed: int
) -> Tuple[Pubkey, int]:
    """Generates the ephemeral program address used while adding or removing validator stake"""
    return Pubkey.find_program_address(
        [
            EPHEMERAL_STAKE_SEED_PREFIX,
            bytes(stake_pool_address),
            seed.to_bytes(8, 'little'),
        ],
        program_id,
    )


def find_associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    """Owner's canonical token account for the given mint."""
    return get_associated_token_address(owner, mint)
