"""Decide which instructions to send, in which order, and when to wait.

Maintenance must run before any user operation: the pool-level balance update
reads the per-validator records, so every validator update has to be confirmed
before it runs, and deposits or stake moves have to observe the refreshed
pool totals.
"""

import logging
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
import solders.system_program as sys

from pool_keeper.addresses import find_associated_token_address, find_withdraw_authority_program_address
from pool_keeper.amounts import sol_to_lamports
from pool_keeper.config import KeeperConfig
from pool_keeper.errors import ValidatorNotFound
from pool_keeper.state import StakePool, ValidatorList, ValidatorStakeInfo
import pool_keeper.instructions as sp

logger = logging.getLogger(__name__)


class InstructionBatch(NamedTuple):
    """Instructions sent together in one transaction."""

    instructions: List[Instruction]
    wait: bool
    """Block until the transaction is confirmed before sending the next batch."""
    signers: Sequence[Keypair] = ()
    """Keypairs created for this batch only, e.g. an ephemeral funding account."""


class Plan(NamedTuple):
    """Batches making up one operation, executed strictly in order."""

    name: str
    batches: List[InstructionBatch]


class Direction(Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


def _stale_indices(validator_list: ValidatorList, current_epoch: Optional[int]) -> List[int]:
    return [
        index for (index, validator) in enumerate(validator_list.validators)
        if current_epoch is None or validator.last_update_epoch < current_epoch
    ]


def _contiguous_chunks(indices: List[int], chunk_size: int) -> List[List[int]]:
    chunks: List[List[int]] = []
    for index in indices:
        if chunks and len(chunks[-1]) < chunk_size and chunks[-1][-1] == index - 1:
            chunks[-1].append(index)
        else:
            chunks.append([index])
    return chunks


def plan_pool_update(
    stake_pool_address: Pubkey,
    stake_pool: StakePool,
    validator_list: ValidatorList,
    config: KeeperConfig = KeeperConfig(),
    current_epoch: Optional[int] = None,
) -> Plan:
    """Plan a full pool update after an epoch change.

    Each validator update goes out in its own transaction without waiting,
    except the last, which must be confirmed. The final batch recomputes the
    pool totals and cleans up removed entries, and is always confirmed.

    With `current_epoch`, validators already updated in that epoch are skipped.
    """
    validators = validator_list.validators
    chunks = _contiguous_chunks(_stale_indices(validator_list, current_epoch), config.update_chunk_size)
    update_list_instructions = [
        sp.update_validator_list_balance_for_entries(
            config.program_id,
            stake_pool,
            stake_pool_address,
            [validators[index] for index in chunk],
            chunk[0],
            config.no_merge,
        )
        for chunk in chunks
    ]
    batches = [
        InstructionBatch(instructions=[instruction], wait=False)
        for instruction in update_list_instructions
    ]
    if batches:
        batches[-1] = batches[-1]._replace(wait=True)

    (withdraw_authority, _) = find_withdraw_authority_program_address(config.program_id, stake_pool_address)
    final_instructions = [
        sp.update_stake_pool_balance(
            sp.UpdateStakePoolBalanceParams(
                program_id=config.program_id,
                stake_pool=stake_pool_address,
                withdraw_authority=withdraw_authority,
                validator_list=stake_pool.validator_list,
                reserve_stake=stake_pool.reserve_stake,
                manager_fee_account=stake_pool.manager_fee_account,
                pool_mint=stake_pool.pool_mint,
                token_program_id=stake_pool.token_program_id,
            )
        ),
        sp.cleanup_removed_validator_entries(
            sp.CleanupRemovedValidatorEntriesParams(
                program_id=config.program_id,
                stake_pool=stake_pool_address,
                validator_list=stake_pool.validator_list,
            )
        ),
    ]
    batches.append(InstructionBatch(instructions=final_instructions, wait=True))
    logger.debug("Planned update of %d of %d validators in %d transactions",
                 sum(len(chunk) for chunk in chunks), len(validators), len(batches))
    return Plan(name="update", batches=batches)


def plan_deposit(
    amount: float,
    stake_pool_address: Pubkey,
    stake_pool: StakePool,
    payer: Pubkey,
    config: KeeperConfig = KeeperConfig(),
) -> Plan:
    """Plan a SOL deposit from `payer` into the pool.

    The SOL first moves to a fresh ephemeral account, which then funds the
    deposit. Both instructions share one transaction, so the transfer always
    lands first. Pool tokens go to the payer's associated token account.
    """
    lamports = sol_to_lamports(amount)

    # single-use funding account, dropped with the batch
    ephemeral = Keypair()

    destination_pool_account = find_associated_token_address(payer, stake_pool.pool_mint)
    referral_pool_account = config.referrer_token_account or destination_pool_account
    (withdraw_authority, _) = find_withdraw_authority_program_address(config.program_id, stake_pool_address)

    instructions = [
        sys.transfer(
            sys.TransferParams(
                from_pubkey=payer,
                to_pubkey=ephemeral.pubkey(),
                lamports=lamports,
            )
        ),
        sp.deposit_sol(
            sp.DepositSolParams(
                program_id=config.program_id,
                stake_pool=stake_pool_address,
                withdraw_authority=withdraw_authority,
                reserve_stake=stake_pool.reserve_stake,
                funding_account=ephemeral.pubkey(),
                destination_pool_account=destination_pool_account,
                manager_fee_account=stake_pool.manager_fee_account,
                referral_pool_account=referral_pool_account,
                pool_mint=stake_pool.pool_mint,
                system_program_id=sys.ID,
                token_program_id=stake_pool.token_program_id,
                amount=lamports,
            )
        ),
    ]
    logger.debug("Planned deposit of %d lamports through %s", lamports, ephemeral.pubkey())
    return Plan(
        name="deposit-sol",
        batches=[InstructionBatch(instructions=instructions, wait=True, signers=(ephemeral,))],
    )


def find_validator(
    validator_list: ValidatorList,
    vote_account: Pubkey,
    validator_list_address: Optional[Pubkey] = None,
) -> ValidatorStakeInfo:
    validator_info = validator_list.find(vote_account)
    if validator_info is None:
        raise ValidatorNotFound(vote_account, validator_list_address)
    return validator_info


def plan_stake_adjustment(
    direction: Direction,
    amount: float,
    vote_account: Pubkey,
    stake_pool_address: Pubkey,
    stake_pool: StakePool,
    validator_list: ValidatorList,
    config: KeeperConfig = KeeperConfig(),
) -> Plan:
    """Plan moving stake between the reserve and a validator.

    The validator seed is the entry's validator seed suffix, absent when zero.
    The transient seed is the entry's transient seed suffix as is.
    """
    validator_info = find_validator(validator_list, vote_account, stake_pool.validator_list)
    lamports = sol_to_lamports(amount)
    if direction is Direction.INCREASE:
        build = sp.increase_additional_validator_stake_with_vote
    else:
        build = sp.decrease_additional_validator_stake_with_vote
    instruction = build(
        config.program_id,
        stake_pool,
        stake_pool_address,
        vote_account,
        lamports,
        validator_info.validator_seed,
        validator_info.transient_seed_suffix,
        config.ephemeral_stake_seed,
    )
    logger.debug("Planned %s of %d lamports on %s", direction.value, lamports, vote_account)
    return Plan(
        name=f"{direction.value}-validator-stake",
        batches=[InstructionBatch(instructions=[instruction], wait=True)],
    )
