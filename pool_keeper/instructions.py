"""SPL Stake Pool Instructions."""

from enum import IntEnum
from typing import List, NamedTuple, Optional
from construct import Struct, Switch, Int8ul, Int32ul, Int64ul, Pass  # type: ignore

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.sysvar import CLOCK, STAKE_HISTORY
import solders.system_program as sys

from pool_keeper.addresses import \
    find_ephemeral_stake_program_address, \
    find_stake_program_address, \
    find_transient_stake_program_address, \
    find_withdraw_authority_program_address
from pool_keeper.constants import STAKE_PROGRAM_ID, SYSVAR_STAKE_CONFIG_ID
from pool_keeper.state import StakePool, ValidatorStakeInfo


class UpdateValidatorListBalanceParams(NamedTuple):
    """Updates balances of validator and transient stake accounts in the pool."""

    # Accounts
    program_id: Pubkey
    """SPL Stake Pool program account."""
    stake_pool: Pubkey
    """`[]` Stake pool."""
    withdraw_authority: Pubkey
    """`[]` Stake pool withdraw authority."""
    validator_list: Pubkey
    """`[w]` Validator stake list storage account."""
    reserve_stake: Pubkey
    """`[w]` Stake pool's reserve."""
    clock_sysvar: Pubkey
    """`[]` Clock sysvar."""
    stake_history_sysvar: Pubkey
    """'[]' Stake history sysvar."""
    stake_program_id: Pubkey
    """`[]` Stake program."""
    validator_and_transient_stake_pairs: List[Pubkey]
    """[] N pairs of validator and transient stake accounts"""

    # Params
    start_index: int
    """Index to start updating on the validator list."""
    no_merge: bool
    """If true, don't try merging transient stake accounts."""


class UpdateStakePoolBalanceParams(NamedTuple):
    """Updates total pool balance based on balances in the reserve and validator list."""

    program_id: Pubkey
    """SPL Stake Pool program account."""
    stake_pool: Pubkey
    """`[w]` Stake pool."""
    withdraw_authority: Pubkey
    """`[]` Stake pool withdraw authority."""
    validator_list: Pubkey
    """`[w]` Validator stake list storage account."""
    reserve_stake: Pubkey
    """`[]` Stake pool's reserve."""
    manager_fee_account: Pubkey
    """`[w]` Account to receive pool fee tokens."""
    pool_mint: Pubkey
    """`[w]` Pool mint account."""
    token_program_id: Pubkey
    """`[]` Pool token program."""


class CleanupRemovedValidatorEntriesParams(NamedTuple):
    """Cleans up validator stake account entries marked as `ReadyForRemoval`"""

    program_id: Pubkey
    """SPL Stake Pool program account."""
    stake_pool: Pubkey
    """`[]` Stake pool."""
    validator_list: Pubkey
    """`[w]` Validator stake list storage account."""


class DepositSolParams(NamedTuple):
    """Deposit SOL directly into the pool's reserve account. The output is a "pool" token
    representing ownership into the pool. Inputs are converted to the current ratio."""

    # Accounts
    program_id: Pubkey
    """SPL Stake Pool program account."""
    stake_pool: Pubkey
    """`[w]` Stake pool."""
    withdraw_authority: Pubkey
    """`[]` Stake pool withdraw authority."""
    reserve_stake: Pubkey
    """`[w]` Stake pool's reserve."""
    funding_account: Pubkey
    """`[ws]` Funding account (must be a system account)."""
    destination_pool_account: Pubkey
    """`[w]` User account to receive pool tokens."""
    manager_fee_account: Pubkey
    """`[w]` Manager's pool token account to receive deposit fee."""
    referral_pool_account: Pubkey
    """`[w]` Referrer pool token account to receive referral fee."""
    pool_mint: Pubkey
    """`[w]` Pool token mint."""
    system_program_id: Pubkey
    """`[]` System program."""
    token_program_id: Pubkey
    """`[]` Token program."""

    # Params
    amount: int
    """Amount of SOL to deposit"""

    # Optional
    deposit_authority: Optional[Pubkey] = None
    """`[s]` (Optional) Stake pool sol deposit authority."""


class IncreaseAdditionalValidatorStakeParams(NamedTuple):
    """(Staker only) Increase stake on a validator from the reserve account."""

    # Accounts
    program_id: Pubkey
    """SPL Stake Pool program account."""
    stake_pool: Pubkey
    """`[]` Stake pool."""
    staker: Pubkey
    """`[s]` Staker."""
    withdraw_authority: Pubkey
    """`[]` Stake pool withdraw authority."""
    validator_list: Pubkey
    """`[w]` Validator stake list storage account."""
    reserve_stake: Pubkey
    """`[w]` Stake pool's reserve."""
    ephemeral_stake: Pubkey
    """`[w]` Ephemeral stake account used during the operation."""
    transient_stake: Pubkey
    """`[w]` Transient stake account to receive split."""
    validator_stake: Pubkey
    """`[]` Canonical stake account to check."""
    validator_vote: Pubkey
    """`[]` Validator vote account to delegate to."""
    clock_sysvar: Pubkey
    """`[]` Clock sysvar."""
    stake_history_sysvar: Pubkey
    """'[]' Stake history sysvar."""
    stake_config_sysvar: Pubkey
    """'[]' Stake config sysvar."""
    system_program_id: Pubkey
    """`[]` System program."""
    stake_program_id: Pubkey
    """`[]` Stake program."""

    # Params
    lamports: int
    """Amount of lamports to increase on the given validator."""
    transient_stake_seed: int
    """Seed used to create the transient stake account."""
    ephemeral_stake_seed: int
    """Seed used to create the ephemeral stake account."""


class DecreaseAdditionalValidatorStakeParams(NamedTuple):
    """(Staker only) Decrease active stake on a validator, eventually moving it to the reserve"""

    # Accounts
    program_id: Pubkey
    """SPL Stake Pool program account."""
    stake_pool: Pubkey
    """`[]` Stake pool."""
    staker: Pubkey
    """`[s]` Staker."""
    withdraw_authority: Pubkey
    """`[]` Stake pool withdraw authority."""
    validator_list: Pubkey
    """`[w]` Validator stake list storage account."""
    reserve_stake: Pubkey
    """`[w]` Stake pool's reserve, funds the ephemeral account's rent."""
    validator_stake: Pubkey
    """`[w]` Canonical stake to split from."""
    ephemeral_stake: Pubkey
    """`[w]` Ephemeral stake account used during the operation."""
    transient_stake: Pubkey
    """`[w]` Transient stake account to receive split."""
    clock_sysvar: Pubkey
    """`[]` Clock sysvar."""
    stake_history_sysvar: Pubkey
    """'[]' Stake history sysvar."""
    system_program_id: Pubkey
    """`[]` System program."""
    stake_program_id: Pubkey
    """`[]` Stake program."""

    # Params
    lamports: int
    """Amount of lamports to split into the transient stake account."""
    transient_stake_seed: int
    """Seed used to create the transient stake account."""
    ephemeral_stake_seed: int
    """Seed used to create the ephemeral stake account."""


class InstructionType(IntEnum):
    """Stake Pool Instruction Types."""

    UPDATE_VALIDATOR_LIST_BALANCE = 6
    UPDATE_STAKE_POOL_BALANCE = 7
    CLEANUP_REMOVED_VALIDATOR_ENTRIES = 8
    DEPOSIT_SOL = 14
    INCREASE_ADDITIONAL_VALIDATOR_STAKE = 19
    DECREASE_ADDITIONAL_VALIDATOR_STAKE = 20


MOVE_STAKE_LAYOUT_WITH_EPHEMERAL_STAKE = Struct(
    "lamports" / Int64ul,
    "transient_stake_seed" / Int64ul,
    "ephemeral_stake_seed" / Int64ul,
)

UPDATE_VALIDATOR_LIST_BALANCE_LAYOUT = Struct(
    "start_index" / Int32ul,
    "no_merge" / Int8ul,
)

AMOUNT_LAYOUT = Struct(
    "amount" / Int64ul
)

INSTRUCTIONS_LAYOUT = Struct(
    "instruction_type" / Int8ul,
    "args"
    / Switch(
        lambda this: this.instruction_type,
        {
            InstructionType.UPDATE_VALIDATOR_LIST_BALANCE: UPDATE_VALIDATOR_LIST_BALANCE_LAYOUT,
            InstructionType.UPDATE_STAKE_POOL_BALANCE: Pass,
            InstructionType.CLEANUP_REMOVED_VALIDATOR_ENTRIES: Pass,
            InstructionType.DEPOSIT_SOL: AMOUNT_LAYOUT,
            InstructionType.INCREASE_ADDITIONAL_VALIDATOR_STAKE: MOVE_STAKE_LAYOUT_WITH_EPHEMERAL_STAKE,
            InstructionType.DECREASE_ADDITIONAL_VALIDATOR_STAKE: MOVE_STAKE_LAYOUT_WITH_EPHEMERAL_STAKE,
        },
    ),
)


def update_validator_list_balance(params: UpdateValidatorListBalanceParams) -> Instruction:
    """Creates instruction to update a set of validators in the stake pool."""
    accounts = [
        AccountMeta(pubkey=params.stake_pool, is_signer=False, is_writable=False),
        AccountMeta(pubkey=params.withdraw_authority, is_signer=False, is_writable=False),
        AccountMeta(pubkey=params.validator_list, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.reserve_stake, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.clock_sysvar, is_signer=False, is_writable=False),
        AccountMeta(pubkey=params.stake_history_sysvar, is_signer=False, is_writable=False),
        AccountMeta(pubkey=params.stake_program_id, is_signer=False, is_writable=False),
    ]
    accounts.extend([
        AccountMeta(pubkey=pubkey, is_signer=False, is_writable=True)
        for pubkey in params.validator_and_transient_stake_pairs
    ])
    return Instruction(
        accounts=accounts,
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.UPDATE_VALIDATOR_LIST_BALANCE,
                args={'start_index': params.start_index, 'no_merge': int(params.no_merge)}
            )
        )
    )


def update_validator_list_balance_for_entries(
    program_id: Pubkey,
    stake_pool: StakePool,
    stake_pool_address: Pubkey,
    validators: List[ValidatorStakeInfo],
    start_index: int,
    no_merge: bool,
) -> Instruction:
    """Creates an update instruction covering `validators`, which must be the
    consecutive list entries beginning at `start_index`."""
    (withdraw_authority, _) = find_withdraw_authority_program_address(program_id, stake_pool_address)
    validator_and_transient_stake_pairs = []
    for validator in validators:
        (validator_stake, _) = find_stake_program_address(
            program_id,
            validator.vote_account_address,
            stake_pool_address,
            validator.validator_seed,
        )
        (transient_stake, _) = find_transient_stake_program_address(
            program_id,
            validator.vote_account_address,
            stake_pool_address,
            validator.transient_seed_suffix,
        )
        validator_and_transient_stake_pairs.extend([validator_stake, transient_stake])
    return update_validator_list_balance(
        UpdateValidatorListBalanceParams(
            program_id=program_id,
            stake_pool=stake_pool_address,
            withdraw_authority=withdraw_authority,
            validator_list=stake_pool.validator_list,
            reserve_stake=stake_pool.reserve_stake,
            clock_sysvar=CLOCK,
            stake_history_sysvar=STAKE_HISTORY,
            stake_program_id=STAKE_PROGRAM_ID,
            validator_and_transient_stake_pairs=validator_and_transient_stake_pairs,
            start_index=start_index,
            no_merge=no_merge,
        )
    )


def update_stake_pool_balance(params: UpdateStakePoolBalanceParams) -> Instruction:
    """Creates instruction to update the overall stake pool balance."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.stake_pool, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.withdraw_authority, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.validator_list, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.reserve_stake, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.manager_fee_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.pool_mint, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.token_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.UPDATE_STAKE_POOL_BALANCE,
                args=None,
            )
        )
    )


def cleanup_removed_validator_entries(params: CleanupRemovedValidatorEntriesParams) -> Instruction:
    """Creates instruction to cleanup removed validator entries."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.stake_pool, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.validator_list, is_signer=False, is_writable=True),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.CLEANUP_REMOVED_VALIDATOR_ENTRIES,
                args=None,
            )
        )
    )


def deposit_sol(params: DepositSolParams) -> Instruction:
    """Creates a transaction instruction to deposit SOL into a stake pool."""
    accounts = [
        AccountMeta(pubkey=params.stake_pool, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.withdraw_authority, is_signer=False, is_writable=False),
        AccountMeta(pubkey=params.reserve_stake, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.funding_account, is_signer=True, is_writable=True),
        AccountMeta(pubkey=params.destination_pool_account, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.manager_fee_account, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.referral_pool_account, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.pool_mint, is_signer=False, is_writable=True),
        AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
        AccountMeta(pubkey=params.token_program_id, is_signer=False, is_writable=False),
    ]
    if params.deposit_authority:
        accounts.append(AccountMeta(pubkey=params.deposit_authority, is_signer=True, is_writable=False))
    return Instruction(
        accounts=accounts,
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.DEPOSIT_SOL,
                args={'amount': params.amount}
            )
        )
    )


def increase_additional_validator_stake(params: IncreaseAdditionalValidatorStakeParams) -> Instruction:
    """Creates `IncreaseAdditionalValidatorStake` instruction (rebalance from reserve account to transient account)"""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.stake_pool, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.staker, is_signer=True, is_writable=False),
            AccountMeta(pubkey=params.withdraw_authority, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.validator_list, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.reserve_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.ephemeral_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.transient_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.validator_stake, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.validator_vote, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.clock_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_history_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_config_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.INCREASE_ADDITIONAL_VALIDATOR_STAKE,
                args={
                    'lamports': params.lamports,
                    'transient_stake_seed': params.transient_stake_seed,
                    'ephemeral_stake_seed': params.ephemeral_stake_seed
                }
            )
        )
    )


def increase_additional_validator_stake_with_vote(
    program_id: Pubkey,
    stake_pool: StakePool,
    stake_pool_address: Pubkey,
    vote_account_address: Pubkey,
    lamports: int,
    validator_stake_seed: Optional[int],
    transient_stake_seed: int,
    ephemeral_stake_seed: int,
) -> Instruction:
    """Creates `IncreaseAdditionalValidatorStake` for a vote account, deriving every program address."""
    (withdraw_authority, _) = find_withdraw_authority_program_address(program_id, stake_pool_address)
    (validator_stake, _) = find_stake_program_address(
        program_id, vote_account_address, stake_pool_address, validator_stake_seed)
    (transient_stake, _) = find_transient_stake_program_address(
        program_id, vote_account_address, stake_pool_address, transient_stake_seed)
    (ephemeral_stake, _) = find_ephemeral_stake_program_address(
        program_id, stake_pool_address, ephemeral_stake_seed)
    return increase_additional_validator_stake(
        IncreaseAdditionalValidatorStakeParams(
            program_id=program_id,
            stake_pool=stake_pool_address,
            staker=stake_pool.staker,
            withdraw_authority=withdraw_authority,
            validator_list=stake_pool.validator_list,
            reserve_stake=stake_pool.reserve_stake,
            ephemeral_stake=ephemeral_stake,
            transient_stake=transient_stake,
            validator_stake=validator_stake,
            validator_vote=vote_account_address,
            clock_sysvar=CLOCK,
            stake_history_sysvar=STAKE_HISTORY,
            stake_config_sysvar=SYSVAR_STAKE_CONFIG_ID,
            system_program_id=sys.ID,
            stake_program_id=STAKE_PROGRAM_ID,
            lamports=lamports,
            transient_stake_seed=transient_stake_seed,
            ephemeral_stake_seed=ephemeral_stake_seed,
        )
    )


def decrease_additional_validator_stake(params: DecreaseAdditionalValidatorStakeParams) -> Instruction:
    """ Creates `DecreaseAdditionalValidatorStake` instruction (rebalance from validator account to
    transient account)."""
    return Instruction(
        accounts=[
            AccountMeta(pubkey=params.stake_pool, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.staker, is_signer=True, is_writable=False),
            AccountMeta(pubkey=params.withdraw_authority, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.validator_list, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.reserve_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.validator_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.ephemeral_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.transient_stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.clock_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_history_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.system_program_id, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_program_id, is_signer=False, is_writable=False),
        ],
        program_id=params.program_id,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.DECREASE_ADDITIONAL_VALIDATOR_STAKE,
                args={
                    'lamports': params.lamports,
                    'transient_stake_seed': params.transient_stake_seed,
                    'ephemeral_stake_seed': params.ephemeral_stake_seed
                }
            )
        )
    )


def decrease_additional_validator_stake_with_vote(
    program_id: Pubkey,
    stake_pool: StakePool,
    stake_pool_address: Pubkey,
    vote_account_address: Pubkey,
    lamports: int,
    validator_stake_seed: Optional[int],
    transient_stake_seed: int,
    ephemeral_stake_seed: int,
) -> Instruction:
    """Creates `DecreaseAdditionalValidatorStake` for a vote account, deriving every program address."""
    (withdraw_authority, _) = find_withdraw_authority_program_address(program_id, stake_pool_address)
    (validator_stake, _) = find_stake_program_address(
        program_id, vote_account_address, stake_pool_address, validator_stake_seed)
    (transient_stake, _) = find_transient_stake_program_address(
        program_id, vote_account_address, stake_pool_address, transient_stake_seed)
    (ephemeral_stake, _) = find_ephemeral_stake_program_address(
        program_id, stake_pool_address, ephemeral_stake_seed)
    return decrease_additional_validator_stake(
        DecreaseAdditionalValidatorStakeParams(
            program_id=program_id,
            stake_pool=stake_pool_address,
            staker=stake_pool.staker,
            withdraw_authority=withdraw_authority,
            validator_list=stake_pool.validator_list,
            reserve_stake=stake_pool.reserve_stake,
            validator_stake=validator_stake,
            ephemeral_stake=ephemeral_stake,
            transient_stake=transient_stake,
            clock_sysvar=CLOCK,
            stake_history_sysvar=STAKE_HISTORY,
            system_program_id=sys.ID,
            stake_program_id=STAKE_PROGRAM_ID,
            lamports=lamports,
            transient_stake_seed=transient_stake_seed,
            ephemeral_stake_seed=ephemeral_stake_seed,
        )
    )
