import logging
from typing import List, NamedTuple, Optional, Sequence, Union

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from pool_keeper.amounts import sol_to_lamports
from pool_keeper.config import KeeperConfig
from pool_keeper.planner import Direction, find_validator, plan_deposit, plan_pool_update, plan_stake_adjustment
from pool_keeper.reader import StateReader
from pool_keeper.submitter import TransactionSubmitter

logger = logging.getLogger(__name__)


class DepositSol(NamedTuple):
    amount: float


class AdjustValidatorStake(NamedTuple):
    direction: Direction
    vote_account: Pubkey
    amount: float


Command = Union[DepositSol, AdjustValidatorStake]


def _reader(client: AsyncClient, config: KeeperConfig) -> StateReader:
    return StateReader(client, config.program_id, config.commitment)


def _submitter(client: AsyncClient, payer: Keypair, config: KeeperConfig,
               signers: Sequence[Keypair] = ()) -> TransactionSubmitter:
    return TransactionSubmitter(client, payer, signers, config.commitment, config.confirm_timeout)


async def update_stake_pool(
    client: AsyncClient, payer: Keypair, stake_pool_address: Pubkey,
    config: KeeperConfig = KeeperConfig(),
) -> List[Signature]:
    """Create and send all instructions to completely update a stake pool after epoch change."""
    reader = _reader(client, config)
    stake_pool = await reader.fetch_stake_pool(stake_pool_address)
    validator_list = await reader.fetch_validator_list(stake_pool.validator_list)
    current_epoch = await reader.fetch_epoch() if config.stale_only else None
    plan = plan_pool_update(stake_pool_address, stake_pool, validator_list, config, current_epoch)
    return await _submitter(client, payer, config).execute(plan)


async def deposit_sol(
    client: AsyncClient, payer: Keypair, stake_pool_address: Pubkey, amount: float,
    config: KeeperConfig = KeeperConfig(),
) -> List[Signature]:
    """Deposit `amount` SOL from `payer`, minting pool tokens to its associated token account."""
    stake_pool = await _reader(client, config).fetch_stake_pool(stake_pool_address)
    plan = plan_deposit(amount, stake_pool_address, stake_pool, payer.pubkey(), config)
    return await _submitter(client, payer, config).execute(plan)


async def adjust_validator_stake(
    client: AsyncClient, payer: Keypair, stake_pool_address: Pubkey,
    direction: Direction, vote_account: Pubkey, amount: float,
    config: KeeperConfig = KeeperConfig(), staker: Optional[Keypair] = None,
) -> List[Signature]:
    reader = _reader(client, config)
    stake_pool = await reader.fetch_stake_pool(stake_pool_address)
    validator_list = await reader.fetch_validator_list(stake_pool.validator_list)
    plan = plan_stake_adjustment(
        direction, amount, vote_account, stake_pool_address, stake_pool, validator_list, config)
    signers = [staker] if staker is not None else []
    return await _submitter(client, payer, config, signers).execute(plan)


async def increase_validator_stake(
    client: AsyncClient, payer: Keypair, stake_pool_address: Pubkey,
    vote_account: Pubkey, amount: float,
    config: KeeperConfig = KeeperConfig(), staker: Optional[Keypair] = None,
) -> List[Signature]:
    return await adjust_validator_stake(
        client, payer, stake_pool_address, Direction.INCREASE, vote_account, amount, config, staker)


async def decrease_validator_stake(
    client: AsyncClient, payer: Keypair, stake_pool_address: Pubkey,
    vote_account: Pubkey, amount: float,
    config: KeeperConfig = KeeperConfig(), staker: Optional[Keypair] = None,
) -> List[Signature]:
    return await adjust_validator_stake(
        client, payer, stake_pool_address, Direction.DECREASE, vote_account, amount, config, staker)


async def run_command(
    client: AsyncClient, payer: Keypair, stake_pool_address: Pubkey, command: Command,
    config: KeeperConfig = KeeperConfig(),
) -> List[Signature]:
    """Bring the pool up to date, then run `command` against freshly fetched state.

    The amount and the vote account are checked before the update, so a
    command that cannot succeed sends nothing.
    """
    sol_to_lamports(command.amount)
    if isinstance(command, AdjustValidatorStake):
        reader = _reader(client, config)
        stake_pool = await reader.fetch_stake_pool(stake_pool_address)
        validator_list = await reader.fetch_validator_list(stake_pool.validator_list)
        find_validator(validator_list, command.vote_account, stake_pool.validator_list)

    logger.info("Updating stake pool %s", stake_pool_address)
    signatures = await update_stake_pool(client, payer, stake_pool_address, config)
    if isinstance(command, DepositSol):
        signatures += await deposit_sol(client, payer, stake_pool_address, command.amount, config)
    else:
        signatures += await adjust_validator_stake(
            client, payer, stake_pool_address,
            command.direction, command.vote_account, command.amount, config)
    return signatures
