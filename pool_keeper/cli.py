import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pool_keeper.actions import AdjustValidatorStake, Command, DepositSol, run_command
from pool_keeper.addresses import find_withdraw_authority_program_address
from pool_keeper.config import DEFAULT_ENDPOINT, DEFAULT_KEYPAIR_PATH, KeeperConfig
from pool_keeper.errors import PoolKeeperError
from pool_keeper.keystore import load_keypair
from pool_keeper.planner import Direction, find_validator
from pool_keeper.reader import StateReader
import pool_keeper.report as report

logger = logging.getLogger(__name__)


def pubkey(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid address: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pool-keeper',
        description='Update a stake pool, then deposit SOL or move stake between the reserve and a validator.')
    parser.add_argument('-p', '--pool', dest='pool_address', metavar='ADDRESS', type=pubkey, required=True,
                        help='Stake pool to use, given by a public key in base-58')
    parser.add_argument('--url', dest='endpoint', metavar='ENDPOINT_URL', default=DEFAULT_ENDPOINT,
                        help='RPC endpoint to use, e.g. https://api.mainnet-beta.solana.com')
    parser.add_argument('--keypair', dest='keypair_path', metavar='KEYPAIR', default=DEFAULT_KEYPAIR_PATH,
                        help='Fee payer and staker keypair file')
    parser.add_argument('--commitment', default='confirmed', choices=['processed', 'confirmed', 'finalized'],
                        help='Commitment level for reads and confirmations')
    parser.add_argument('--program-id', type=pubkey, default=KeeperConfig().program_id,
                        help='Stake pool program id')
    parser.add_argument('--referrer', dest='referrer_token_account', metavar='ADDRESS', type=pubkey,
                        help='Pool token account receiving the referral fee of deposits')
    parser.add_argument('--ephemeral-seed', dest='ephemeral_stake_seed', type=int, default=0,
                        help='Seed of the ephemeral stake account for stake increases and decreases')
    parser.add_argument('--validators-per-update', type=int, default=1,
                        help='Validators refreshed per update transaction')
    parser.add_argument('--no-merge', action='store_true',
                        help="Don't merge transient stake accounts while updating")
    parser.add_argument('--stale-only', action='store_true',
                        help='Only update validators not yet updated this epoch')
    parser.add_argument('--confirm-timeout', type=float, default=60.0,
                        help='Seconds to wait for a transaction confirmation')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug output')

    subparsers = parser.add_subparsers(dest='command', required=True)
    deposit = subparsers.add_parser('deposit-sol', help='Deposit SOL into the pool')
    deposit.add_argument('-a', '--amount', type=float, required=True, help='The amount in SOL to deposit')
    for (name, direction, help_text) in [
        ('increase-validator-stake', Direction.INCREASE, 'Add stake from the reserve to a validator'),
        ('decrease-validator-stake', Direction.DECREASE, 'Remove stake from a validator back to the reserve'),
    ]:
        adjust = subparsers.add_parser(name, help=help_text)
        adjust.add_argument('--vote-account', type=pubkey, required=True, help='Vote account of the validator')
        adjust.add_argument('-a', '--amount', type=float, required=True, help='Amount in SOL to move')
        adjust.set_defaults(direction=direction)
    return parser


def config_from_args(args: argparse.Namespace) -> KeeperConfig:
    return KeeperConfig(
        endpoint=args.endpoint,
        keypair_path=args.keypair_path,
        commitment=args.commitment,
        program_id=args.program_id,
        referrer_token_account=args.referrer_token_account,
        ephemeral_stake_seed=args.ephemeral_stake_seed,
        validators_per_update=args.validators_per_update,
        no_merge=args.no_merge,
        stale_only=args.stale_only,
        confirm_timeout=args.confirm_timeout,
    )


def command_from_args(args: argparse.Namespace) -> Command:
    if args.command == 'deposit-sol':
        return DepositSol(amount=args.amount)
    return AdjustValidatorStake(direction=args.direction, vote_account=args.vote_account, amount=args.amount)


async def run(stake_pool_address: Pubkey, payer: Keypair, command: Command, config: KeeperConfig):
    async_client = AsyncClient(endpoint=config.endpoint, commitment=config.commitment)
    try:
        reader = StateReader(async_client, config.program_id, config.commitment)
        report.print_payer(payer.pubkey(), await reader.fetch_balance(payer.pubkey()))
        stake_pool = await reader.fetch_stake_pool(stake_pool_address)
        (withdraw_authority, _) = find_withdraw_authority_program_address(config.program_id, stake_pool_address)
        report.print_stake_pool_addresses(stake_pool_address, stake_pool, withdraw_authority)
        report.print_stake_pool_financials(stake_pool)
        if isinstance(command, AdjustValidatorStake):
            validator_list = await reader.fetch_validator_list(stake_pool.validator_list)
            report.print_validator_stake_info(
                find_validator(validator_list, command.vote_account, stake_pool.validator_list))

        await run_command(async_client, payer, stake_pool_address, command, config)

        stake_pool = await reader.fetch_stake_pool(stake_pool_address)
        if isinstance(command, DepositSol):
            report.print_stake_pool_financials(stake_pool)
        else:
            validator_list = await reader.fetch_validator_list(stake_pool.validator_list)
            report.print_validator_stake_info(find_validator(validator_list, command.vote_account))
    finally:
        await async_client.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    config = config_from_args(args)
    try:
        payer = load_keypair(config.keypair_path)
        asyncio.run(run(args.pool_address, payer, command_from_args(args), config))
    except PoolKeeperError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
