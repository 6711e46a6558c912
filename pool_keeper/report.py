"""Console output describing pool state."""

from solders.pubkey import Pubkey

from pool_keeper.amounts import lamports_to_sol
from pool_keeper.state import StakePool, ValidatorStakeInfo


def print_payer(payer: Pubkey, balance: int):
    print(f"Stake from: {payer}")
    print(f"Current available balance: {balance} lamports ({lamports_to_sol(balance)} SOL)")


def print_stake_pool_addresses(stake_pool_address: Pubkey, stake_pool: StakePool, withdraw_authority: Pubkey):
    print("\n==========================================")
    print("Stake Pool Details")
    print("==========================================")
    print(f"Stake Pool Pubkey: {stake_pool_address}")
    print(f"Stake Pool Manager: {stake_pool.manager}")
    print(f"Stake Pool Staker: {stake_pool.staker}")
    print(f"Pool Reserve stake: {stake_pool.reserve_stake}")
    print(f"Stake Pool Mint Account: {stake_pool.pool_mint}")
    print(f"Validator list: {stake_pool.validator_list}")
    print(f"Withdraw authority: {withdraw_authority}")


def print_stake_pool_financials(stake_pool: StakePool):
    print("\n------------------------------------------")
    print("Stake Pool Financials")
    print("------------------------------------------")
    print(f"Total Staked SOL (lamports): {stake_pool.total_lamports}")
    print(f"Pool Token Supply: {stake_pool.pool_token_supply}")
    print(f"SOL deposit fee: {stake_pool.sol_deposit_fee}")
    print(f"Last update epoch: {stake_pool.last_update_epoch}")


def print_validator_stake_info(validator: ValidatorStakeInfo):
    print("\n------------------------------------------")
    print(f"Validator {validator.vote_account_address} Stake info")
    print("------------------------------------------")
    print(f"Active Stake: {validator.active_stake_lamports}")
    print(f"Transient stake (cooling down): {validator.transient_stake_lamports}")
    print(f"Status: {validator.status.name}")
