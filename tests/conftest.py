import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID

from pool_keeper.constants import STAKE_POOL_PROGRAM_ID
from pool_keeper.state import AccountType, Fee, Lockup, StakePool, StakeStatus, ValidatorList, ValidatorStakeInfo
from pool_keeper.state import STAKE_POOL_LAYOUT, VALIDATOR_LIST_LAYOUT

LAST_VALID_BLOCK_HEIGHT: int = 1_000


def _fee(fee: Fee) -> dict:
    return dict(denominator=fee.denominator, numerator=fee.numerator)


def encode_stake_pool(stake_pool: StakePool, account_type: int = AccountType.STAKE_POOL) -> bytes:
    def option(name, value, encode):
        return {f"{name}_option": 0 if value is None else 1, name: None if value is None else encode(value)}

    data = dict(
        account_type=account_type,
        manager=bytes(stake_pool.manager),
        staker=bytes(stake_pool.staker),
        stake_deposit_authority=bytes(stake_pool.stake_deposit_authority),
        stake_withdraw_bump_seed=stake_pool.stake_withdraw_bump_seed,
        validator_list=bytes(stake_pool.validator_list),
        reserve_stake=bytes(stake_pool.reserve_stake),
        pool_mint=bytes(stake_pool.pool_mint),
        manager_fee_account=bytes(stake_pool.manager_fee_account),
        token_program_id=bytes(stake_pool.token_program_id),
        total_lamports=stake_pool.total_lamports,
        pool_token_supply=stake_pool.pool_token_supply,
        last_update_epoch=stake_pool.last_update_epoch,
        lockup=dict(
            unix_timestamp=stake_pool.lockup.unix_timestamp,
            epoch=stake_pool.lockup.epoch,
            custodian=bytes(stake_pool.lockup.custodian),
        ),
        epoch_fee=_fee(stake_pool.epoch_fee),
        stake_deposit_fee=_fee(stake_pool.stake_deposit_fee),
        stake_withdrawal_fee=_fee(stake_pool.stake_withdrawal_fee),
        stake_referral_fee=stake_pool.stake_referral_fee,
        sol_deposit_fee=_fee(stake_pool.sol_deposit_fee),
        sol_referral_fee=stake_pool.sol_referral_fee,
        sol_withdrawal_fee=_fee(stake_pool.sol_withdrawal_fee),
        last_epoch_pool_token_supply=stake_pool.last_epoch_pool_token_supply,
        last_epoch_total_lamports=stake_pool.last_epoch_total_lamports,
    )
    data.update(option("next_epoch_fee", stake_pool.next_epoch_fee, _fee))
    data.update(option("preferred_deposit_validator", stake_pool.preferred_deposit_validator, bytes))
    data.update(option("preferred_withdraw_validator", stake_pool.preferred_withdraw_validator, bytes))
    data.update(option("next_stake_withdrawal_fee", stake_pool.next_stake_withdrawal_fee, _fee))
    data.update(option("sol_deposit_authority", stake_pool.sol_deposit_authority, bytes))
    data.update(option("sol_withdraw_authority", stake_pool.sol_withdraw_authority, bytes))
    data.update(option("next_sol_withdrawal_fee", stake_pool.next_sol_withdrawal_fee, _fee))
    return STAKE_POOL_LAYOUT.build(data)


def encode_validator_list(validator_list: ValidatorList, account_type: int = AccountType.VALIDATOR_LIST) -> bytes:
    return VALIDATOR_LIST_LAYOUT.build(dict(
        account_type=account_type,
        max_validators=validator_list.max_validators,
        validators=[
            dict(
                active_stake_lamports=validator.active_stake_lamports,
                transient_stake_lamports=validator.transient_stake_lamports,
                last_update_epoch=validator.last_update_epoch,
                transient_seed_suffix=validator.transient_seed_suffix,
                unused=0,
                validator_seed_suffix=validator.validator_seed_suffix,
                status=validator.status,
                vote_account_address=bytes(validator.vote_account_address),
            )
            for validator in validator_list.validators
        ],
    ))


class FakeClient:
    """Stands in for `AsyncClient`, recording every transaction sent."""

    def __init__(self):
        self.accounts: Dict[Pubkey, SimpleNamespace] = {}
        self.balances: Dict[Pubkey, int] = {}
        self.epoch = 0
        self.sent: List[Transaction] = []
        self.events: List[tuple] = []
        self.send_error: Optional[Exception] = None
        self.confirm_error: Optional[Exception] = None
        self.confirm_delay = 0.0
        self.status_err = None

    def set_account(self, address: Pubkey, data: bytes, owner: Pubkey = STAKE_POOL_PROGRAM_ID):
        self.accounts[address] = SimpleNamespace(data=data, owner=owner, lamports=1_000_000)

    async def get_account_info(self, address, commitment=None):
        return SimpleNamespace(value=self.accounts.get(address))

    async def get_balance(self, address, commitment=None):
        return SimpleNamespace(value=self.balances.get(address, 0))

    async def get_epoch_info(self, commitment=None):
        return SimpleNamespace(value=SimpleNamespace(epoch=self.epoch))

    async def get_latest_blockhash(self, commitment=None):
        self.events.append(('blockhash',))
        return SimpleNamespace(value=SimpleNamespace(
            blockhash=Hash.new_unique(),
            last_valid_block_height=LAST_VALID_BLOCK_HEIGHT,
        ))

    async def send_raw_transaction(self, txn: bytes, opts=None):
        if self.send_error is not None:
            raise self.send_error
        transaction = Transaction.from_bytes(txn)
        self.sent.append(transaction)
        signature = transaction.signatures[0]
        self.events.append(('send', signature))
        return SimpleNamespace(value=signature)

    async def confirm_transaction(self, tx_sig: Signature, commitment=None, sleep_seconds=0.5,
                                  last_valid_block_height=None):
        if self.confirm_delay:
            await asyncio.sleep(self.confirm_delay)
        if self.confirm_error is not None:
            raise self.confirm_error
        self.events.append(('confirm', tx_sig))
        return SimpleNamespace(value=[SimpleNamespace(err=self.status_err)])

    async def close(self):
        pass


@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def stake_pool_address() -> Pubkey:
    return Keypair().pubkey()


@pytest.fixture
def stake_pool(payer) -> StakePool:
    return StakePool(
        manager=payer.pubkey(),
        staker=payer.pubkey(),
        stake_deposit_authority=Keypair().pubkey(),
        stake_withdraw_bump_seed=255,
        validator_list=Keypair().pubkey(),
        reserve_stake=Keypair().pubkey(),
        pool_mint=Keypair().pubkey(),
        manager_fee_account=Keypair().pubkey(),
        token_program_id=TOKEN_PROGRAM_ID,
        total_lamports=50_000_000_000,
        pool_token_supply=49_000_000_000,
        last_update_epoch=10,
        lockup=Lockup(unix_timestamp=0, epoch=0, custodian=Pubkey.default()),
        epoch_fee=Fee(numerator=1, denominator=100),
        next_epoch_fee=None,
        preferred_deposit_validator=None,
        preferred_withdraw_validator=None,
        stake_deposit_fee=Fee(numerator=0, denominator=0),
        stake_withdrawal_fee=Fee(numerator=1, denominator=1000),
        next_stake_withdrawal_fee=None,
        stake_referral_fee=0,
        sol_deposit_authority=None,
        sol_deposit_fee=Fee(numerator=1, denominator=1000),
        sol_referral_fee=20,
        sol_withdraw_authority=None,
        sol_withdrawal_fee=Fee(numerator=0, denominator=0),
        next_sol_withdrawal_fee=Fee(numerator=3, denominator=1000),
        last_epoch_pool_token_supply=48_000_000_000,
        last_epoch_total_lamports=49_000_000_000,
    )


@pytest.fixture
def validators() -> List[ValidatorStakeInfo]:
    return [
        ValidatorStakeInfo(
            active_stake_lamports=10_000_000_000 * (i + 1),
            transient_stake_lamports=0,
            last_update_epoch=10,
            transient_seed_suffix=seeds[1],
            validator_seed_suffix=seeds[0],
            status=StakeStatus.ACTIVE,
            vote_account_address=Keypair().pubkey(),
        )
        for (i, seeds) in enumerate([(0, 7), (3, 0), (0, 2)])
    ]


@pytest.fixture
def validator_list(validators) -> ValidatorList:
    return ValidatorList(max_validators=10, validators=validators)


@pytest.fixture
def client(stake_pool_address, stake_pool, validator_list, payer) -> FakeClient:
    client = FakeClient()
    client.set_account(stake_pool_address, encode_stake_pool(stake_pool))
    client.set_account(stake_pool.validator_list, encode_validator_list(validator_list))
    client.balances[payer.pubkey()] = 100_000_000_000
    return client
