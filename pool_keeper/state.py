"""SPL Stake Pool State."""

from enum import IntEnum
from typing import List, NamedTuple, Optional
from construct import Bytes, ConstructError, Container, PrefixedArray, Struct, Switch  # type: ignore
from construct import Error, Int8ul, Int32ul, Int64sl, Int64ul, Pass  # type: ignore

from solders.pubkey import Pubkey

from pool_keeper.errors import DecodeError

PUBLIC_KEY_LAYOUT = Bytes(32)


class AccountType(IntEnum):
    """Discriminator stored in the first byte of every stake pool program account."""

    UNINITIALIZED = 0
    STAKE_POOL = 1
    VALIDATOR_LIST = 2


def decode_optional_pubkey(container: Optional[bytes]) -> Optional[Pubkey]:
    if container:
        return Pubkey(container)
    else:
        return None


class Fee(NamedTuple):
    """Fee assessed by the stake pool, expressed as numerator / denominator."""
    numerator: int
    denominator: int

    @classmethod
    def decode_container(cls, container: Container):
        return Fee(
            numerator=container['numerator'],
            denominator=container['denominator'],
        )

    @classmethod
    def decode_optional_container(cls, container: Container):
        if container:
            return cls.decode_container(container)
        else:
            return None

    def __str__(self) -> str:
        if self.denominator == 0:
            return "0%"
        return f"{self.numerator / self.denominator:.4%}"


class Lockup(NamedTuple):
    """Lockup applied to the pool's stake accounts."""
    unix_timestamp: int
    epoch: int
    custodian: Pubkey

    @classmethod
    def decode_container(cls, container: Container):
        return Lockup(
            unix_timestamp=container['unix_timestamp'],
            epoch=container['epoch'],
            custodian=Pubkey(container['custodian']),
        )


class StakePool(NamedTuple):
    """Stake pool and all its data."""
    manager: Pubkey
    staker: Pubkey
    stake_deposit_authority: Pubkey
    stake_withdraw_bump_seed: int
    validator_list: Pubkey
    reserve_stake: Pubkey
    pool_mint: Pubkey
    manager_fee_account: Pubkey
    token_program_id: Pubkey
    total_lamports: int
    pool_token_supply: int
    last_update_epoch: int
    lockup: Lockup
    epoch_fee: Fee
    next_epoch_fee: Optional[Fee]
    preferred_deposit_validator: Optional[Pubkey]
    preferred_withdraw_validator: Optional[Pubkey]
    stake_deposit_fee: Fee
    stake_withdrawal_fee: Fee
    next_stake_withdrawal_fee: Optional[Fee]
    stake_referral_fee: int
    sol_deposit_authority: Optional[Pubkey]
    sol_deposit_fee: Fee
    sol_referral_fee: int
    sol_withdraw_authority: Optional[Pubkey]
    sol_withdrawal_fee: Fee
    next_sol_withdrawal_fee: Optional[Fee]
    last_epoch_pool_token_supply: int
    last_epoch_total_lamports: int

    @classmethod
    def decode(cls, data: bytes):
        try:
            parsed = STAKE_POOL_LAYOUT.parse(data)
        except ConstructError as e:
            raise DecodeError("stake pool", str(e)) from e
        if parsed['account_type'] != AccountType.STAKE_POOL:
            raise DecodeError("stake pool", f"unexpected account type {parsed['account_type']}")
        return StakePool(
            manager=Pubkey(parsed['manager']),
            staker=Pubkey(parsed['staker']),
            stake_deposit_authority=Pubkey(parsed['stake_deposit_authority']),
            stake_withdraw_bump_seed=parsed['stake_withdraw_bump_seed'],
            validator_list=Pubkey(parsed['validator_list']),
            reserve_stake=Pubkey(parsed['reserve_stake']),
            pool_mint=Pubkey(parsed['pool_mint']),
            manager_fee_account=Pubkey(parsed['manager_fee_account']),
            token_program_id=Pubkey(parsed['token_program_id']),
            total_lamports=parsed['total_lamports'],
            pool_token_supply=parsed['pool_token_supply'],
            last_update_epoch=parsed['last_update_epoch'],
            lockup=Lockup.decode_container(parsed['lockup']),
            epoch_fee=Fee.decode_container(parsed['epoch_fee']),
            next_epoch_fee=Fee.decode_optional_container(parsed['next_epoch_fee']),
            preferred_deposit_validator=decode_optional_pubkey(parsed['preferred_deposit_validator']),
            preferred_withdraw_validator=decode_optional_pubkey(parsed['preferred_withdraw_validator']),
            stake_deposit_fee=Fee.decode_container(parsed['stake_deposit_fee']),
            stake_withdrawal_fee=Fee.decode_container(parsed['stake_withdrawal_fee']),
            next_stake_withdrawal_fee=Fee.decode_optional_container(parsed['next_stake_withdrawal_fee']),
            stake_referral_fee=parsed['stake_referral_fee'],
            sol_deposit_authority=decode_optional_pubkey(parsed['sol_deposit_authority']),
            sol_deposit_fee=Fee.decode_container(parsed['sol_deposit_fee']),
            sol_referral_fee=parsed['sol_referral_fee'],
            sol_withdraw_authority=decode_optional_pubkey(parsed['sol_withdraw_authority']),
            sol_withdrawal_fee=Fee.decode_container(parsed['sol_withdrawal_fee']),
            next_sol_withdrawal_fee=Fee.decode_optional_container(parsed['next_sol_withdrawal_fee']),
            last_epoch_pool_token_supply=parsed['last_epoch_pool_token_supply'],
            last_epoch_total_lamports=parsed['last_epoch_total_lamports'],
        )


class StakeStatus(IntEnum):
    """Specifies the status of a stake on a validator in a stake pool."""

    ACTIVE = 0
    """Stake is active and normal."""
    DEACTIVATING_TRANSIENT = 1
    """Stake has been removed, but a deactivating transient stake still exists."""
    READY_FOR_REMOVAL = 2
    """No more validator stake accounts exist, entry ready for removal."""
    DEACTIVATING_VALIDATOR = 3
    """Only the validator stake account is deactivating, no transient stake account exists."""
    DEACTIVATING_ALL = 4
    """Both the transient and validator stake accounts are deactivating."""


class ValidatorStakeInfo(NamedTuple):
    active_stake_lamports: int
    """Amount of active stake delegated to this validator."""

    transient_stake_lamports: int
    """Amount of transient stake delegated to this validator."""

    last_update_epoch: int
    """Last epoch the active and transient stake lamports fields were updated."""

    transient_seed_suffix: int
    """Transient account seed suffix, used to derive the transient stake account address."""

    validator_seed_suffix: int
    """Validator account seed suffix, zero for the canonical stake account."""

    status: StakeStatus
    """Status of the validator stake account."""

    vote_account_address: Pubkey
    """Validator vote account address."""

    @property
    def validator_seed(self) -> Optional[int]:
        """Seed of the validator stake account, `None` for the canonical account."""
        return self.validator_seed_suffix or None

    @classmethod
    def decode_container(cls, container: Container):
        return ValidatorStakeInfo(
            active_stake_lamports=container['active_stake_lamports'],
            transient_stake_lamports=container['transient_stake_lamports'],
            last_update_epoch=container['last_update_epoch'],
            transient_seed_suffix=container['transient_seed_suffix'],
            validator_seed_suffix=container['validator_seed_suffix'],
            status=StakeStatus(container['status']),
            vote_account_address=Pubkey(container['vote_account_address']),
        )


class ValidatorList(NamedTuple):
    """List of validators and amount staked, associated to a stake pool.

    Order matters: an entry's position is the index the update instruction
    refers to.
    """

    max_validators: int
    """Maximum number of validators possible in the list."""

    validators: List[ValidatorStakeInfo]
    """Info for each validator in the stake pool."""

    def find(self, vote_account_address: Pubkey) -> Optional[ValidatorStakeInfo]:
        return next(
            (v for v in self.validators if v.vote_account_address == vote_account_address),
            None,
        )

    @classmethod
    def decode(cls, data: bytes):
        try:
            parsed = VALIDATOR_LIST_LAYOUT.parse(data)
            validators = [ValidatorStakeInfo.decode_container(container) for container in parsed['validators']]
        except (ConstructError, ValueError) as e:
            raise DecodeError("validator list", str(e)) from e
        if parsed['account_type'] != AccountType.VALIDATOR_LIST:
            raise DecodeError("validator list", f"unexpected account type {parsed['account_type']}")
        return ValidatorList(
            max_validators=parsed['max_validators'],
            validators=validators,
        )


FEE_LAYOUT = Struct(
    "denominator" / Int64ul,
    "numerator" / Int64ul,
)

LOCKUP_LAYOUT = Struct(
    "unix_timestamp" / Int64sl,
    "epoch" / Int64ul,
    "custodian" / PUBLIC_KEY_LAYOUT,
)


def _optional(option_field: str, layout):
    return Switch(
        lambda this: this[option_field],
        {
            0: Pass,
            1: layout,
        },
        default=Error)


def _future_epoch(option_field: str, layout):
    """Value taking effect in a later epoch: 1 after the next epoch starts, 2 after the one following."""
    return Switch(
        lambda this: this[option_field],
        {
            0: Pass,
            1: layout,
            2: layout,
        },
        default=Error)


STAKE_POOL_LAYOUT = Struct(
    "account_type" / Int8ul,
    "manager" / PUBLIC_KEY_LAYOUT,
    "staker" / PUBLIC_KEY_LAYOUT,
    "stake_deposit_authority" / PUBLIC_KEY_LAYOUT,
    "stake_withdraw_bump_seed" / Int8ul,
    "validator_list" / PUBLIC_KEY_LAYOUT,
    "reserve_stake" / PUBLIC_KEY_LAYOUT,
    "pool_mint" / PUBLIC_KEY_LAYOUT,
    "manager_fee_account" / PUBLIC_KEY_LAYOUT,
    "token_program_id" / PUBLIC_KEY_LAYOUT,
    "total_lamports" / Int64ul,
    "pool_token_supply" / Int64ul,
    "last_update_epoch" / Int64ul,
    "lockup" / LOCKUP_LAYOUT,
    "epoch_fee" / FEE_LAYOUT,
    "next_epoch_fee_option" / Int8ul,
    "next_epoch_fee" / _future_epoch("next_epoch_fee_option", FEE_LAYOUT),
    "preferred_deposit_validator_option" / Int8ul,
    "preferred_deposit_validator" / _optional("preferred_deposit_validator_option", PUBLIC_KEY_LAYOUT),
    "preferred_withdraw_validator_option" / Int8ul,
    "preferred_withdraw_validator" / _optional("preferred_withdraw_validator_option", PUBLIC_KEY_LAYOUT),
    "stake_deposit_fee" / FEE_LAYOUT,
    "stake_withdrawal_fee" / FEE_LAYOUT,
    "next_stake_withdrawal_fee_option" / Int8ul,
    "next_stake_withdrawal_fee" / _future_epoch("next_stake_withdrawal_fee_option", FEE_LAYOUT),
    "stake_referral_fee" / Int8ul,
    "sol_deposit_authority_option" / Int8ul,
    "sol_deposit_authority" / _optional("sol_deposit_authority_option", PUBLIC_KEY_LAYOUT),
    "sol_deposit_fee" / FEE_LAYOUT,
    "sol_referral_fee" / Int8ul,
    "sol_withdraw_authority_option" / Int8ul,
    "sol_withdraw_authority" / _optional("sol_withdraw_authority_option", PUBLIC_KEY_LAYOUT),
    "sol_withdrawal_fee" / FEE_LAYOUT,
    "next_sol_withdrawal_fee_option" / Int8ul,
    "next_sol_withdrawal_fee" / _future_epoch("next_sol_withdrawal_fee_option", FEE_LAYOUT),
    "last_epoch_pool_token_supply" / Int64ul,
    "last_epoch_total_lamports" / Int64ul,
)

VALIDATOR_INFO_LAYOUT = Struct(
    "active_stake_lamports" / Int64ul,
    "transient_stake_lamports" / Int64ul,
    "last_update_epoch" / Int64ul,
    "transient_seed_suffix" / Int64ul,
    "unused" / Int32ul,
    "validator_seed_suffix" / Int32ul,
    "status" / Int8ul,
    "vote_account_address" / PUBLIC_KEY_LAYOUT,
)

VALIDATOR_LIST_LAYOUT = Struct(
    "account_type" / Int8ul,
    "max_validators" / Int32ul,
    "validators" / PrefixedArray(Int32ul, VALIDATOR_INFO_LAYOUT),
)
