"""Errors raised by the stake pool keeper.

Every failure aborts the running operation. Nothing is retried here: all
reads are fresh fetches, so the caller can re-run the whole operation.
"""

from typing import Optional

from solders.pubkey import Pubkey
from solders.signature import Signature


class PoolKeeperError(Exception):
    """Base class for all keeper errors."""


class AccountNotFound(PoolKeeperError):
    """The address holds no on-chain data."""

    def __init__(self, address: Pubkey):
        super().__init__(f"Account {address} not found")
        self.address = address


class DecodeError(PoolKeeperError):
    """Account data does not match the expected record layout."""

    def __init__(self, record: str, reason: str, address: Optional[Pubkey] = None):
        where = f" at {address}" if address else ""
        super().__init__(f"Could not decode {record}{where}: {reason}")
        self.record = record
        self.reason = reason
        self.address = address


class InvalidAmount(PoolKeeperError):
    """Currency amount is negative, non-finite or too large."""

    def __init__(self, amount: float, reason: str = "must be a finite, non-negative number"):
        super().__init__(f"Invalid amount {amount!r}: {reason}")
        self.amount = amount


class ValidatorNotFound(PoolKeeperError):
    """The vote account is not part of the pool's validator list."""

    def __init__(self, vote_account: Pubkey, validator_list: Optional[Pubkey] = None):
        where = f" {validator_list}" if validator_list else ""
        super().__init__(f"Vote account {vote_account} not found in validator list{where}")
        self.vote_account = vote_account
        self.validator_list = validator_list


class SubmissionError(PoolKeeperError):
    """The ledger rejected or dropped a transaction."""

    def __init__(self, operation: str, reason: str, signature: Optional[Signature] = None):
        sig = f" (signature {signature})" if signature else ""
        super().__init__(f"{operation}: transaction failed{sig}: {reason}")
        self.operation = operation
        self.signature = signature


class ConfirmationTimeout(PoolKeeperError):
    """A transaction that must be confirmed was not confirmed in time."""

    def __init__(self, operation: str, signature: Signature, timeout: float):
        super().__init__(f"{operation}: transaction {signature} not confirmed within {timeout} seconds")
        self.operation = operation
        self.signature = signature
        self.timeout = timeout


class KeystoreError(PoolKeeperError):
    """The local signing key could not be loaded."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not load keypair from {path}: {reason}")
        self.path = path
