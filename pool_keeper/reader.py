"""Fetch and decode stake pool records."""

import logging

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solders.account import Account
from solders.pubkey import Pubkey

from pool_keeper.constants import STAKE_POOL_PROGRAM_ID
from pool_keeper.errors import AccountNotFound, DecodeError
from pool_keeper.state import StakePool, ValidatorList

logger = logging.getLogger(__name__)


class StateReader:
    """Reads fresh snapshots of pool state, one RPC call per record.

    Nothing is cached: every call hits the cluster, so a snapshot taken after a
    transaction lands reflects it.
    """

    def __init__(
        self,
        client: AsyncClient,
        program_id: Pubkey = STAKE_POOL_PROGRAM_ID,
        commitment: Commitment = Confirmed,
    ):
        self.client = client
        self.program_id = program_id
        self.commitment = commitment

    async def _get_account(self, address: Pubkey) -> Account:
        resp = await self.client.get_account_info(address, commitment=self.commitment)
        if resp.value is None or not resp.value.data:
            raise AccountNotFound(address)
        return resp.value

    async def _get_program_account(self, address: Pubkey, record: str) -> bytes:
        account = await self._get_account(address)
        if account.owner != self.program_id:
            raise DecodeError(record, f"owned by {account.owner}, expected {self.program_id}", address)
        return bytes(account.data)

    async def fetch_stake_pool(self, stake_pool_address: Pubkey) -> StakePool:
        data = await self._get_program_account(stake_pool_address, "stake pool")
        try:
            stake_pool = StakePool.decode(data)
        except DecodeError as e:
            raise DecodeError(e.record, e.reason, stake_pool_address) from e
        logger.debug("Fetched stake pool %s, last updated in epoch %d",
                     stake_pool_address, stake_pool.last_update_epoch)
        return stake_pool

    async def fetch_validator_list(self, validator_list_address: Pubkey) -> ValidatorList:
        data = await self._get_program_account(validator_list_address, "validator list")
        try:
            validator_list = ValidatorList.decode(data)
        except DecodeError as e:
            raise DecodeError(e.record, e.reason, validator_list_address) from e
        logger.debug("Fetched validator list %s with %d validators",
                     validator_list_address, len(validator_list.validators))
        return validator_list

    async def fetch_balance(self, address: Pubkey) -> int:
        resp = await self.client.get_balance(address, commitment=self.commitment)
        return resp.value

    async def fetch_epoch(self) -> int:
        resp = await self.client.get_epoch_info(commitment=self.commitment)
        return resp.value.epoch
