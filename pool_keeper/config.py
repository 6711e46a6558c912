"""Runtime settings for the stake pool keeper."""

import os
from typing import NamedTuple, Optional

from solana.rpc.commitment import Commitment, Confirmed
from solders.pubkey import Pubkey

from pool_keeper.constants import MAX_VALIDATORS_TO_UPDATE, STAKE_POOL_PROGRAM_ID

DEFAULT_ENDPOINT = "http://localhost:8899"
DEFAULT_KEYPAIR_PATH = os.path.join("~", ".config", "solana", "id.json")


class KeeperConfig(NamedTuple):
    """Defaults used when planning and submitting transactions."""

    endpoint: str = DEFAULT_ENDPOINT
    """RPC endpoint of the cluster."""
    keypair_path: str = DEFAULT_KEYPAIR_PATH
    """Keypair file of the fee payer, which also signs as staker."""
    commitment: Commitment = Confirmed
    """Commitment used for reads, preflight and confirmation."""
    program_id: Pubkey = STAKE_POOL_PROGRAM_ID
    """Stake pool program that owns the pool."""
    referrer_token_account: Optional[Pubkey] = None
    """Pool token account receiving referral fees, defaults to the depositor's account."""
    ephemeral_stake_seed: int = 0
    """Seed of the ephemeral stake account used by stake increases and decreases."""
    validators_per_update: int = 1
    """Validator list entries refreshed per update transaction."""
    no_merge: bool = False
    """Skip merging transient stake accounts while updating."""
    stale_only: bool = False
    """Only refresh validators not yet updated in the current epoch."""
    confirm_timeout: float = 60.0
    """Seconds to wait for a transaction that must be confirmed."""

    @property
    def update_chunk_size(self) -> int:
        return max(1, min(self.validators_per_update, MAX_VALIDATORS_TO_UPDATE))
