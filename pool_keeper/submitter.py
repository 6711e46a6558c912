"""Sign and send instruction batches."""

import asyncio
import logging
from typing import Dict, List, Sequence

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from pool_keeper.errors import ConfirmationTimeout, SubmissionError
from pool_keeper.planner import InstructionBatch, Plan

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """Sends one transaction per batch, paid for by `fee_payer`.

    `signers` holds extra long-lived authorities, for pools whose staker is not
    the fee payer. Keypairs carried by a batch are only used for that batch.
    """

    def __init__(
        self,
        client: AsyncClient,
        fee_payer: Keypair,
        signers: Sequence[Keypair] = (),
        commitment: Commitment = Confirmed,
        confirm_timeout: float = 60.0,
    ):
        self.client = client
        self.fee_payer = fee_payer
        self.signers = list(signers)
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout

    def _signing_keypairs(self, message: Message, batch: InstructionBatch, operation: str) -> List[Keypair]:
        available: Dict[Pubkey, Keypair] = {}
        for keypair in [self.fee_payer, *self.signers, *batch.signers]:
            available.setdefault(keypair.pubkey(), keypair)
        required = message.account_keys[:message.header.num_required_signatures]
        missing = [str(pubkey) for pubkey in required if pubkey not in available]
        if missing:
            raise SubmissionError(operation, f"missing signature for {', '.join(missing)}")
        return [available[pubkey] for pubkey in required]

    async def submit(self, batch: InstructionBatch, operation: str = "transaction") -> Signature:
        """Send `batch` as a single transaction.

        Without `batch.wait` this returns once the cluster accepts the
        transaction. With it, this blocks until the transaction reaches the
        configured commitment.
        """
        resp = await self.client.get_latest_blockhash(self.commitment)
        recent_blockhash = resp.value.blockhash
        last_valid_block_height = resp.value.last_valid_block_height

        message = Message.new_with_blockhash(batch.instructions, self.fee_payer.pubkey(), recent_blockhash)
        txn = Transaction(self._signing_keypairs(message, batch, operation), message, recent_blockhash)
        try:
            resp = await self.client.send_raw_transaction(
                bytes(txn), opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment))
        except RPCException as e:
            raise SubmissionError(operation, str(e)) from e
        signature = resp.value
        logger.info("%s: sent %s (%d instructions, wait=%s)",
                    operation, signature, len(batch.instructions), batch.wait)
        if batch.wait:
            await self._confirm(signature, last_valid_block_height, operation)
        return signature

    async def _confirm(self, signature: Signature, last_valid_block_height: int, operation: str):
        try:
            resp = await asyncio.wait_for(
                self.client.confirm_transaction(
                    signature,
                    commitment=self.commitment,
                    last_valid_block_height=last_valid_block_height,
                ),
                timeout=self.confirm_timeout,
            )
        except (asyncio.TimeoutError, UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            raise ConfirmationTimeout(operation, signature, self.confirm_timeout) from e
        except RPCException as e:
            raise SubmissionError(operation, str(e), signature) from e
        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            raise SubmissionError(operation, str(status.err), signature)
        logger.info("%s: confirmed %s", operation, signature)

    async def execute(self, plan: Plan) -> List[Signature]:
        """Submit every batch of `plan` in order, stopping at the first failure."""
        signatures = []
        for (index, batch) in enumerate(plan.batches):
            logger.debug("%s: batch %d of %d", plan.name, index + 1, len(plan.batches))
            signatures.append(await self.submit(batch, plan.name))
        return signatures
