import asyncio

import pytest
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
import solders.system_program as sys

from pool_keeper.errors import ConfirmationTimeout, SubmissionError
from pool_keeper.planner import InstructionBatch, Plan, plan_deposit, plan_pool_update
from pool_keeper.submitter import TransactionSubmitter


def memo(signer=None) -> Instruction:
    accounts = [AccountMeta(pubkey=signer, is_signer=True, is_writable=False)] if signer else []
    return Instruction(program_id=Keypair().pubkey(), data=b"memo", accounts=accounts)


@pytest.mark.asyncio
async def test_plan_runs_in_order_and_waits_where_required(
    client, payer, stake_pool_address, stake_pool, validator_list
):
    plan = plan_pool_update(stake_pool_address, stake_pool, validator_list)
    signatures = await TransactionSubmitter(client, payer).execute(plan)
    assert len(signatures) == 4
    assert [tx.signatures[0] for tx in client.sent] == signatures
    confirmed = [event[1] for event in client.events if event[0] == 'confirm']
    assert confirmed == signatures[2:]
    # the third update is confirmed before the pool balance update is sent
    sends = [event for event in client.events if event[0] != 'blockhash']
    assert sends == [
        ('send', signatures[0]),
        ('send', signatures[1]),
        ('send', signatures[2]),
        ('confirm', signatures[2]),
        ('send', signatures[3]),
        ('confirm', signatures[3]),
    ]


@pytest.mark.asyncio
async def test_fresh_blockhash_per_transaction(client, payer):
    submitter = TransactionSubmitter(client, payer)
    await submitter.submit(InstructionBatch(instructions=[memo()], wait=False))
    await submitter.submit(InstructionBatch(instructions=[memo()], wait=False))
    assert [event[0] for event in client.events] == ['blockhash', 'send', 'blockhash', 'send']
    assert client.sent[0].message.recent_blockhash != client.sent[1].message.recent_blockhash


@pytest.mark.asyncio
async def test_deposit_signed_by_payer_and_ephemeral(client, payer, stake_pool_address, stake_pool):
    plan = plan_deposit(2.3, stake_pool_address, stake_pool, payer.pubkey())
    ephemeral = plan.batches[0].signers[0]
    await TransactionSubmitter(client, payer).execute(plan)
    (txn,) = client.sent
    required = txn.message.header.num_required_signatures
    assert txn.message.account_keys[:required] == [payer.pubkey(), ephemeral.pubkey()]
    txn.verify()


@pytest.mark.asyncio
async def test_fee_payer_is_only_signer(client, payer):
    await TransactionSubmitter(client, payer).submit(InstructionBatch(instructions=[memo(payer.pubkey())], wait=True))
    (txn,) = client.sent
    assert txn.message.header.num_required_signatures == 1
    assert len(txn.signatures) == 1
    assert txn.message.account_keys[0] == payer.pubkey()


@pytest.mark.asyncio
async def test_extra_authority(client, payer):
    staker = Keypair()
    batch = InstructionBatch(instructions=[memo(staker.pubkey())], wait=False)
    await TransactionSubmitter(client, payer, [staker]).submit(batch)
    (txn,) = client.sent
    assert txn.message.account_keys[:2] == [payer.pubkey(), staker.pubkey()]


@pytest.mark.asyncio
async def test_missing_signer(client, payer):
    stranger = Keypair().pubkey()
    batch = InstructionBatch(instructions=[memo(stranger)], wait=True)
    with pytest.raises(SubmissionError) as excinfo:
        await TransactionSubmitter(client, payer).submit(batch, "increase-validator-stake")
    assert str(stranger) in str(excinfo.value)
    assert excinfo.value.operation == "increase-validator-stake"
    assert client.sent == []


@pytest.mark.asyncio
async def test_rejected_transaction(client, payer):
    client.send_error = RPCException("Transaction simulation failed")
    with pytest.raises(SubmissionError) as excinfo:
        await TransactionSubmitter(client, payer).submit(InstructionBatch(instructions=[memo()], wait=True))
    assert "simulation failed" in str(excinfo.value)


@pytest.mark.asyncio
async def test_failed_transaction_status(client, payer):
    client.status_err = "InstructionError(0, Custom(1))"
    with pytest.raises(SubmissionError) as excinfo:
        await TransactionSubmitter(client, payer).submit(InstructionBatch(instructions=[memo()], wait=True))
    assert excinfo.value.signature == client.sent[0].signatures[0]


@pytest.mark.asyncio
async def test_no_wait_ignores_confirmation(client, payer):
    client.confirm_error = UnconfirmedTxError("never confirmed")
    batch = InstructionBatch(instructions=[sys.transfer(sys.TransferParams(
        from_pubkey=payer.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1))], wait=False)
    signature = await TransactionSubmitter(client, payer).submit(batch)
    assert signature == client.sent[0].signatures[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    UnconfirmedTxError("Unable to confirm transaction"),
    TransactionExpiredBlockheightExceededError("block height exceeded"),
])
async def test_confirmation_errors_time_out(client, payer, error):
    client.confirm_error = error
    with pytest.raises(ConfirmationTimeout) as excinfo:
        await TransactionSubmitter(client, payer).submit(InstructionBatch(instructions=[memo()], wait=True))
    assert excinfo.value.signature == client.sent[0].signatures[0]


@pytest.mark.asyncio
async def test_confirmation_deadline(client, payer):
    client.confirm_delay = 1.0
    submitter = TransactionSubmitter(client, payer, confirm_timeout=0.01)
    with pytest.raises(ConfirmationTimeout):
        await submitter.submit(InstructionBatch(instructions=[memo()], wait=True))


@pytest.mark.asyncio
async def test_timeout_aborts_rest_of_plan(client, payer):
    client.confirm_error = UnconfirmedTxError("Unable to confirm transaction")
    plan = Plan(name="update", batches=[
        InstructionBatch(instructions=[memo()], wait=False),
        InstructionBatch(instructions=[memo()], wait=True),
        InstructionBatch(instructions=[memo()], wait=True),
    ])
    with pytest.raises(ConfirmationTimeout) as excinfo:
        await TransactionSubmitter(client, payer).execute(plan)
    assert excinfo.value.operation == "update"
    assert len(client.sent) == 2
