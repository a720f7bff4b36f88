# /test/test_engine.py
# Exercises the reconciliation engine against the in-memory chain adapters.
import pytest

from pp_fee_updater.adapters.mock import MockChainReader, MockTransactionManager
from pp_fee_updater.core.engine import DecisionKind, FeeReconciliationEngine
from pp_fee_updater.core.errors import ChainReadError, PriceConversionError, SubmissionError, TransactionKillSwitchError
from pp_fee_updater.core.fees import ThresholdConfig
from pp_fee_updater.core.kill import activate_kill_switch
from pp_fee_updater.core.pending import PendingUpdate, PendingUpdateTracker

POOL = "0x" + "22" * 20
THRESHOLDS = ThresholdConfig(
    upward_threshold_pct=105,
    downward_threshold_pct=85,
    upward_buffer_pct=110,
    downward_buffer_pct=110,
)


@pytest.fixture
def mock_env():
    """Reader at contract=1000/network=1100 (outside the band) with an empty tracker."""
    reader = MockChainReader(network_price=1100, contract_price=1000)
    submitter = MockTransactionManager(reader)
    tracker = PendingUpdateTracker()
    engine = FeeReconciliationEngine(reader, submitter, tracker)
    return engine, reader, submitter, tracker


@pytest.mark.asyncio
async def test_upward_drift_submits_update(mock_env):
    engine, reader, submitter, tracker = mock_env

    decision = await engine.reconcile(POOL, THRESHOLDS)

    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert decision.new_price == 1210
    assert len(submitter.sent_transactions) == 1
    assert submitter.sent_transactions[0]["gas_price"] == 1210
    pending = tracker.peek()
    assert pending.submitted_gas_price == 1210
    assert pending.transaction_id == decision.tx_hash


@pytest.mark.asyncio
async def test_downward_drift_submits_update(mock_env):
    engine, reader, submitter, tracker = mock_env
    reader.network_price = 820

    decision = await engine.reconcile(POOL, THRESHOLDS)

    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert decision.new_price == 902
    assert decision.snapshot.drift_pct < 0


@pytest.mark.asyncio
async def test_price_in_band_submits_nothing(mock_env):
    engine, reader, submitter, tracker = mock_env
    reader.network_price = 950

    decision = await engine.reconcile(POOL, THRESHOLDS)

    assert decision.kind is DecisionKind.NO_UPDATE_NEEDED
    assert decision.snapshot.should_update is False
    assert submitter.sent_transactions == []
    assert tracker.peek() is None


@pytest.mark.asyncio
async def test_pending_without_receipt_skips_price_comparison(mock_env):
    engine, reader, submitter, tracker = mock_env
    tracker.set(PendingUpdate(submitted_gas_price=1210, transaction_id="0xinflight"))
    reader.network_price = 5000

    decision = await engine.reconcile(POOL, THRESHOLDS)

    assert decision.kind is DecisionKind.PENDING_STILL_OUTSTANDING
    assert decision.tx_hash == "0xinflight"
    assert reader.calls == ["get_transaction_receipt"]
    assert submitter.sent_transactions == []
    assert tracker.peek().transaction_id == "0xinflight"


@pytest.mark.asyncio
async def test_at_most_one_update_in_flight(mock_env):
    engine, reader, submitter, tracker = mock_env

    first = await engine.reconcile(POOL, THRESHOLDS)
    reader.network_price = 9000
    second = await engine.reconcile(POOL, THRESHOLDS)
    third = await engine.reconcile(POOL, THRESHOLDS)

    assert first.kind is DecisionKind.UPDATE_SUBMITTED
    assert second.kind is DecisionKind.PENDING_STILL_OUTSTANDING
    assert third.kind is DecisionKind.PENDING_STILL_OUTSTANDING
    assert len(submitter.sent_transactions) == 1


@pytest.mark.asyncio
async def test_confirmed_update_clears_tracker_and_rechecks(mock_env):
    engine, reader, submitter, tracker = mock_env
    tracker.set(PendingUpdate(submitted_gas_price=1210, transaction_id="0xdone"))
    reader.add_receipt("0xdone")
    reader.contract_price = 1210

    decision = await engine.reconcile(POOL, THRESHOLDS)

    # 1100 sits inside [1028, 1270] around the freshly confirmed 1210
    assert decision.kind is DecisionKind.NO_UPDATE_NEEDED
    assert tracker.peek() is None
    assert submitter.sent_transactions == []
    assert "get_latest_block_gas_price" in reader.calls


@pytest.mark.asyncio
async def test_confirmed_update_followed_by_new_drift_in_same_cycle(mock_env):
    engine, reader, submitter, tracker = mock_env
    tracker.set(PendingUpdate(submitted_gas_price=1210, transaction_id="0xdone"))
    reader.add_receipt("0xdone")
    reader.contract_price = 1210
    reader.network_price = 2000

    decision = await engine.reconcile(POOL, THRESHOLDS)

    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert decision.new_price == 2200
    assert len(submitter.sent_transactions) == 1
    assert tracker.peek().transaction_id == decision.tx_hash


@pytest.mark.asyncio
async def test_included_but_not_applied_counts_as_failed(mock_env):
    engine, reader, submitter, tracker = mock_env
    tracker.set(PendingUpdate(submitted_gas_price=1210, transaction_id="0xreverted"))
    reader.add_receipt("0xreverted", status=0)

    decision = await engine.reconcile(POOL, THRESHOLDS)

    # Contract still at 1000, so the fresh comparison resubmits
    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert tracker.peek().transaction_id != "0xreverted"


@pytest.mark.asyncio
async def test_receipt_lookup_error_clears_tracker(mock_env):
    engine, reader, submitter, tracker = mock_env
    tracker.set(PendingUpdate(submitted_gas_price=1210, transaction_id="0xflaky"))
    reader.fail_receipt_read = True

    decision = await engine.reconcile(POOL, THRESHOLDS)

    # Accepted race: the cleared transaction may still confirm later,
    # in which case this second submission is redundant.
    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert len(submitter.sent_transactions) == 1


@pytest.mark.asyncio
async def test_contract_read_error_during_pending_check_clears_tracker(mock_env):
    engine, reader, submitter, tracker = mock_env
    tracker.set(PendingUpdate(submitted_gas_price=1210, transaction_id="0xmined"))
    reader.add_receipt("0xmined")
    reader.fail_contract_read = True

    with pytest.raises(ChainReadError):
        await engine.reconcile(POOL, THRESHOLDS)

    assert tracker.peek() is None
    assert submitter.sent_transactions == []


@pytest.mark.asyncio
async def test_block_read_error_propagates(mock_env):
    engine, reader, submitter, tracker = mock_env
    reader.fail_block_read = True

    with pytest.raises(ChainReadError):
        await engine.reconcile(POOL, THRESHOLDS)
    assert submitter.sent_transactions == []


@pytest.mark.asyncio
async def test_oversized_chain_value_is_a_conversion_error(mock_env):
    engine, reader, submitter, tracker = mock_env
    reader.contract_price = 2**256

    with pytest.raises(PriceConversionError):
        await engine.reconcile(POOL, THRESHOLDS)


@pytest.mark.asyncio
async def test_submission_failure_records_nothing_and_retries_next_cycle(mock_env):
    engine, reader, submitter, tracker = mock_env
    submitter.set_next_call_to_fail()

    with pytest.raises(SubmissionError):
        await engine.reconcile(POOL, THRESHOLDS)
    assert tracker.peek() is None

    decision = await engine.reconcile(POOL, THRESHOLDS)
    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert tracker.peek() is not None


@pytest.mark.asyncio
async def test_kill_switch_blocks_submission(mock_env):
    engine, reader, submitter, tracker = mock_env
    activate_kill_switch("test")

    with pytest.raises(TransactionKillSwitchError):
        await engine.reconcile(POOL, THRESHOLDS)
    assert submitter.sent_transactions == []
    assert tracker.peek() is None


@pytest.mark.asyncio
async def test_full_lifecycle_submit_then_confirm():
    reader = MockChainReader(network_price=1100, contract_price=1000)
    submitter = MockTransactionManager(reader, apply_on_submit=True)
    engine = FeeReconciliationEngine(reader, submitter)

    submitted = await engine.reconcile(POOL, THRESHOLDS)
    settled = await engine.reconcile(POOL, THRESHOLDS)
    again = await engine.reconcile(POOL, THRESHOLDS)

    assert submitted.kind is DecisionKind.UPDATE_SUBMITTED
    assert settled.kind is DecisionKind.NO_UPDATE_NEEDED
    assert again.kind is DecisionKind.NO_UPDATE_NEEDED
    assert engine.tracker.peek() is None
    assert len(submitter.sent_transactions) == 1


@pytest.mark.asyncio
async def test_huge_network_to_contract_ratio_still_submits(mock_env):
    engine, reader, submitter, tracker = mock_env
    reader.network_price = 2**128
    reader.contract_price = 1

    decision = await engine.reconcile(POOL, THRESHOLDS)

    assert decision.kind is DecisionKind.UPDATE_SUBMITTED
    assert decision.new_price == 2**128 * 110 // 100
    assert len(submitter.sent_transactions) == 1
