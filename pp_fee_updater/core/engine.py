# /pp_fee_updater/core/engine.py
# The fee-reconciliation engine: settle any in-flight update against chain
# truth, then compare network and contract prices and submit a correction
# when the network has left the tolerated band.
from enum import Enum

from pydantic import BaseModel

from pp_fee_updater.core.chain import ChainReader
from pp_fee_updater.core.fees import GasPriceSnapshot, ThresholdConfig, evaluate
from pp_fee_updater.core.logger import (
    get_logger,
    CONTRACT_GAS_PRICE,
    NETWORK_GAS_PRICE,
    UPDATES_SUBMITTED,
)
from pp_fee_updater.core.pending import PendingUpdate, PendingUpdateTracker
from pp_fee_updater.core.tx import TransactionManager

log = get_logger(__name__)


class DecisionKind(str, Enum):
    NO_UPDATE_NEEDED = "no_update_needed"
    UPDATE_SUBMITTED = "update_submitted"
    PENDING_STILL_OUTSTANDING = "pending_still_outstanding"


class Decision(BaseModel):
    kind: DecisionKind
    new_price: int | None = None
    tx_hash: str | None = None
    snapshot: GasPriceSnapshot | None = None

    class Config:
        frozen = True

    @classmethod
    def no_update_needed(cls, snapshot: GasPriceSnapshot) -> "Decision":
        return cls(kind=DecisionKind.NO_UPDATE_NEEDED, snapshot=snapshot)

    @classmethod
    def update_submitted(cls, new_price: int, tx_hash: str, snapshot: GasPriceSnapshot) -> "Decision":
        return cls(kind=DecisionKind.UPDATE_SUBMITTED, new_price=new_price, tx_hash=tx_hash, snapshot=snapshot)

    @classmethod
    def pending_still_outstanding(cls, tx_hash: str) -> "Decision":
        return cls(kind=DecisionKind.PENDING_STILL_OUTSTANDING, tx_hash=tx_hash)


class PendingStatus(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    PENDING = "pending"


class FeeReconciliationEngine:
    """
    Decides, once per block, whether the contract's cached gas price needs
    correcting and submits the correction.

    At most one update is ever in flight: while the tracker holds a
    PendingUpdate without a receipt, the engine does nothing else. A failed
    status check clears the tracker instead of blocking forever, at the cost
    of possibly resubmitting if the cleared transaction confirms later.
    """
    def __init__(self, reader: ChainReader, submitter: TransactionManager, tracker: PendingUpdateTracker | None = None):
        self.reader = reader
        self.submitter = submitter
        self.tracker = tracker if tracker is not None else PendingUpdateTracker()

    async def _check_pending(self, contract_address: str, pending: PendingUpdate) -> PendingStatus:
        receipt = await self.reader.get_transaction_receipt(pending.transaction_id)
        if receipt is None:
            return PendingStatus.PENDING

        actual = await self.reader.get_contract_gas_price(contract_address)
        if actual == pending.submitted_gas_price:
            return PendingStatus.CONFIRMED

        log.warning(
            "PENDING_UPDATE_NOT_APPLIED",
            tx_hash=pending.transaction_id,
            expected=pending.submitted_gas_price,
            actual=actual,
            receipt_status=receipt.get("status"),
        )
        return PendingStatus.FAILED

    async def _settle_pending(self, contract_address: str) -> Decision | None:
        """Resolves the tracked update. Returns a Decision only when the cycle must stop here."""
        pending = self.tracker.peek()
        if pending is None:
            return None

        log.info("PENDING_UPDATE_CHECKING", tx_hash=pending.transaction_id)
        try:
            status = await self._check_pending(contract_address, pending)
        except Exception as e:
            log.error("PENDING_UPDATE_CHECK_FAILED", tx_hash=pending.transaction_id, error=str(e))
            self.tracker.clear("check_error")
            return None

        if status is PendingStatus.PENDING:
            log.info("PENDING_UPDATE_OUTSTANDING", tx_hash=pending.transaction_id)
            return Decision.pending_still_outstanding(pending.transaction_id)

        if status is PendingStatus.CONFIRMED:
            log.info("PENDING_UPDATE_CONFIRMED", tx_hash=pending.transaction_id, gas_price=pending.submitted_gas_price)
        else:
            log.warning("PENDING_UPDATE_FAILED", tx_hash=pending.transaction_id, gas_price=pending.submitted_gas_price)
        self.tracker.clear(status.value)
        return None

    async def check_prices(self, contract_address: str, thresholds: ThresholdConfig) -> GasPriceSnapshot:
        network_price = await self.reader.get_latest_block_gas_price()
        contract_price = await self.reader.get_contract_gas_price(contract_address)
        NETWORK_GAS_PRICE.set(network_price)
        CONTRACT_GAS_PRICE.set(contract_price)

        snapshot = evaluate(network_price, contract_price, thresholds)
        log.info(
            "GAS_PRICE_CHECKED",
            network_price=snapshot.network_price,
            contract_price=snapshot.contract_price,
            upward_bound=snapshot.upward_bound,
            downward_bound=snapshot.downward_bound,
            drift_pct=str(snapshot.drift_pct),
            direction=snapshot.direction.value,
        )
        return snapshot

    async def reconcile(self, contract_address: str, thresholds: ThresholdConfig) -> Decision:
        """Runs one reconciliation cycle.

        Raises:
            ChainReadError: network or contract price could not be read.
            PriceConversionError: a price does not fit uint256.
            SubmissionError: the update transaction could not be broadcast.
                Nothing is recorded as pending in that case.
        """
        stop = await self._settle_pending(contract_address)
        if stop is not None:
            return stop

        snapshot = await self.check_prices(contract_address, thresholds)
        if not snapshot.should_update:
            return Decision.no_update_needed(snapshot)

        log.warning(
            "FEE_UPDATE_NEEDED",
            direction=snapshot.direction.value,
            contract_price=snapshot.contract_price,
            new_price=snapshot.new_price,
        )
        tx_hash = await self.submitter.submit_set_price(contract_address, snapshot.new_price)
        self.tracker.set(PendingUpdate(submitted_gas_price=snapshot.new_price, transaction_id=tx_hash))
        UPDATES_SUBMITTED.labels(snapshot.direction.value).inc()
        log.info("FEE_UPDATE_SUBMITTED", tx_hash=tx_hash, new_price=snapshot.new_price, direction=snapshot.direction.value)
        return Decision.update_submitted(snapshot.new_price, tx_hash, snapshot)
