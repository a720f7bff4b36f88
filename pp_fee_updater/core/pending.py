# /pp_fee_updater/core/pending.py
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from pp_fee_updater.core.logger import get_logger, PENDING_RESOLVED

log = get_logger(__name__)


class PendingUpdate(BaseModel):
    """A gas price update that has been broadcast but not yet resolved."""
    submitted_gas_price: int
    transaction_id: str
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


class PendingUpdateTracker:
    """
    Holds zero or one PendingUpdate.

    Owned by the block loop and only touched from that one task, so there is
    no locking. The engine calls set() only after peek() came back empty.
    """
    def __init__(self):
        self._pending: PendingUpdate | None = None

    def peek(self) -> PendingUpdate | None:
        return self._pending

    def set(self, update: PendingUpdate):
        if self._pending is not None:
            log.warning(
                "PENDING_UPDATE_OVERWRITTEN",
                previous_tx=self._pending.transaction_id,
                tx_hash=update.transaction_id,
            )
        self._pending = update
        log.info("PENDING_UPDATE_RECORDED", tx_hash=update.transaction_id, gas_price=update.submitted_gas_price)

    def clear(self, outcome: str = "cleared"):
        """Drops the tracked update; outcome is one of confirmed, failed, check_error."""
        pending, self._pending = self._pending, None
        if pending is None:
            return
        log.info("PENDING_UPDATE_CLEARED", tx_hash=pending.transaction_id, outcome=outcome)
        PENDING_RESOLVED.labels(outcome).inc()
