# /pp_fee_updater/core/agent.py
# Drives the engine once per block notification, strictly in order.
from datetime import datetime, timezone

from pp_fee_updater.adapters.blocks import BlockHeader
from pp_fee_updater.core.engine import Decision, DecisionKind, FeeReconciliationEngine
from pp_fee_updater.core.errors import ChainReadError, PriceConversionError, SubmissionError, TransactionKillSwitchError
from pp_fee_updater.core.fees import ThresholdConfig
from pp_fee_updater.core.logger import get_logger, set_block_context, BLOCKS_PROCESSED, CYCLE_ERRORS, DECISIONS

log = get_logger(__name__)


class FeeUpdaterAgent:
    """
    Consumes the block stream and runs one reconciliation per block.

    Each cycle is awaited to completion before the next notification is read,
    so reconciliations never overlap and the tracker needs no lock. A failing
    cycle is logged and counted; the next block retries from scratch.
    """
    def __init__(self, engine: FeeReconciliationEngine, subscription, contract_address: str, thresholds: ThresholdConfig):
        self.engine = engine
        self.subscription = subscription
        self.contract_address = contract_address
        self.thresholds = thresholds
        self.last_block: int | None = None
        self.last_decision: Decision | None = None
        self.last_cycle_at: datetime | None = None

    async def process_block(self, block: BlockHeader) -> Decision | None:
        set_block_context(block.number)
        BLOCKS_PROCESSED.inc()
        self.last_block = block.number
        self.last_cycle_at = datetime.now(timezone.utc)
        log.info("NEW_BLOCK_RECEIVED", block_hash=block.hash)

        try:
            decision = await self.engine.reconcile(self.contract_address, self.thresholds)
        except PriceConversionError as e:
            CYCLE_ERRORS.labels("price_conversion").inc()
            log.error("FEE_CHECK_PRICE_CONVERSION_FAILED", error=str(e))
            return None
        except ChainReadError as e:
            CYCLE_ERRORS.labels("chain_read").inc()
            log.error("FEE_CHECK_CHAIN_READ_FAILED", error=str(e))
            return None
        except TransactionKillSwitchError as e:
            CYCLE_ERRORS.labels("kill_switch").inc()
            log.critical("FEE_UPDATE_BLOCKED_BY_KILL_SWITCH", error=str(e))
            return None
        except SubmissionError as e:
            CYCLE_ERRORS.labels("submission").inc()
            log.error("FEE_UPDATE_SUBMISSION_FAILED", error=str(e))
            return None
        except Exception as e:
            CYCLE_ERRORS.labels("unexpected").inc()
            log.error("FEE_CYCLE_UNEXPECTED_ERROR", error=str(e), exc_info=True)
            return None

        self.last_decision = decision
        DECISIONS.labels(decision.kind.value).inc()
        if decision.kind is DecisionKind.NO_UPDATE_NEEDED:
            log.info("FEE_UP_TO_DATE")
        elif decision.kind is DecisionKind.PENDING_STILL_OUTSTANDING:
            log.info("FEE_CHECK_SKIPPED_PENDING", tx_hash=decision.tx_hash)
        return decision

    async def run_loop(self):
        """Runs until the block stream ends."""
        log.info("FEE_UPDATER_LOOP_STARTING", contract=self.contract_address, thresholds=self.thresholds.model_dump())
        async for block in self.subscription.stream_blocks():
            await self.process_block(block)
        log.warning("FEE_UPDATER_LOOP_TERMINATED", last_block=self.last_block)
