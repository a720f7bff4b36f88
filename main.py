# /main.py
# Wires the block subscription, chain reader, submitter and engine together
# and runs the block loop until the node closes the stream.
import asyncio

from pp_fee_updater.adapters.blocks import BlockSubscription
from pp_fee_updater.core.agent import FeeUpdaterAgent
from pp_fee_updater.core.chain import ChainReader, build_web3
from pp_fee_updater.core.config import load_settings, settings
from pp_fee_updater.core.config_validator import validate as validate_config
from pp_fee_updater.core.engine import FeeReconciliationEngine
from pp_fee_updater.core.fees import ThresholdConfig
from pp_fee_updater.core.health import start_health_server
from pp_fee_updater.core.logger import configure_logging, get_logger
from pp_fee_updater.core.pending import PendingUpdateTracker
from pp_fee_updater.core.tx import TransactionManager


async def main():
    load_settings()
    configure_logging()
    log = get_logger("PP-Fee-Updater.System")
    validate_config()
    log.info("FEE_UPDATER_STARTING", contract=settings.PP_ADDRESS, owner=settings.OWNER_ADDRESS)

    w3 = build_web3(settings.API_URL)
    tx_manager = TransactionManager(
        w3,
        owner_address=settings.OWNER_ADDRESS,
        private_key=settings.OWNER_PRIVATE_KEY.get_secret_value(),
        chain_id=settings.CHAIN_ID,
        max_fee_multiplier=settings.MAX_FEE_MULTIPLIER,
    )
    await tx_manager.initialize()

    # State lives in memory only; a restart re-derives everything from the chain.
    engine = FeeReconciliationEngine(ChainReader(w3), tx_manager, PendingUpdateTracker())
    subscription = BlockSubscription(settings.WS_URL)
    agent = FeeUpdaterAgent(
        engine,
        subscription,
        contract_address=settings.PP_ADDRESS,
        thresholds=ThresholdConfig.from_settings(settings),
    )

    runner = None
    if settings.HEALTH_PORT:
        runner = await start_health_server(agent, settings.HEALTH_PORT)

    try:
        await subscription.connect()
        await agent.run_loop()
    finally:
        await subscription.close()
        if runner is not None:
            await runner.cleanup()
        log.warning("SYSTEM_SHUTDOWN_COMPLETE")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
