# /test/test_health.py
import json

import pytest
from aiohttp.test_utils import make_mocked_request

from pp_fee_updater.adapters.mock import MockBlockSubscription, MockChainReader, MockTransactionManager
from pp_fee_updater.core.agent import FeeUpdaterAgent
from pp_fee_updater.core.engine import FeeReconciliationEngine
from pp_fee_updater.core.fees import ThresholdConfig
from pp_fee_updater.core.health import build_health_app, healthz, metrics
from pp_fee_updater.core.kill import activate_kill_switch

POOL = "0x" + "22" * 20


@pytest.fixture
def agent():
    reader = MockChainReader(network_price=1100, contract_price=1000)
    engine = FeeReconciliationEngine(reader, MockTransactionManager(reader))
    thresholds = ThresholdConfig(upward_threshold_pct=105, downward_threshold_pct=85, upward_buffer_pct=110, downward_buffer_pct=110)
    return FeeUpdaterAgent(engine, MockBlockSubscription([55]), POOL, thresholds)


@pytest.mark.asyncio
async def test_healthz_reports_pending_update(agent):
    await agent.run_loop()
    app = build_health_app(agent)

    resp = await healthz(make_mocked_request("GET", "/healthz", app=app))
    body = json.loads(resp.body)

    assert body["status"] == "ok"
    assert body["last_block"] == 55
    assert body["last_decision"] == "update_submitted"
    assert body["pending_tx"] == "0xfake_tx_hash_0"
    assert body["pending_gas_price"] == "1210"
    assert body["kill_switch_active"] is False


@pytest.mark.asyncio
async def test_healthz_before_first_block(agent):
    activate_kill_switch("test")
    app = build_health_app(agent)

    body = json.loads((await healthz(make_mocked_request("GET", "/healthz", app=app))).body)

    assert body["last_block"] is None
    assert body["pending_tx"] is None
    assert body["kill_switch_active"] is True


@pytest.mark.asyncio
async def test_metrics_exposition(agent):
    await agent.run_loop()
    app = build_health_app(agent)

    resp = await metrics(make_mocked_request("GET", "/metrics", app=app))

    assert b"pp_fee_updater_blocks_processed_total" in resp.body
