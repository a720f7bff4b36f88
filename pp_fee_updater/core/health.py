# /pp_fee_updater/core/health.py
from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pp_fee_updater.core.kill import is_kill_switch_active
from pp_fee_updater.core.logger import get_logger

log = get_logger(__name__)

AGENT_KEY = web.AppKey("agent", object)


async def healthz(request):
    """Provides a JSON health status for the service."""
    agent = request.app[AGENT_KEY]
    pending = agent.engine.tracker.peek()
    decision = agent.last_decision
    return web.json_response({
        "status": "ok",
        "kill_switch_active": is_kill_switch_active(),
        "last_block": agent.last_block,
        "last_cycle_at": agent.last_cycle_at.isoformat() if agent.last_cycle_at else None,
        "last_decision": decision.kind.value if decision else None,
        "pending_tx": pending.transaction_id if pending else None,
        "pending_gas_price": str(pending.submitted_gas_price) if pending else None,
    })


async def metrics(request):
    return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


def build_health_app(agent) -> web.Application:
    app = web.Application()
    app[AGENT_KEY] = agent
    app.add_routes([web.get("/healthz", healthz), web.get("/metrics", metrics)])
    return app


async def start_health_server(agent, port: int) -> web.AppRunner:
    runner = web.AppRunner(build_health_app(agent))
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    log.info("HEALTHCHECK_SERVER_STARTED", port=port)
    return runner
