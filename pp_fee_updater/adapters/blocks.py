# /pp_fee_updater/adapters/blocks.py
import json
from typing import AsyncIterator

import websockets
from pydantic import BaseModel, ValidationError, field_validator
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from pp_fee_updater.core.logger import get_logger

log = get_logger(__name__)

SUBSCRIBE_REQUEST = {"jsonrpc": "2.0", "id": 1, "method": "eth_subscribe", "params": ["newHeads"]}
NOTIFICATION_METHOD = "eth_subscription"


class BlockHeader(BaseModel):
    number: int
    hash: str | None = None
    base_fee_per_gas: int | None = None

    @field_validator("number", "base_fee_per_gas", mode="before")
    @classmethod
    def _decode_quantity(cls, value):
        if isinstance(value, str) and value.lower().startswith("0x"):
            return int(value, 16)
        return value


def parse_message(raw) -> BlockHeader | None:
    """Turns one websocket frame into a BlockHeader.

    Confirmations and JSON-RPC errors are logged and yield None, as does
    anything malformed. Never raises.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        log.warning("BLOCK_FEED_UNPARSEABLE_FRAME", frame=str(raw)[:200])
        return None
    if not isinstance(data, dict):
        log.warning("BLOCK_FEED_UNEXPECTED_FRAME", frame=str(raw)[:200])
        return None

    if data.get("method") == NOTIFICATION_METHOD:
        params = data.get("params")
        header = params.get("result") if isinstance(params, dict) else None
        if not isinstance(header, dict):
            log.warning("BLOCK_FEED_NOTIFICATION_WITHOUT_HEADER", frame=str(raw)[:200])
            return None
        try:
            return BlockHeader(
                number=header.get("number"),
                hash=header.get("hash"),
                base_fee_per_gas=header.get("baseFeePerGas"),
            )
        except (ValidationError, ValueError) as e:
            log.warning("BLOCK_FEED_MALFORMED_HEADER", error=str(e))
            return None

    if "error" in data:
        log.error("BLOCK_FEED_RPC_ERROR", error=data["error"])
    elif "result" in data:
        log.info("BLOCK_FEED_SUBSCRIPTION_CONFIRMED", subscription=data["result"])
    return None


class BlockSubscription:
    """
    newHeads subscription over a single websocket connection.

    Ping frames are answered by the websockets protocol layer. The stream ends
    when the connection closes; reconnecting is left to whoever runs the process.
    """
    def __init__(self, wss_url: str):
        self.wss_url = wss_url
        self.connection = None

    async def connect(self):
        log.info("BLOCK_FEED_CONNECTING", url=self.wss_url)
        self.connection = await websockets.connect(self.wss_url)
        await self.connection.send(json.dumps(SUBSCRIBE_REQUEST))
        log.info("BLOCK_FEED_SUBSCRIBE_SENT")

    async def stream_blocks(self) -> AsyncIterator[BlockHeader]:
        if self.connection is None:
            await self.connect()
        try:
            async for message in self.connection:
                header = parse_message(message)
                if header is not None:
                    yield header
        except ConnectionClosedOK:
            log.warning("BLOCK_FEED_CLOSED_BY_SERVER")
        except ConnectionClosedError as e:
            log.error("BLOCK_FEED_CONNECTION_ERROR", error=str(e))
        else:
            log.warning("BLOCK_FEED_CLOSED_BY_SERVER")

    async def close(self):
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
            log.info("BLOCK_FEED_CLOSED")
