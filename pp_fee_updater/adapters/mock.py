# /pp_fee_updater/adapters/mock.py
# In-memory stand-ins for the chain collaborators. They let the engine and
# the block loop run in simulation and in unit tests without a node.
from typing import Dict, Iterable, List

from pp_fee_updater.adapters.blocks import BlockHeader
from pp_fee_updater.core.chain import ChainReader
from pp_fee_updater.core.errors import ChainReadError, SubmissionError
from pp_fee_updater.core.fees import to_fee_units
from pp_fee_updater.core.kill import check
from pp_fee_updater.core.logger import get_logger
from pp_fee_updater.core.tx import TransactionManager

log = get_logger(__name__)


class MockChainReader(ChainReader):
    """
    Serves prices and receipts from plain attributes.

    Set ``network_price``/``contract_price`` directly, register receipts with
    ``add_receipt``, and arm ``fail_*`` flags to make the next call raise.
    """
    def __init__(self, network_price: int = 0, contract_price: int = 0):
        self.network_price = network_price
        self.contract_price = contract_price
        self.receipts: Dict[str, dict] = {}
        self.calls: List[str] = []
        self.fail_block_read = False
        self.fail_contract_read = False
        self.fail_receipt_read = False

    def add_receipt(self, tx_hash: str, status: int = 1):
        self.receipts[tx_hash] = {"transactionHash": tx_hash, "status": status}

    async def get_latest_block_gas_price(self) -> int:
        self.calls.append("get_latest_block_gas_price")
        if self.fail_block_read:
            raise ChainReadError("Mock latest block read failure")
        return to_fee_units(self.network_price, "network_price")

    async def call_contract(self, address: str, method_name: str, *args):
        self.calls.append(method_name)
        if self.fail_contract_read:
            raise ChainReadError("Mock contract call failure")
        return self.contract_price

    async def get_transaction_receipt(self, tx_hash: str) -> dict | None:
        self.calls.append("get_transaction_receipt")
        if self.fail_receipt_read:
            raise ChainReadError("Mock receipt lookup failure")
        return self.receipts.get(tx_hash)


class MockTransactionManager(TransactionManager):
    """
    A mock TransactionManager that records submissions instead of broadcasting.

    With ``apply_on_submit`` the linked reader's contract price is updated
    immediately, as if the transaction had been mined and executed.
    """
    def __init__(self, reader: MockChainReader | None = None, apply_on_submit: bool = False):
        self.reader = reader
        self.apply_on_submit = apply_on_submit
        self.nonce = 0
        self.sent_transactions: List[dict] = []
        self._must_fail = False
        self.is_initialized = True
        log.info("MOCK_TRANSACTION_MANAGER_INITIALIZED")

    def set_next_call_to_fail(self, fail: bool = True):
        self._must_fail = fail

    async def submit_set_price(self, contract_address: str, new_price: int) -> str:
        check()
        if self._must_fail:
            self._must_fail = False
            log.error("MOCK_TX_FORCED_FAILURE", contract=contract_address, gas_price=new_price)
            raise SubmissionError("Forced failure for testing.")

        tx_hash = f"0xfake_tx_hash_{self.nonce}"
        self.sent_transactions.append({"hash": tx_hash, "to": contract_address, "gas_price": new_price})
        self.nonce += 1
        if self.apply_on_submit and self.reader is not None:
            self.reader.contract_price = new_price
            self.reader.add_receipt(tx_hash)
        log.info("MOCK_TRANSACTION_SENT", tx_hash=tx_hash, gas_price=new_price)
        return tx_hash


class MockBlockSubscription:
    """Replays a fixed sequence of block headers, then ends like a closed socket."""
    def __init__(self, blocks: Iterable[int | BlockHeader]):
        self.blocks = [b if isinstance(b, BlockHeader) else BlockHeader(number=b) for b in blocks]

    async def stream_blocks(self):
        for block in self.blocks:
            yield block
