# /pp_fee_updater/core/tx.py
# Signs and broadcasts the owner-only setCurrentGasPrice call.
from typing import Any, Dict

from web3 import AsyncWeb3

from pp_fee_updater.abis import PRIVACY_POOL_ABI, SET_GAS_PRICE_METHOD
from pp_fee_updater.core.errors import SubmissionError, TransactionKillSwitchError
from pp_fee_updater.core.kill import check
from pp_fee_updater.core.logger import get_logger

log = get_logger(__name__)


class TransactionManager:
    """Builds, signs and sends update transactions from the owner account.

    Holds no durable nonce: the next nonce is read from the node's pending
    count at submission time, which is sufficient because the engine never
    has more than one update in flight.
    """
    def __init__(
        self,
        w3: AsyncWeb3,
        owner_address: str,
        private_key: str,
        chain_id: int | None = None,
        max_fee_multiplier: int = 2,
        abi: list = PRIVACY_POOL_ABI,
    ):
        self.w3 = w3
        self.owner_address = AsyncWeb3.to_checksum_address(owner_address)
        self._private_key = private_key
        self.chain_id = chain_id
        self.max_fee_multiplier = max_fee_multiplier
        self.abi = abi
        self.account = None
        self.is_initialized = False

    async def initialize(self):
        if self.is_initialized:
            return
        self.account = self.w3.eth.account.from_key(self._private_key)
        if self.account.address.lower() != self.owner_address.lower():
            raise ValueError(
                f"Private key controls {self.account.address}, not the configured owner {self.owner_address}"
            )
        if self.chain_id is None:
            self.chain_id = await self.w3.eth.chain_id
        self.is_initialized = True
        log.info("TRANSACTION_MANAGER_INITIALIZED", owner=self.owner_address, chain_id=self.chain_id)

    async def _fee_fields(self) -> Dict[str, int]:
        latest_block = await self.w3.eth.get_block("latest")
        priority_fee = await self.w3.eth.max_priority_fee
        base_fee = latest_block.get("baseFeePerGas") or await self.w3.eth.gas_price
        return {
            "maxPriorityFeePerGas": priority_fee,
            "maxFeePerGas": base_fee * self.max_fee_multiplier + priority_fee,
        }

    async def _build_transaction(self, contract_address: str, new_price: int) -> Dict[str, Any]:
        contract = self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(contract_address), abi=self.abi)
        nonce = await self.w3.eth.get_transaction_count(self.owner_address, "pending")
        params = {
            "from": self.owner_address,
            "nonce": nonce,
            "chainId": self.chain_id,
            **(await self._fee_fields()),
        }
        func = getattr(contract.functions, SET_GAS_PRICE_METHOD)
        return await func(new_price).build_transaction(params)

    async def submit_set_price(self, contract_address: str, new_price: int) -> str:
        """Broadcasts setCurrentGasPrice(new_price) and returns the transaction hash."""
        try:
            check()
        except TransactionKillSwitchError:
            log.critical("TRANSACTION_BLOCKED_BY_KILL_SWITCH", contract=contract_address, gas_price=new_price)
            raise

        try:
            await self.initialize()
            tx = await self._build_transaction(contract_address, new_price)
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            log.error("TRANSACTION_SUBMISSION_FAILED", contract=contract_address, gas_price=new_price, error=str(e), exc_info=True)
            raise SubmissionError(f"Failed to submit gas price update: {e}") from e

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        log.info("TRANSACTION_BROADCASTED", tx_hash=tx_hash_hex, nonce=tx.get("nonce"), gas_price=new_price)
        return tx_hash_hex
