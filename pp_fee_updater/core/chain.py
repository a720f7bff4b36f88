# /pp_fee_updater/core/chain.py
# Read-only view of the chain: latest block gas price, contract state, receipts.
from typing import Any

from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.exceptions import TransactionNotFound

from pp_fee_updater.abis import PRIVACY_POOL_ABI, GET_GAS_PRICE_METHOD
from pp_fee_updater.core.errors import ChainReadError
from pp_fee_updater.core.fees import to_fee_units
from pp_fee_updater.core.logger import get_logger

log = get_logger(__name__)


def build_web3(url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(url))


class ChainReader:
    """
    Thin wrapper around an AsyncWeb3 client.

    Node failures surface as ChainReadError; out-of-range quantities surface as
    PriceConversionError. A receipt that does not exist yet is not an error.
    """
    def __init__(self, w3: AsyncWeb3, abi: list = PRIVACY_POOL_ABI):
        self.w3 = w3
        self.abi = abi

    def _contract(self, address: str):
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=self.abi)

    async def get_latest_block_gas_price(self) -> int:
        """Fetches the latest block's base fee, the network's live gas price."""
        try:
            block = await self.w3.eth.get_block("latest")
        except Exception as e:
            log.error("LATEST_BLOCK_READ_FAILED", error=str(e))
            raise ChainReadError(f"Failed to read latest block: {e}") from e

        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise ChainReadError(f"Block {block.get('number')} carries no baseFeePerGas")
        return to_fee_units(base_fee, "network_price")

    async def call_contract(self, address: str, method_name: str, *args) -> Any:
        try:
            func = getattr(self._contract(address).functions, method_name)
            return await func(*args).call()
        except Exception as e:
            log.error("CONTRACT_CALL_FAILED", contract=address, method=method_name, error=str(e))
            raise ChainReadError(f"{method_name} call on {address} failed: {e}") from e

    async def get_contract_gas_price(self, address: str) -> int:
        value = await self.call_contract(address, GET_GAS_PRICE_METHOD)
        return to_fee_units(value, "contract_price")

    async def get_transaction_receipt(self, tx_hash: str) -> dict | None:
        """Returns the receipt, or None while the transaction is not yet included."""
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise ChainReadError(f"Receipt lookup for {tx_hash} failed: {e}") from e
