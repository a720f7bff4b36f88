# /test/test_chain.py
import pytest
from web3.exceptions import TransactionNotFound

from pp_fee_updater.core.chain import ChainReader
from pp_fee_updater.core.errors import ChainReadError, PriceConversionError

POOL = "0x" + "22" * 20


class DummyCall:
    def __init__(self, result):
        self.result = result

    async def call(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class DummyContract:
    def __init__(self, result):
        self.functions = type("Functions", (), {"getCurrentGasPrice": lambda _self: DummyCall(result)})()


class DummyEth:
    def __init__(self, block=None, contract_result=0, receipt=None):
        self.block = block
        self.contract_result = contract_result
        self.receipt = receipt

    async def get_block(self, _):
        if isinstance(self.block, Exception):
            raise self.block
        return self.block

    def contract(self, address, abi):
        return DummyContract(self.contract_result)

    async def get_transaction_receipt(self, tx_hash):
        if isinstance(self.receipt, Exception):
            raise self.receipt
        return self.receipt


def reader_with(**kwargs):
    return ChainReader(type("W3", (), {"eth": DummyEth(**kwargs)})())


@pytest.mark.asyncio
async def test_latest_block_gas_price_is_base_fee():
    reader = reader_with(block={"number": 1, "baseFeePerGas": 1234})
    assert await reader.get_latest_block_gas_price() == 1234


@pytest.mark.asyncio
async def test_block_without_base_fee_is_a_read_error():
    reader = reader_with(block={"number": 1})
    with pytest.raises(ChainReadError):
        await reader.get_latest_block_gas_price()


@pytest.mark.asyncio
async def test_node_failure_is_a_read_error():
    reader = reader_with(block=ConnectionError("refused"))
    with pytest.raises(ChainReadError):
        await reader.get_latest_block_gas_price()


@pytest.mark.asyncio
async def test_contract_gas_price():
    assert await reader_with(contract_result=1000).get_contract_gas_price(POOL) == 1000


@pytest.mark.asyncio
async def test_contract_call_failure_is_a_read_error():
    reader = reader_with(contract_result=RuntimeError("execution reverted"))
    with pytest.raises(ChainReadError):
        await reader.get_contract_gas_price(POOL)


@pytest.mark.asyncio
async def test_contract_value_out_of_range_is_a_conversion_error():
    reader = reader_with(contract_result=-1)
    with pytest.raises(PriceConversionError):
        await reader.get_contract_gas_price(POOL)


@pytest.mark.asyncio
async def test_missing_receipt_is_none():
    reader = reader_with(receipt=TransactionNotFound("not found"))
    assert await reader.get_transaction_receipt("0xabc") is None


@pytest.mark.asyncio
async def test_receipt_found():
    reader = reader_with(receipt={"status": 1})
    assert await reader.get_transaction_receipt("0xabc") == {"status": 1}


@pytest.mark.asyncio
async def test_receipt_lookup_failure_is_a_read_error():
    reader = reader_with(receipt=TimeoutError("slow node"))
    with pytest.raises(ChainReadError):
        await reader.get_transaction_receipt("0xabc")
