# /pp_fee_updater/core/fees.py
# Threshold band evaluation and fee-unit arithmetic.
# All prices are integer fee units (wei). Python ints are unbounded, so the only
# range limit is the one the contract imposes: a uint256.
from decimal import Decimal, localcontext
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from pp_fee_updater.core.errors import PriceConversionError

UINT256_MAX = 2**256 - 1


class Direction(str, Enum):
    UPWARD = "upward"
    DOWNWARD = "downward"
    NONE = "none"


class ThresholdConfig(BaseModel):
    """
    Fee policy, immutable for the life of the process.

    Thresholds are percentages of the contract's stored price that bound the
    tolerated band; buffers are percentages of the network price used for the
    value written on-chain. The usual shape is an upward threshold just above
    100 and a downward threshold well below it, so fees go up quickly and come
    down slowly.
    """
    upward_threshold_pct: int = Field(gt=0)
    downward_threshold_pct: int = Field(gt=0)
    upward_buffer_pct: int = Field(gt=0)
    downward_buffer_pct: int = Field(gt=0)

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings) -> "ThresholdConfig":
        return cls(
            upward_threshold_pct=settings.UPWARD_THRESHOLD_PCT,
            downward_threshold_pct=settings.DOWNWARD_THRESHOLD_PCT,
            upward_buffer_pct=settings.UPWARD_BUFFER_PCT,
            downward_buffer_pct=settings.DOWNWARD_BUFFER_PCT,
        )

    def upward_bound(self, contract_price: int) -> int:
        return contract_price * self.upward_threshold_pct // 100

    def downward_bound(self, contract_price: int) -> int:
        return contract_price * self.downward_threshold_pct // 100


def to_fee_units(value: Any, field: str = "price") -> int:
    """Converts a chain quantity (int or JSON-RPC hex string) to fee units.

    Raises PriceConversionError rather than truncating anything that is not a
    non-negative integer within uint256.
    """
    if isinstance(value, bool):
        raise PriceConversionError(f"{field} is a boolean, not a quantity: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            raise PriceConversionError(f"{field} is not an integer quantity: {value!r}") from None
    if not isinstance(value, int):
        raise PriceConversionError(f"{field} has unsupported type {type(value).__name__}")
    if value < 0:
        raise PriceConversionError(f"{field} is negative: {value}")
    if value > UINT256_MAX:
        raise PriceConversionError(f"{field} exceeds uint256: {value}")
    return value


def drift_pct(network_price: int, contract_price: int) -> Decimal:
    """Signed drift of the network price from the contract price, in percent.

    Reporting only. Undefined at a zero contract price, reported as zero.
    """
    if contract_price == 0:
        return Decimal("0")
    # uint256 operands need ~80 significant digits; the default context has 28
    with localcontext() as ctx:
        ctx.prec = 100
        drift = Decimal(network_price - contract_price) * 100 / Decimal(contract_price)
        return drift.quantize(Decimal("0.01"))


class GasPriceSnapshot(BaseModel):
    network_price: int
    contract_price: int
    upward_bound: int
    downward_bound: int
    direction: Direction
    new_price: int | None = None

    class Config:
        frozen = True

    @property
    def should_update(self) -> bool:
        return self.direction is not Direction.NONE

    @property
    def drift_pct(self) -> Decimal:
        return drift_pct(self.network_price, self.contract_price)


def evaluate(network_price: int, contract_price: int, thresholds: ThresholdConfig) -> GasPriceSnapshot:
    """Places the network price against the contract's tolerance band.

    Bounds and new prices use integer division, e.g. contract 1000, network 820,
    downward threshold 85 and buffer 110 gives bound 850 and new price 902.
    """
    network_price = to_fee_units(network_price, "network_price")
    contract_price = to_fee_units(contract_price, "contract_price")

    upward_bound = thresholds.upward_bound(contract_price)
    downward_bound = thresholds.downward_bound(contract_price)

    if network_price > upward_bound:
        direction = Direction.UPWARD
        new_price = network_price * thresholds.upward_buffer_pct // 100
    elif network_price < downward_bound:
        direction = Direction.DOWNWARD
        new_price = network_price * thresholds.downward_buffer_pct // 100
    else:
        direction = Direction.NONE
        new_price = None

    if new_price is not None:
        new_price = to_fee_units(new_price, "new_price")

    return GasPriceSnapshot(
        network_price=network_price,
        contract_price=contract_price,
        upward_bound=upward_bound,
        downward_bound=downward_bound,
        direction=direction,
        new_price=new_price,
    )
