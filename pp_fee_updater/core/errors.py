# /pp_fee_updater/core/errors.py
# Error taxonomy for a single block cycle. The agent loop reports each kind
# under its own event name so "chain unreachable" and "chain data too large"
# stay distinguishable in the logs.


class FeeUpdaterError(Exception):
    """Base class for every error a reconciliation cycle can surface."""


class ChainReadError(FeeUpdaterError):
    """A node query (block, contract call) failed. Retried on the next block."""


class PriceConversionError(FeeUpdaterError):
    """A fee-unit value does not fit the contract's uint256 price."""


class SubmissionError(FeeUpdaterError):
    """Signing or broadcasting the update transaction failed."""


class TransactionKillSwitchError(SubmissionError):
    pass
