"""Minimal ABIs for the contracts the updater talks to."""

from pp_fee_updater.abis.privacy_pool import PRIVACY_POOL_ABI, GET_GAS_PRICE_METHOD, SET_GAS_PRICE_METHOD

__all__ = ["PRIVACY_POOL_ABI", "GET_GAS_PRICE_METHOD", "SET_GAS_PRICE_METHOD"]
