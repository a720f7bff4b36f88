# /pp_fee_updater/abis/privacy_pool.py
GET_GAS_PRICE_METHOD = "getCurrentGasPrice"
SET_GAS_PRICE_METHOD = "setCurrentGasPrice"

PRIVACY_POOL_ABI = [
    {"inputs": [], "name": "getCurrentGasPrice", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "uint256", "name": "price", "type": "uint256"}], "name": "setCurrentGasPrice", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]
