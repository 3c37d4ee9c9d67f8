from __future__ import annotations

import logging

from web3 import Web3

from pool_history.domain.entities.pool import PoolMetadata


logger = logging.getLogger(__name__)


UNISWAP_V3_POOL_ABI = [
    {
        "inputs": [],
        "name": "token0",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "token1",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "fee",
        "outputs": [{"internalType": "uint24", "name": "", "type": "uint24"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "liquidity",
        "outputs": [{"internalType": "uint128", "name": "", "type": "uint128"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "slot0",
        "outputs": [
            {"internalType": "uint160", "name": "sqrtPriceX96", "type": "uint160"},
            {"internalType": "int24", "name": "tick", "type": "int24"},
            {"internalType": "uint16", "name": "observationIndex", "type": "uint16"},
            {"internalType": "uint16", "name": "observationCardinality", "type": "uint16"},
            {"internalType": "uint16", "name": "observationCardinalityNext", "type": "uint16"},
            {"internalType": "uint8", "name": "feeProtocol", "type": "uint8"},
            {"internalType": "bool", "name": "unlocked", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_DECIMALS_ABI = [
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class PoolMetadataError(RuntimeError):
    pass


class Web3PoolMetadataClient:
    def __init__(self, web3: Web3):
        self.web3 = web3

    @classmethod
    def from_rpc_url(cls, rpc_url: str, *, timeout_seconds: float = 30) -> "Web3PoolMetadataClient":
        if not rpc_url:
            raise PoolMetadataError("RPC_URL is required to read pool metadata.")
        provider = Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_seconds})
        return cls(Web3(provider))

    def get_pool_metadata(self, *, pool_address: str) -> PoolMetadata:
        try:
            pool = self.web3.eth.contract(
                address=Web3.to_checksum_address(pool_address), abi=UNISWAP_V3_POOL_ABI
            )
            token0_address = pool.functions.token0().call()
            token1_address = pool.functions.token1().call()
            fee = int(pool.functions.fee().call())
            token0_decimals = self._token_decimals(token0_address)
            token1_decimals = self._token_decimals(token1_address)
        except PoolMetadataError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise PoolMetadataError(
                f"Failed to fetch token details or fee for pool {pool_address}: {exc}"
            ) from exc

        logger.info(
            "pool_metadata_client: pool=%s token0=%s token1=%s decimals0=%s decimals1=%s fee=%s",
            pool_address,
            token0_address,
            token1_address,
            token0_decimals,
            token1_decimals,
            fee,
        )
        return PoolMetadata(
            pool_address=pool_address.lower(),
            token0_address=str(token0_address),
            token1_address=str(token1_address),
            fee=fee,
            token0_decimals=token0_decimals,
            token1_decimals=token1_decimals,
        )

    def log_pool_state(self, *, pool_address: str) -> None:
        """Logs the pool's current liquidity, price and tick; errors are logged only."""
        try:
            pool = self.web3.eth.contract(
                address=Web3.to_checksum_address(pool_address), abi=UNISWAP_V3_POOL_ABI
            )
            liquidity = pool.functions.liquidity().call()
            slot0 = pool.functions.slot0().call()
        except Exception as exc:  # noqa: BLE001
            logger.warning("pool_metadata_client: pool_state_failed pool=%s error=%s", pool_address, exc)
            return
        logger.info(
            "pool_metadata_client: pool_state pool=%s liquidity=%s sqrt_price_x96=%s tick=%s",
            pool_address,
            liquidity,
            slot0[0],
            slot0[1],
        )

    def _token_decimals(self, token_address: str) -> int:
        token = self.web3.eth.contract(
            address=Web3.to_checksum_address(token_address), abi=ERC20_DECIMALS_ABI
        )
        return int(token.functions.decimals().call())
