"""EVM JSON-RPC access and batched balance lookup."""

from tokenwatch.services.rpc.balance_checker import BalanceChecker
from tokenwatch.services.rpc.client import JsonRpcClient

__all__ = ["BalanceChecker", "JsonRpcClient"]
