"""Execution module - Signal dispatch and the execution collaborator contract."""

from .base import ExecutionClient, OrderResult
from .dispatcher import SignalDispatcher
from .paper import PaperExecutionClient

__all__ = [
    'ExecutionClient',
    'OrderResult',
    'SignalDispatcher',
    'PaperExecutionClient'
]
