"""
Asset Registry collaborators: the system of record for asset state.
"""
from .base import AssetRegistry
from .memory import InMemoryRegistry
from .http_registry import HttpRegistry

__all__ = ['AssetRegistry', 'InMemoryRegistry', 'HttpRegistry']
