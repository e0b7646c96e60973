"""
Fleet Control Console - Source Package

This package contains the lifecycle control plane for monitored security
agents: permission-gated actions, the asset state machine, bulk operations,
and the Registry integrations around them.

Main components:
- ControlPlane: Facade wiring every component for one console session
- ActionExecutor: Validates and applies one action to one asset
- BulkOperationCoordinator: Fans one action out over many assets
- Actor / Asset: Operator capabilities and monitored endpoint records
- ConfigManager: Manages console configuration
- InMemoryRegistry / HttpRegistry: Asset Registry adapters
- HttpClient / WSClient: Registry REST client and realtime feed
"""


from .version import __version__, __app_name__


from .core import ControlPlane, ActionExecutor, BulkOperationCoordinator
from .core import Action, Actor, Asset


from .config import ConfigManager


from .registry import AssetRegistry, InMemoryRegistry, HttpRegistry


from .communication import HttpClient, HttpCommandTransport, WSClient

__all__ = [
    '__version__',
    '__app_name__',

    'ControlPlane',
    'ActionExecutor',
    'BulkOperationCoordinator',
    'Action',
    'Actor',
    'Asset',

    'ConfigManager',

    'AssetRegistry',
    'InMemoryRegistry',
    'HttpRegistry',

    'HttpClient',
    'HttpCommandTransport',
    'WSClient'
]
