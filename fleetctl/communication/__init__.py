"""
Communication with the Registry: REST client, command delivery and realtime feed.
"""
from .http_client import HttpClient
from .command_transport import CommandTransport, HttpCommandTransport
from .ws_client import WSClient

__all__ = ['HttpClient', 'CommandTransport', 'HttpCommandTransport', 'WSClient']
