"""
Delivery of approved lifecycle actions to the endpoints themselves.
"""
from abc import ABC, abstractmethod
from typing import Tuple

from fleetctl.communication.http_client import HttpClient
from fleetctl.core.actions import Action
from fleetctl.utils import get_logger

logger = get_logger(__name__)


class CommandTransport(ABC):
    """
    Carries an action the control plane already applied locally to the real agent.
    """

    @abstractmethod
    def deliver(self, asset_id: str, action: Action) -> Tuple[bool, str]:
        """
        :return: Tuple (delivered, message). A False result makes the caller
                 issue a compensating transition.
        """


class HttpCommandTransport(CommandTransport):
    """Queues the command through the Registry's command endpoint."""

    def __init__(self, http_client: HttpClient):
        if http_client is None:
            raise ValueError("HttpClient instance is required for HttpCommandTransport.")
        self.http_client = http_client

    def deliver(self, asset_id: str, action: Action) -> Tuple[bool, str]:
        success, data = self.http_client.send_agent_command(asset_id, action.value)
        if success:
            command_id = data.get('commandId') or data.get('id')
            return True, f"Command queued{f' ({command_id})' if command_id else ''}."
        return False, data.get('message', 'Command delivery failed.')
