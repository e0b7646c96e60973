"""
WebSocket feed of asset snapshots pushed by the Registry.
"""
import socketio
import threading
from typing import Dict, Any, Callable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from fleetctl.config import ConfigManager
from fleetctl.utils import get_logger

logger = get_logger(__name__)

SNAPSHOT_EVENTS = ('asset:snapshot', 'asset:heartbeat')


class WSClient:
    """
    Subscribes to the Registry's realtime channel and forwards every asset
    snapshot or heartbeat to a single registered handler.
    """

    def __init__(self, config: 'ConfigManager'):
        """
        Initialize the WebSocket client.

        :param config: The configuration manager instance.
        :type config: ConfigManager
        :raises ValueError: If registry.url is not configured.
        """
        self.config = config
        server_url = self.config.get('registry.url')
        if not server_url:
            raise ValueError("Registry URL (registry.url) not found in configuration.")
        self.server_url = server_url

        reconnect_delay_initial = self.config.get('websocket.reconnect_delay_initial_sec', 5)
        reconnect_delay_max = self.config.get('websocket.reconnect_delay_max_sec', 60)
        reconnect_attempts_config = self.config.get('websocket.reconnect_attempts_max', None)
        reconnect_attempts_max = 0
        if reconnect_attempts_config is not None:
            try:
                attempts = int(float(reconnect_attempts_config))
                reconnect_attempts_max = attempts if attempts >= 0 else 0
            except (ValueError, TypeError):
                logger.warning(f"Invalid value for websocket.reconnect_attempts_max: '{reconnect_attempts_config}'. Using infinite attempts.")

        logger.info(f"WebSocket Config: URL={self.server_url}, Initial Delay={reconnect_delay_initial}s, "
                    f"Max Delay={reconnect_delay_max}s, Max Attempts={reconnect_attempts_max or 'Infinite'}")

        self.sio = socketio.Client(
            reconnection=True,
            reconnection_attempts=reconnect_attempts_max,
            reconnection_delay=reconnect_delay_initial,
            reconnection_delay_max=reconnect_delay_max,
            randomization_factor=0.5,
            logger=False,
            engineio_logger=False
        )
        self._snapshot_handler: Optional[Callable[[Dict[str, Any]], None]] = None
        self._connection_lock = threading.Lock()
        self._is_intentionally_disconnected = False

        self._setup_event_handlers()

    @property
    def connected(self) -> bool:
        return self.sio.connected

    def _setup_event_handlers(self):
        self.sio.on('connect', self._on_connect)
        self.sio.on('disconnect', self._on_disconnect)
        self.sio.on('connect_error', self._on_connect_error)
        for event_name in SNAPSHOT_EVENTS:
            self.sio.on(event_name, self._on_snapshot)
        logger.debug("WebSocket event handlers registered.")

    def _on_connect(self):
        logger.info(f"Connected to registry feed. SID: {self.sio.sid}")
        self._is_intentionally_disconnected = False

    def _on_disconnect(self):
        if self._is_intentionally_disconnected:
            logger.info("Disconnected from registry feed (intentional).")
        else:
            logger.warning("Registry feed connection lost unexpectedly. Auto-reconnect mechanism active.")

    def _on_connect_error(self, data):
        logger.error(f"Registry feed connection failed: {data}")

    def _on_snapshot(self, data: Any):
        """
        Handles 'asset:snapshot' and 'asset:heartbeat'. The payload is one
        asset object, or ``{"asset": {...}}``.

        :param data: Event data from server.
        :type data: Any
        """
        if isinstance(data, dict) and isinstance(data.get('asset'), dict):
            data = data['asset']
        if not isinstance(data, dict) or not data.get('id'):
            logger.warning(f"Received malformed asset snapshot: {data}. Ignoring.")
            return

        if self._snapshot_handler is None:
            logger.debug(f"No snapshot handler registered. Ignoring snapshot for asset {data.get('id')}.")
            return

        try:
            self._snapshot_handler(data)
        except Exception as e:
            logger.error(f"Error in snapshot handler for asset {data.get('id')}: {e}", exc_info=True)

    def register_snapshot_handler(self, callback: Callable[[Dict[str, Any]], None]):
        """
        Registers the callback receiving each inbound asset snapshot.

        :param callback: Function called with the raw asset dict.
        :type callback: Callable[[Dict[str, Any]], None]
        :raises TypeError: If callback is not callable.
        """
        if not callable(callback):
            raise TypeError("Snapshot handler must be a callable function.")
        self._snapshot_handler = callback
        logger.info("Asset snapshot handler registered successfully.")

    def connect(self, token: Optional[str] = None) -> bool:
        """
        Initiates the connection to the registry feed.

        :param token: Bearer token; defaults to `registry.api_token`.
        :type token: Optional[str]
        :return: True if connection attempt started, False otherwise.
        :rtype: bool
        """
        token = token or self.config.get('registry.api_token')
        with self._connection_lock:
            if self.sio.connected:
                logger.warning("Connection attempt skipped: Already connected.")
                return True

            self._is_intentionally_disconnected = False
            headers = {"X-Client-Type": "console"}
            auth_payload = None
            if token:
                headers["Authorization"] = f"Bearer {token}"
                auth_payload = {"token": token}

            logger.info(f"Connecting to registry feed at {self.server_url}")
            try:
                self.sio.connect(
                    url=self.server_url,
                    headers=headers,
                    auth=auth_payload,
                    transports=["websocket"],
                    wait=False,
                    wait_timeout=10,
                    namespaces=["/"]
                )
                return True
            except socketio.exceptions.ConnectionError as e:
                logger.error(f"Failed to initiate WebSocket connection: {e}")
                return False
            except ValueError as e:
                logger.error(f"WebSocket connection configuration error: {e}")
                return False

    def disconnect(self):
        """
        Disconnects from the registry feed intentionally.
        """
        with self._connection_lock:
            if not self.sio.connected:
                logger.info("WebSocket already disconnected.")
                return

            logger.info("Disconnecting from registry feed...")
            self._is_intentionally_disconnected = True
            try:
                self.sio.disconnect()
            except Exception as e:
                logger.error(f"An error occurred during WebSocket disconnection: {e}", exc_info=True)
