import json
import requests
from urllib.parse import urljoin, urlparse, quote
from typing import Dict, Any, Tuple, Optional, TYPE_CHECKING, List, Union

if TYPE_CHECKING:
    from fleetctl.config import ConfigManager

from fleetctl.utils import get_logger

logger = get_logger(__name__)

ResponseData = Optional[Union[Dict[str, Any], List[Any]]]


class HttpClient:
    """
    HTTP client for the Registry's REST API.

    Handles request construction, bearer authentication, error handling, and
    response parsing. Every public method returns ``(success, data)`` and
    never raises for network or server errors.

    :ivar config: The configuration manager instance.
    :ivar base_url: The base URL for the API.
    :ivar timeout: The default request timeout in seconds.
    """

    def __init__(self, config: 'ConfigManager'):
        """
        Initializes the HTTP client.

        :param config: The configuration manager instance.
        :type config: ConfigManager
        :raises ValueError: If `registry.url` is not configured or is invalid.
        """
        self.config = config
        base_url_config = self.config.get('registry.url')
        if not base_url_config:
            raise ValueError("Registry URL (registry.url) not found in configuration.")

        parsed_url = urlparse(base_url_config)
        if not parsed_url.scheme or not parsed_url.netloc:
            raise ValueError(f"Invalid registry.url configured: {base_url_config}. Must include scheme (e.g., http:// or https://).")

        self.base_url = urljoin(f"{parsed_url.scheme}://{parsed_url.netloc}", parsed_url.path.rstrip('/') + "/api/")
        self.timeout = self.config.get('registry.request_timeout_sec', 15)
        self._api_token: Optional[str] = self.config.get('registry.api_token')
        logger.info(f"HTTP client initialized. Base API URL: {self.base_url}, Timeout: {self.timeout}s")

    def set_api_token(self, token: str):
        """
        Sets the bearer token for authenticated requests.

        :param token: Token issued to the console by the auth service.
        :type token: str
        """
        if not token:
            logger.warning("Attempted to set an empty API token.")
            return
        self._api_token = token
        logger.debug("API token updated.")

    def fetch_assets(self) -> Tuple[bool, List[Dict[str, Any]]]:
        """
        Fetches the full asset list.

        :return: Tuple (success_flag, assets). Accepts a bare list or ``{"assets": [...]}``.
        :rtype: Tuple[bool, List[Dict[str, Any]]]
        """
        response_data, error_message = self._make_request('GET', '/assets')
        if error_message is not None:
            logger.error(f"Failed to fetch assets: {error_message}")
            return False, []

        if isinstance(response_data, dict):
            response_data = response_data.get('assets', [])
        if not isinstance(response_data, list):
            logger.error(f"Unexpected asset list format: {type(response_data).__name__}")
            return False, []
        logger.info(f"Fetched {len(response_data)} asset(s) from registry.")
        return True, response_data

    def patch_asset(self, asset_id: str, patch: Dict[str, Any]) -> Tuple[bool, Dict[str, Any]]:
        """
        Sends changed asset fields to the registry.

        :param asset_id: The changed asset.
        :type asset_id: str
        :param patch: Changed wire fields.
        :type patch: Dict[str, Any]
        :return: Tuple (success_flag, response_data_or_error_dict).
        :rtype: Tuple[bool, Dict[str, Any]]
        """
        endpoint = f"/assets/{quote(asset_id, safe='')}"
        response_data, error_message = self._make_request('PATCH', endpoint, json=patch)
        return self._as_result(f"patch asset {asset_id}", response_data, error_message)

    def delete_asset(self, asset_id: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Retires an uninstalled asset's record.

        :return: Tuple (success_flag, response_data_or_error_dict).
        :rtype: Tuple[bool, Dict[str, Any]]
        """
        endpoint = f"/assets/{quote(asset_id, safe='')}"
        response_data, error_message = self._make_request('DELETE', endpoint)
        return self._as_result(f"delete asset {asset_id}", response_data, error_message)

    def send_agent_command(self, asset_id: str, command: str,
                           parameters: Optional[Dict[str, Any]] = None) -> Tuple[bool, Dict[str, Any]]:
        """
        Queues a lifecycle command for delivery to the agent.

        :param asset_id: Target asset.
        :type asset_id: str
        :param command: Action wire name (e.g. 'stop').
        :type command: str
        :param parameters: Optional command parameters.
        :type parameters: Optional[Dict[str, Any]]
        :return: Tuple (success_flag, response_data_or_error_dict).
        :rtype: Tuple[bool, Dict[str, Any]]
        """
        endpoint = f"/agents/{quote(asset_id, safe='')}/commands"
        payload: Dict[str, Any] = {"command": command}
        if parameters:
            payload["parameters"] = parameters
        logger.info(f"Sending '{command}' command for asset {asset_id}...")
        response_data, error_message = self._make_request('POST', endpoint, json=payload)
        return self._as_result(f"send '{command}' to asset {asset_id}", response_data, error_message)

    @staticmethod
    def _as_result(description: str, response_data: ResponseData,
                   error_message: Optional[str]) -> Tuple[bool, Dict[str, Any]]:
        if error_message is None:
            logger.debug(f"Request to {description} succeeded.")
            return True, response_data if isinstance(response_data, dict) else {}
        error_response = dict(response_data) if isinstance(response_data, dict) else {}
        error_response.setdefault('status', 'error')
        error_response['message'] = error_message
        logger.error(f"Failed to {description}: {error_message}")
        return False, error_response

    def _make_request(self, method: str, endpoint: str, **kwargs) -> Tuple[ResponseData, Optional[str]]:
        """
        Internal helper method to make HTTP requests and handle common errors.

        :param method: HTTP method (e.g., 'POST', 'GET').
        :type method: str
        :param endpoint: API endpoint path (e.g., '/assets'). Should start with '/'.
        :type endpoint: str
        :param kwargs: Additional arguments passed to requests.request (e.g., json, params, headers).
        :return: Tuple containing (response_data, error_message).
                 response_data is the parsed JSON response (dict or list) or None on error.
                 error_message is a string describing the error, or None on success.
        :rtype: Tuple[Optional[Union[Dict[str, Any], List[Any]]], Optional[str]]
        """
        if not endpoint.startswith('/'):
            endpoint = '/' + endpoint

        full_url = urljoin(self.base_url, endpoint.lstrip('/'))
        request_timeout = kwargs.pop('timeout', self.timeout)
        headers = kwargs.pop('headers', {})

        headers.setdefault('User-Agent', 'FleetControlConsole/1.0')
        if 'json' in kwargs:
            headers.setdefault('Content-Type', 'application/json')
        headers.update(self._get_auth_headers())

        try:
            logger.debug(f"Making HTTP request: {method} {full_url} (Timeout: {request_timeout}s)")
            response = requests.request(method, full_url, headers=headers, timeout=request_timeout, **kwargs)
            response.raise_for_status()

            if response.status_code == 204:
                logger.debug(f"Request successful (204 No Content): {method} {full_url}")
                return {}, None
            try:
                return response.json(), None
            except ValueError:
                logger.error(f"Failed to decode JSON response from {method} {full_url} (Status: {response.status_code}). Response text: {response.text[:200]}...")
                return None, "Invalid JSON response from server despite success status."

        except requests.exceptions.Timeout:
            logger.error(f"Request timed out after {request_timeout}s: {method} {full_url}")
            return None, f"Request timed out after {request_timeout} seconds."
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error: {method} {full_url} - {e}")
            return None, f"Unable to connect to the server at {urlparse(self.base_url).netloc}."
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code
            error_message = f"Server error {status_code}"
            try:
                error_data = e.response.json()
            except ValueError:
                logger.error(f"HTTP error {status_code}: {method} {full_url}. Response: {e.response.text[:200]}...")
                return None, f"{error_message} (non-JSON response)."
            if isinstance(error_data, dict):
                error_details = error_data.get('message', json.dumps(error_data))
            else:
                error_details = json.dumps(error_data)
            logger.error(f"HTTP error {status_code}: {method} {full_url}. Server response: {error_details}")
            return error_data, f"{error_message}: {error_details}"
        except requests.exceptions.RequestException as e:
            logger.error(f"An unexpected request error occurred: {method} {full_url} - {e}", exc_info=True)
            return None, f"Unexpected network error: {e}"

    def _get_auth_headers(self) -> Dict[str, str]:
        """
        Constructs authentication headers if a token is set.

        :return: Dictionary containing authentication headers, or empty if no token.
        :rtype: Dict[str, str]
        """
        if self._api_token:
            return {'Authorization': f"Bearer {self._api_token}"}
        return {}
