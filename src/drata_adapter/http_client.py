"""
HTTPClient module for authenticated requests against the Drata public API
"""

import json
import logging
import requests
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass

DEFAULT_BASE_URL = 'https://public-api.drata.com'
API_PREFIX = '/public'

JSONResponse = Union[Dict[str, Any], List[Dict[str, Any]]]


class ApiError(Exception):
    """Raised when a Drata request fails at the network level or with a non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


@dataclass
class BinaryPayload:
    """File contents attached to an input item"""
    data: bytes
    file_name: str = 'file'
    mime_type: str = 'application/octet-stream'


class DrataHTTPClient:
    """HTTP client for the Drata API with bearer authentication and error normalisation"""

    SUPPORTED_METHODS = {'GET', 'POST', 'PUT', 'DELETE'}

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.headers: Dict[str, str] = {}
        self.session: Optional[requests.Session] = None
        self.logger = logging.getLogger(__name__)

    def authenticate(self, credentials: Dict[str, Any]) -> None:
        """
        Configure the bearer token and base URL from Drata credentials

        Args:
            credentials: Mapping with 'apiKey' and optional 'baseUrl'

        Raises:
            ValueError: If no API key is supplied
        """
        api_key = credentials.get('apiKey')
        if not api_key:
            raise ValueError("Drata credentials require an 'apiKey'")

        self.headers['Authorization'] = f"Bearer {api_key}"

        if credentials.get('baseUrl'):
            self.base_url = str(credentials['baseUrl']).rstrip('/')

    def build_url(self, path: str) -> str:
        """Join the base URL, API prefix and endpoint path"""
        return f"{self.base_url}{API_PREFIX}{path}"

    def request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                query: Optional[Dict[str, Any]] = None) -> JSONResponse:
        """
        Make a single authenticated JSON request

        Args:
            method: GET, POST, PUT or DELETE
            path: Endpoint path such as '/controls'
            body: JSON body, omitted when empty
            query: Query string parameters, omitted when empty

        Returns:
            Parsed JSON response (empty dict for an empty body)

        Raises:
            ValueError: If the method is not supported
            ApiError: On network failure or non-2xx status
        """
        method = method.upper()
        if method not in self.SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        headers = {
            **self.headers,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

        kwargs: Dict[str, Any] = {'headers': headers, 'timeout': self.timeout}
        if body:
            kwargs['json'] = body
        if query:
            kwargs['params'] = query

        response = self._send(method, self.build_url(path), **kwargs)
        return self._parse_json(response)

    def upload_file(self, path: str, payload: BinaryPayload,
                    fields: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST a multipart form with a single 'file' part and metadata fields

        Args:
            path: Endpoint path such as '/controls/12/evidence'
            payload: File bytes, name and content type
            fields: Extra form fields, already cleaned by the caller

        Returns:
            Parsed JSON response

        Raises:
            ApiError: On network failure or non-2xx status
        """
        headers = {**self.headers, 'Accept': 'application/json'}
        files = {
            'file': (payload.file_name or 'file', payload.data, payload.mime_type)
        }
        form_data = {key: self._form_value(value) for key, value in (fields or {}).items()}

        response = self._send(
            'POST',
            self.build_url(path),
            headers=headers,
            files=files,
            data=form_data,
            timeout=self.timeout
        )
        return self._parse_json(response)

    def test_credentials(self) -> bool:
        """
        Check that the configured API key is accepted

        Returns:
            True if a minimal users listing succeeds, False otherwise
        """
        try:
            self.request('GET', '/users', query={'limit': 1})
            return True
        except ApiError as e:
            self.logger.warning(f"Drata credential test failed: {e}")
            return False

    def close_connection(self) -> None:
        """
        Close HTTP session and release resources
        """
        if self.session:
            self.session.close()
            self.session = None

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        if self.session is None:
            self.session = requests.Session()

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise ApiError(
                self._error_message(response),
                status_code=response.status_code,
                response_body=self._safe_body(response)
            )

        return response

    @staticmethod
    def _parse_json(response: requests.Response) -> JSONResponse:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            # Non-JSON success bodies are wrapped as text
            return {'text': response.text}

    @staticmethod
    def _safe_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    @classmethod
    def _error_message(cls, response: requests.Response) -> str:
        body = cls._safe_body(response)
        if isinstance(body, dict):
            for key in ('message', 'error', 'detail'):
                if body.get(key):
                    return str(body[key])
        if isinstance(body, str) and body:
            return body
        return response.reason or f"HTTP {response.status_code}"

    @staticmethod
    def _form_value(value: Any) -> str:
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value)
        return str(value)
