"""
REST API client for the Rancher v1 API.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from errors import ResponseError, TransportError
from models import Container, Service

logger = logging.getLogger(__name__)


class RancherRestClient:
    """REST client for Rancher services and their instances."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        timeout_s: int = 60,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Rancher REST client.

        Args:
            access_key: Rancher API access key
            secret_key: Rancher API secret key
            timeout_s: Request timeout in seconds
            session: Optional pre-built session (a fresh one is created otherwise)
        """
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(access_key, secret_key)
        self.session.headers.update({"Accept": "application/json"})

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Execute an HTTP request.

        Args:
            method: HTTP method (GET, POST)
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            Response with a 2xx status

        Raises:
            TransportError: On network failure or a non-2xx status
        """
        try:
            resp = self.session.request(method, url, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}")

        if not 200 <= resp.status_code < 300:
            raise TransportError(
                f"{method} {url} failed ({resp.status_code}): {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    def _decode(self, resp: requests.Response) -> Dict[str, Any]:
        """Decode a JSON object body."""
        try:
            data = resp.json()
        except ValueError as e:
            raise ResponseError(f"Invalid JSON from {resp.url}: {e}")
        if not isinstance(data, dict):
            raise ResponseError(
                f"Expected a JSON object from {resp.url}, got {type(data).__name__}"
            )
        return data

    def get_service(self, url: str) -> Service:
        """
        Fetch a service.

        Args:
            url: Service resource URL

        Returns:
            Service snapshot

        Raises:
            TransportError: If the request fails
            ResponseError: If the body is not a service document
        """
        resp = self._request("GET", url)
        return Service.from_dict(self._decode(resp))

    def list_containers(self, url: str) -> List[Container]:
        """
        List the containers behind a service's instances link.

        Args:
            url: Instances collection URL

        Returns:
            List of Container objects
        """
        resp = self._request("GET", url)
        data = self._decode(resp)
        items = data.get("data") or []
        if not isinstance(items, list):
            raise ResponseError(f"Expected a 'data' list from {url}")
        return [Container.from_dict(item) for item in items]

    def post_action(self, url: str, payload: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Invoke an action URL.

        Args:
            url: Action URL taken from a resource's 'actions' map
            payload: Optional JSON body

        Returns:
            Decoded response body, or an empty dict for an empty body
        """
        logger.debug(f"POST {url}")
        resp = self._request("POST", url, json=payload)
        if not resp.content:
            return {}
        return self._decode(resp)
