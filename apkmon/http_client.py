"""
HTTP client utilities for apkmon.

Posts collected measurements as JSON to a metrics endpoint.
"""

import json
import ssl
from typing import Any, Dict, List, Optional
from urllib.request import Request, urlopen


class MetricsHttpClient:
    """HTTP client for delivering measurements to a collector server."""

    def __init__(self, server_base: str, timeout: int = 10, verify_tls: bool = True):
        """
        Initialize HTTP client.

        Args:
            server_base: Base URL of the server (e.g., https://server:8000)
            timeout: Request timeout in seconds
            verify_tls: Verify server certificates for HTTPS
        """
        self.server_base = server_base.rstrip("/")
        self.timeout = timeout
        self._ssl_context = self._create_ssl_context(verify_tls)

    @staticmethod
    def _create_ssl_context(verify_tls: bool) -> ssl.SSLContext:
        ssl_context = ssl.create_default_context()
        if not verify_tls:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    def post_json(self, endpoint: str, data: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Make a POST request with JSON data.

        Raises:
            HTTPError: On HTTP errors
            URLError: On connection errors
        """
        url = f"{self.server_base}{endpoint}"
        body = json.dumps(data).encode("utf-8")
        hdrs = {"Content-Type": "application/json"}
        hdrs.update(headers or {})
        req = Request(url, data=body, headers=hdrs, method="POST")

        ssl_context = self._ssl_context if url.startswith("https://") else None

        with urlopen(req, timeout=self.timeout, context=ssl_context) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}

    def send_metrics(self, metrics: List[Dict[str, Any]], token: Optional[str] = None) -> Dict[str, Any]:
        """
        Send measurements to the server.

        Returns:
            Server response, or an empty summary when there is nothing to send
        """
        if not metrics:
            return {"received": 0}

        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return self.post_json("/api/metrics", {"metrics": metrics}, headers)
