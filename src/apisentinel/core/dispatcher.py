"""
Request Dispatcher - Sends probe requests and captures every outcome.

The dispatcher is the only component that talks to the target. Every HTTP
status code is a valid result here; interpretation happens in the analyzers.
Transport failures (refused connections, timeouts, DNS/TLS errors) are
captured and classified instead of raised, so one bad probe never aborts
a scan.

Also contains the Baseline Collector, which dispatches the unmodified
endpoint once to obtain reference values for differential analysis.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import aiohttp
import structlog

from .config import DispatcherSettings
from .injection import BODY_METHODS
from .models import Baseline, EndpointDescriptor, ResponseCapture


CONNECTION_REFUSED = "Connection refused - server may be down"
TIMED_OUT = "Request timed out"

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class DispatchResult:
    """Outcome of one dispatched request"""
    response: ResponseCapture
    elapsed_ms: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_url(url: str) -> str:
    """Make a URL absolute, defaulting the scheme to https"""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url.lstrip("/")
    return url


def build_url(endpoint: EndpointDescriptor) -> str:
    """
    Build the absolute request URL including query parameters.

    Args:
        endpoint: Endpoint to dispatch

    Returns:
        Absolute URL string
    """
    url = normalize_url(endpoint.url)
    if endpoint.query_params:
        params = {
            key: value if isinstance(value, (str, list, tuple)) else _stringify(value)
            for key, value in endpoint.query_params.items()
        }
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{urlencode(params, doseq=True)}"
    return url


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def classify_error(error: BaseException, max_redirects: int = 5) -> str:
    """
    Turn a transport exception into a readable error message.

    Args:
        error: Exception raised while sending the request
        max_redirects: Redirect limit in force (for the message)

    Returns:
        Classified error message
    """
    if isinstance(error, asyncio.TimeoutError):
        return TIMED_OUT
    if isinstance(error, aiohttp.ClientConnectorError) and isinstance(error.os_error, ConnectionRefusedError):
        return CONNECTION_REFUSED
    if isinstance(error, ConnectionRefusedError):
        return CONNECTION_REFUSED
    if isinstance(error, aiohttp.TooManyRedirects):
        return f"Too many redirects (limit {max_redirects})"
    return str(error) or type(error).__name__


class RequestDispatcher:
    """
    Asynchronous HTTP dispatcher built on aiohttp.

    Features:
    1. Fixed timeout and bounded redirect following
    2. Default identifying User-Agent / Accept headers
    3. Body encoding inferred from the body shape
    4. Transport errors captured as status-0 responses

    Example:
        >>> async with RequestDispatcher() as dispatcher:
        ...     result = await dispatcher.send(endpoint)
        >>> result.response.status, result.elapsed_ms
    """

    def __init__(self, settings: Optional[DispatcherSettings] = None):
        """
        Initialize the dispatcher.

        Args:
            settings: HTTP policy (uses defaults if None)
        """
        self.settings = settings or DispatcherSettings()
        self._session: Optional[aiohttp.ClientSession] = None

        # Statistics
        self.request_count = 0
        self.error_count = 0

        self.logger = structlog.get_logger(__name__)

    async def __aenter__(self) -> "RequestDispatcher":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
            )
        return self._session

    async def close(self):
        """Close the underlying HTTP session"""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def build_headers(self, endpoint: EndpointDescriptor) -> Dict[str, str]:
        """Merge default headers with the endpoint's own (endpoint wins)"""
        headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": self.settings.accept,
        }
        for key, value in endpoint.headers.items():
            for existing in list(headers):
                if existing.lower() == key.lower():
                    del headers[existing]
            headers[key] = value
        return headers

    @staticmethod
    def encode_body(endpoint: EndpointDescriptor, headers: Dict[str, str]) -> Optional[bytes]:
        """
        Encode the request body and infer its content type.

        Only POST/PUT/PATCH requests carry a body. Structured bodies are
        sent as JSON, raw strings as form data, unless a Content-Type was
        set explicitly.

        Args:
            endpoint: Endpoint being dispatched
            headers: Outgoing headers (Content-Type added in place)

        Returns:
            Encoded body, or None when no body is sent
        """
        if endpoint.body is None or endpoint.method not in BODY_METHODS:
            return None

        structured = not isinstance(endpoint.body, str)
        if not any(key.lower() == "content-type" for key in headers):
            headers["Content-Type"] = JSON_CONTENT_TYPE if structured else FORM_CONTENT_TYPE

        if structured:
            return json.dumps(endpoint.body, ensure_ascii=False).encode("utf-8")
        return endpoint.body.encode("utf-8")

    async def send(self, endpoint: EndpointDescriptor) -> DispatchResult:
        """
        Send one request for an endpoint.

        Never raises for request failures: errors come back as a
        DispatchResult with a status-0 response and a classified message.

        Args:
            endpoint: Endpoint to dispatch

        Returns:
            DispatchResult with the captured response and timing
        """
        start = time.monotonic()
        self.request_count += 1

        try:
            url = build_url(endpoint)
            headers = self.build_headers(endpoint)
            data = self.encode_body(endpoint, headers)
            session = await self._ensure_session()

            self.logger.debug("request_sending", method=endpoint.method, url=url)

            kwargs: Dict[str, Any] = {
                "headers": headers,
                "data": data,
                "allow_redirects": self.settings.max_redirects > 0,
                "max_redirects": self.settings.max_redirects,
            }
            if not self.settings.verify_ssl:
                kwargs["ssl"] = False
            if self.settings.proxy:
                kwargs["proxy"] = self.settings.proxy

            async with session.request(endpoint.method, url, **kwargs) as resp:
                raw = await resp.read()
                capture = self._capture(resp, raw)

        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            message = classify_error(e, self.settings.max_redirects)
            self.error_count += 1

            self.logger.debug(
                "request_failed",
                method=endpoint.method,
                url=endpoint.url,
                error=message,
                elapsed_ms=elapsed_ms,
            )

            return DispatchResult(
                response=ResponseCapture(
                    status=0,
                    headers={},
                    body=message,
                    elapsed_ms=elapsed_ms,
                    error=message,
                ),
                elapsed_ms=elapsed_ms,
                error=message,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        capture.elapsed_ms = elapsed_ms

        self.logger.debug(
            "response_received",
            status=capture.status,
            elapsed_ms=elapsed_ms,
            size=capture.size,
        )

        return DispatchResult(response=capture, elapsed_ms=elapsed_ms)

    @staticmethod
    def _capture(resp: aiohttp.ClientResponse, raw: bytes) -> ResponseCapture:
        headers: Dict[str, str] = {}
        for key, value in resp.headers.items():
            name = key.lower()
            headers[name] = f"{headers[name]}, {value}" if name in headers else value

        try:
            text = raw.decode(resp.charset or "utf-8", errors="replace")
        except LookupError:
            text = raw.decode("utf-8", errors="replace")

        body: Any = text
        if "json" in headers.get("content-type", "").lower() and text.strip():
            try:
                body = json.loads(text)
            except ValueError:
                body = text

        return ResponseCapture(status=resp.status, headers=headers, body=body)

    def get_statistics(self) -> Dict[str, int]:
        return {
            "requests": self.request_count,
            "errors": self.error_count,
        }


class BaselineCollector:
    """
    Captures the reference response of an unmodified endpoint.

    Failure is never fatal: without a baseline the analyzers simply skip
    their baseline-dependent checks.
    """

    def __init__(self, dispatcher: RequestDispatcher):
        self.dispatcher = dispatcher
        self.logger = structlog.get_logger(__name__)

    async def collect(self, endpoint: EndpointDescriptor) -> Optional[Baseline]:
        """
        Dispatch the endpoint once and record status, time and length.

        Args:
            endpoint: Unmodified endpoint

        Returns:
            Baseline, or None if the request failed
        """
        try:
            result = await self.dispatcher.send(endpoint)
        except Exception as e:
            self.logger.warning("baseline_unavailable", url=endpoint.url, error=str(e))
            return None

        if not result.ok:
            self.logger.warning("baseline_unavailable", url=endpoint.url, error=result.error)
            return None

        try:
            declared_length = int(result.response.header("content-length", "0") or 0)
        except ValueError:
            declared_length = 0

        baseline = Baseline(
            status=result.response.status,
            elapsed_ms=result.elapsed_ms,
            declared_length=declared_length,
        )
        self.logger.debug(
            "baseline_captured",
            url=endpoint.url,
            status=baseline.status,
            elapsed_ms=baseline.elapsed_ms,
        )
        return baseline
