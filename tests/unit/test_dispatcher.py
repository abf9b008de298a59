"""
Unit tests for the request dispatcher and baseline collector.

Runs against a local aiohttp test server.

Run with: pytest tests/unit/test_dispatcher.py -v
"""

import asyncio
import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer

from apisentinel.core.config import DispatcherSettings
from apisentinel.core.dispatcher import (
    CONNECTION_REFUSED,
    TIMED_OUT,
    BaselineCollector,
    RequestDispatcher,
    build_url,
    normalize_url,
)
from apisentinel.core.models import EndpointDescriptor


async def echo(request: web.Request) -> web.Response:
    raw = await request.text()
    return web.json_response({
        "method": request.method,
        "query": dict(request.query),
        "headers": {k.lower(): v for k, v in request.headers.items()},
        "body": raw,
    })


async def missing(request: web.Request) -> web.Response:
    return web.Response(status=404, text="Not Found")


async def redirect(request: web.Request) -> web.Response:
    raise web.HTTPFound("/echo")


async def slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(text="late")


def make_app() -> web.Application:
    app = web.Application()
    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/missing", missing)
    app.router.add_get("/redirect", redirect)
    app.router.add_get("/slow", slow)
    return app


def unused_port() -> int:
    """Port with nothing listening on it"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestUrlBuilding:
    """Test suite for URL helpers"""

    def test_scheme_defaults_to_https(self):
        """Test scheme-less URLs become https"""
        assert normalize_url("api.example.com/users") == "https://api.example.com/users"
        assert normalize_url("http://api.example.com") == "http://api.example.com"

    def test_query_params_appended(self):
        """Test query parameters are encoded onto the URL"""
        endpoint = EndpointDescriptor(
            url="https://api.example.com/search",
            query_params={"q": "' OR '1'='1", "page": 2, "active": True},
        )

        assert build_url(endpoint) == (
            "https://api.example.com/search?q=%27+OR+%271%27%3D%271&page=2&active=true"
        )

    def test_existing_query_kept(self):
        """Test parameters are appended after an existing query string"""
        endpoint = EndpointDescriptor(url="https://x/a?b=1", query_params={"c": "2"})

        assert build_url(endpoint) == "https://x/a?b=1&c=2"


class TestRequestDispatcher:
    """Test suite for RequestDispatcher"""

    def test_default_headers_overridden(self):
        """Test endpoint headers replace defaults case-insensitively"""
        dispatcher = RequestDispatcher()
        endpoint = EndpointDescriptor(url="https://x", headers={"user-agent": "custom"})

        headers = dispatcher.build_headers(endpoint)

        assert headers == {"Accept": "*/*", "user-agent": "custom"}

    def test_get_carries_no_body(self):
        """Test bodies are only encoded for POST/PUT/PATCH"""
        headers = {}
        endpoint = EndpointDescriptor(url="https://x", method="GET", body={"a": 1})

        assert RequestDispatcher.encode_body(endpoint, headers) is None
        assert headers == {}

    @pytest.mark.asyncio
    async def test_json_body_and_headers(self):
        """Test structured bodies are sent as JSON with default headers"""
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher() as dispatcher:
                endpoint = EndpointDescriptor(
                    url=str(server.make_url("/echo")),
                    method="POST",
                    headers={"Authorization": "Bearer t"},
                    body={"username": "admin"},
                    query_params={"q": "x"},
                )

                result = await dispatcher.send(endpoint)

        assert result.ok
        assert result.response.status == 200
        echoed = result.response.body
        assert echoed["method"] == "POST"
        assert echoed["query"] == {"q": "x"}
        assert echoed["body"] == '{"username": "admin"}'
        assert echoed["headers"]["content-type"] == "application/json"
        assert echoed["headers"]["authorization"] == "Bearer t"
        assert echoed["headers"]["user-agent"] == "API-Sentinel/1.0"
        assert result.response.header("Content-Type").startswith("application/json")

    @pytest.mark.asyncio
    async def test_raw_body_is_form_encoded(self):
        """Test raw string bodies are sent as form data"""
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher() as dispatcher:
                endpoint = EndpointDescriptor(
                    url=str(server.make_url("/echo")),
                    method="PUT",
                    body="user=a&pass=b",
                )

                result = await dispatcher.send(endpoint)

        echoed = result.response.body
        assert echoed["body"] == "user=a&pass=b"
        assert echoed["headers"]["content-type"] == "application/x-www-form-urlencoded"

    @pytest.mark.asyncio
    async def test_error_status_is_a_result(self):
        """Test 4xx responses are captured, not raised"""
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher() as dispatcher:
                result = await dispatcher.send(EndpointDescriptor(url=str(server.make_url("/missing"))))

        assert result.ok
        assert result.response.status == 404
        assert result.response.body == "Not Found"

    @pytest.mark.asyncio
    async def test_redirects_not_followed_when_disabled(self):
        """Test a zero redirect limit returns the redirect itself"""
        settings = DispatcherSettings(max_redirects=0)
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher(settings) as dispatcher:
                result = await dispatcher.send(EndpointDescriptor(url=str(server.make_url("/redirect"))))

        assert result.response.status == 302

    @pytest.mark.asyncio
    async def test_redirects_followed(self):
        """Test redirects are followed by default"""
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher() as dispatcher:
                result = await dispatcher.send(EndpointDescriptor(url=str(server.make_url("/redirect"))))

        assert result.response.status == 200
        assert result.response.body["method"] == "GET"

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """Test a refused connection becomes a classified status-0 result"""
        async with RequestDispatcher() as dispatcher:
            result = await dispatcher.send(EndpointDescriptor(url=f"http://127.0.0.1:{unused_port()}/"))

        assert not result.ok
        assert result.error == CONNECTION_REFUSED
        assert result.response.status == 0
        assert dispatcher.get_statistics() == {"requests": 1, "errors": 1}

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a slow server becomes a timed-out result"""
        settings = DispatcherSettings(timeout=0.1)
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher(settings) as dispatcher:
                result = await dispatcher.send(EndpointDescriptor(url=str(server.make_url("/slow"))))

        assert result.error == TIMED_OUT
        assert result.response.status == 0


class TestBaselineCollector:
    """Test suite for BaselineCollector"""

    @pytest.mark.asyncio
    async def test_collects_status(self):
        """Test the baseline records the unmodified endpoint's status"""
        async with LocalServer(make_app()) as server:
            async with RequestDispatcher() as dispatcher:
                baseline = await BaselineCollector(dispatcher).collect(
                    EndpointDescriptor(url=str(server.make_url("/missing")))
                )

        assert baseline is not None
        assert baseline.status == 404
        assert baseline.elapsed_ms >= 0
        assert baseline.declared_length == len("Not Found")

    @pytest.mark.asyncio
    async def test_transport_failure_means_no_baseline(self):
        """Test a failed baseline request yields None"""
        async with RequestDispatcher() as dispatcher:
            baseline = await BaselineCollector(dispatcher).collect(
                EndpointDescriptor(url=f"http://127.0.0.1:{unused_port()}/")
            )

        assert baseline is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
