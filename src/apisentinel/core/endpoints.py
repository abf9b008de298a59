"""
Endpoint input boundary - Validation of endpoint descriptors from collaborators.

Parsers (Postman collections, CURL commands, hand-written lists) hand over
plain mappings. This module validates them with pydantic and converts them
to EndpointDescriptor objects, so the orchestrator never receives malformed
input.
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import EndpointDescriptor


class EndpointParseError(ValueError):
    """Raised when endpoint input cannot be turned into descriptors"""
    pass


class EndpointInput(BaseModel):
    """Schema of one endpoint descriptor as supplied by a parser"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    method: str = "GET"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Union[Dict[str, Any], List[Any], str, None] = None
    query_params: Dict[str, Any] = Field(default_factory=dict, alias="queryParams")

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value):
        if value is None or value == "":
            return "GET"
        return str(value).strip().upper()

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be empty")
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_headers(cls, value):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(key): "" if item is None else str(item) for key, item in value.items()}
        return value

    @field_validator("query_params", mode="before")
    @classmethod
    def _default_query(cls, value):
        return {} if value is None else value

    def to_descriptor(self) -> EndpointDescriptor:
        return EndpointDescriptor(
            name=self.name,
            method=self.method,
            url=self.url,
            headers=dict(self.headers),
            body=self.body,
            query_params=dict(self.query_params),
        )


def parse_endpoints(data: Union[str, Dict[str, Any], Iterable[Dict[str, Any]]]) -> List[EndpointDescriptor]:
    """
    Validate endpoint input and convert it to descriptors.

    Args:
        data: JSON text, a single endpoint mapping, a list of mappings, or a
            mapping with an ``endpoints`` list

    Returns:
        List of EndpointDescriptor objects (never empty)

    Raises:
        EndpointParseError: If the input is not valid endpoint data
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise EndpointParseError(f"Endpoint list is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data["endpoints"] if "endpoints" in data else [data]

    if not isinstance(data, (list, tuple)):
        raise EndpointParseError(
            f"Expected a list of endpoints, got {type(data).__name__}"
        )

    descriptors = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise EndpointParseError(
                f"Endpoint #{index + 1} must be an object, got {type(item).__name__}"
            )
        try:
            descriptors.append(EndpointInput.model_validate(item).to_descriptor())
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'endpoint'}: {err['msg']}"
                for err in e.errors()
            )
            raise EndpointParseError(f"Endpoint #{index + 1} is invalid: {problems}") from e

    if not descriptors:
        raise EndpointParseError("Could not extract any API endpoints from the provided input")

    return descriptors


def endpoint_from_url(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    name: Optional[str] = None,
) -> EndpointDescriptor:
    """
    Build a descriptor from a full URL, moving its query string into
    ``query_params``.

    Args:
        url: Target URL, optionally with a query string
        method: HTTP method
        headers: Request headers
        body: Request body
        name: Display name (defaults to the URL as given)

    Returns:
        EndpointDescriptor
    """
    if not url or not url.strip():
        raise EndpointParseError("URL required")

    url = url.strip()
    parts = urlsplit(url)
    query_params = dict(parse_qsl(parts.query, keep_blank_values=True))
    base_url = urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")) if parts.netloc else url.split("?", 1)[0]

    return EndpointInput(
        name=name or url,
        method=method,
        url=base_url,
        headers=headers or {},
        body=body,
        query_params=query_params,
    ).to_descriptor()
