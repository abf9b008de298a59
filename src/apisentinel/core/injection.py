"""
Injection Strategy - Places a payload into copies of an endpoint.

Given an endpoint and a payload, produces an ordered list of variants, each
an independent clone tagged with its injection point. The order is fixed
because the orchestrator only tests a bounded prefix of the variants.
"""

from enum import Enum
from typing import List, Union
from urllib.parse import quote

from .models import EndpointDescriptor, InjectionVariant


BODY_METHODS = ("POST", "PUT", "PATCH")

TEST_HEADER = "X-Test-Input"

# RFC 3986 unreserved marks kept literal in path segments
_URI_COMPONENT_SAFE = "-_.!~*'()"


class InjectLocation(Enum):
    """Where payloads are injected"""
    QUERY = "query"
    BODY = "body"
    HEADER = "header"
    PATH = "path"
    ALL = "all"

    def covers(self, location: "InjectLocation") -> bool:
        return self is InjectLocation.ALL or self is location


def inject_payload(
    endpoint: EndpointDescriptor,
    payload: str,
    location: Union[InjectLocation, str] = InjectLocation.ALL,
) -> List[InjectionVariant]:
    """
    Inject a payload into every applicable position of an endpoint.

    Rules, in emission order:
    1. query: each existing query key, then a new ``q`` key
    2. body: each key of a mapping body, then a new ``input`` key for
       POST/PUT/PATCH (creating the body, or replacing a non-mapping one)
    3. header: one ``X-Test-Input`` header
    4. path: payload URL-encoded and appended to the path
    5. fallback when nothing applied: a new ``test`` query key

    Args:
        endpoint: Source endpoint (never modified)
        payload: Payload string
        location: Injection location (enum or its string value)

    Returns:
        Ordered list of independent InjectionVariant objects (at least one)
    """
    location = InjectLocation(location)
    variants: List[InjectionVariant] = []

    if location.covers(InjectLocation.QUERY):
        for key in endpoint.query_params:
            modified = endpoint.clone()
            modified.query_params[key] = payload
            variants.append(InjectionVariant(modified, f"Query param: {key}"))

        modified = endpoint.clone()
        modified.query_params["q"] = payload
        variants.append(InjectionVariant(modified, "Query param: q (injected)"))

    if location.covers(InjectLocation.BODY):
        if isinstance(endpoint.body, dict):
            for key in endpoint.body:
                modified = endpoint.clone()
                modified.body[key] = payload
                variants.append(InjectionVariant(modified, f"Body param: {key}"))

        if endpoint.method in BODY_METHODS:
            modified = endpoint.clone()
            if isinstance(modified.body, dict):
                modified.body["input"] = payload
            else:
                modified.body = {"input": payload}
            variants.append(InjectionVariant(modified, "Body param: input (injected)"))

    if location.covers(InjectLocation.HEADER):
        modified = endpoint.clone()
        modified.headers[TEST_HEADER] = payload
        variants.append(InjectionVariant(modified, f"Header: {TEST_HEADER} (injected)"))

    if location.covers(InjectLocation.PATH):
        modified = endpoint.clone()
        base = modified.url if modified.url.endswith("/") else modified.url + "/"
        modified.url = base + quote(payload, safe=_URI_COMPONENT_SAFE)
        variants.append(InjectionVariant(modified, "URL path (appended)"))

    if not variants:
        modified = endpoint.clone()
        modified.query_params["test"] = payload
        variants.append(InjectionVariant(modified, "Query param: test (fallback)"))

    return variants
