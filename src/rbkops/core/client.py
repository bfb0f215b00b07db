"""HTTP request submission for the appliance REST API.

RubrikClient performs one HTTP call per submit(), unwraps the response
envelope and classifies failures into the rbkops error taxonomy. It never
retries: every classified failure is logged and raised to the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import requests

from rbkops.core.auth import Connection
from rbkops.core.endpoints import resolve
from rbkops.core.errors import (
    ApplianceError,
    InvalidReference,
    OperationCancelled,
    PayloadTooLarge,
    RouteNotFound,
    UnknownTransportError,
)
from rbkops.core.jobs import JobHandle

log = logging.getLogger(__name__)

_USER_AGENT = "rbkops/0.1.0"

METHODS = frozenset({"GET", "POST", "PATCH", "DELETE"})
MUTATING_METHODS = frozenset({"POST", "PATCH", "DELETE"})

_ERROR_FIELDS = ("errorType", "message", "cause")
_INVALID_REFERENCE_PREFIX = "invalid managedid"
_ROUTE_NOT_FOUND_TYPES = frozenset({"route_not_found", "route_not_defined"})

_DEFAULT_MAX_PAYLOAD = 4 * 1024 * 1024
_DEFAULT_PAYLOAD_CEILING = 256 * 1024 * 1024
_CHUNK_SIZE = 64 * 1024
_DEFAULT_TIMEOUT_SECONDS = 60

ConfirmFn = Callable[[str, str], bool]


@dataclass(frozen=True)
class Request:
    """A single HTTP call: method, resolved URI, headers and optional body."""

    method: str
    uri: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


class RubrikClient:
    """
    Request submitter bound to one Connection.

    Args:
        connection: Target appliance and session token.
        confirm: Optional gate called as confirm(method, uri) before any
            POST/PATCH/DELETE; returning False cancels the call before any
            network I/O.
        session: Optional requests.Session (mainly for tests).
        max_payload_bytes: Response size limit enforced while streaming. The
            first response that exceeds it raises the limit once, to
            `payload_ceiling`, and the read continues transparently.
        payload_ceiling: Hard upper bound; a body larger than this raises
            PayloadTooLarge.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        confirm: ConfirmFn | None = None,
        session: requests.Session | None = None,
        max_payload_bytes: int = _DEFAULT_MAX_PAYLOAD,
        payload_ceiling: int = _DEFAULT_PAYLOAD_CEILING,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if max_payload_bytes < 1:
            raise ValueError("max_payload_bytes must be >= 1")
        if payload_ceiling < max_payload_bytes:
            raise ValueError("payload_ceiling must be >= max_payload_bytes")
        self.connection = connection
        self.confirm = confirm
        self.max_payload_bytes = max_payload_bytes
        self.payload_ceiling = payload_ceiling
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.verify = connection.verify_ssl

    def __enter__(self) -> RubrikClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _headers(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.connection.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": _USER_AGENT,
        }
        if extra:
            headers.update(extra)
        return headers

    def build_request(
        self,
        uri: str,
        method: str = "GET",
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Request:
        method = method.upper()
        if method not in METHODS:
            raise ValueError(f"Unsupported HTTP method '{method}'")
        return Request(method=method, uri=uri, headers=self._headers(headers), body=body)

    def submit(
        self,
        uri: str,
        method: str = "GET",
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """
        Execute one HTTP call and return the unwrapped payload.

        Returns:
            The `data` member when the JSON envelope has one, otherwise the
            parsed body (or text for non-JSON bodies, None for empty ones).

        Raises:
            OperationCancelled: The confirmation gate declined the call.
            RouteNotFound / InvalidReference / ApplianceError /
            UnknownTransportError: The appliance returned an error status.
            PayloadTooLarge: The body exceeded `payload_ceiling`.
            requests.RequestException: Network-level failure (unmodified).
        """
        req = self.build_request(uri, method, body, headers)

        if req.method in MUTATING_METHODS and self.confirm is not None:
            if not self.confirm(req.method, req.uri):
                log.info("Declined %s %s", req.method, req.uri)
                raise OperationCancelled(f"{req.method} {req.uri} was not confirmed")

        log.debug("%s %s", req.method, req.uri)
        try:
            response = self.session.request(
                req.method,
                req.uri,
                headers=dict(req.headers),
                json=req.body,
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.error("Request %s %s failed: %s", req.method, req.uri, exc)
            raise

        try:
            raw = self._read_body(response, req.uri)
        finally:
            response.close()

        if response.status_code >= 400:
            self._raise_for_error(req, response.status_code, raw)

        return _unwrap(_decode(raw, response))

    def _read_body(self, response: requests.Response, uri: str) -> bytes:
        """Buffer the response body, raising the size limit once when needed."""
        chunks: list[bytes] = []
        total = 0
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            if not chunk:
                continue
            total += len(chunk)
            if total > self.max_payload_bytes:
                if total > self.payload_ceiling:
                    log.error("Response from %s exceeds %d bytes", uri, self.payload_ceiling)
                    raise PayloadTooLarge(uri, self.payload_ceiling)
                log.debug(
                    "Response exceeds %d bytes, raising payload limit to %d",
                    self.max_payload_bytes,
                    self.payload_ceiling,
                )
                self.max_payload_bytes = self.payload_ceiling
            chunks.append(chunk)
        return b"".join(chunks)

    def _raise_for_error(self, req: Request, status: int, raw: bytes) -> None:
        text = raw.decode("utf-8", errors="replace")
        try:
            body = json.loads(text) if text.strip() else None
        except ValueError:
            body = None

        structured = isinstance(body, dict) and any(
            body.get(k) is not None for k in _ERROR_FIELDS
        )
        error_type = body.get("errorType") if structured else None
        message = str(body.get("message") or "") if structured else ""

        if message.lower().startswith(_INVALID_REFERENCE_PREFIX):
            log.error("Invalid object reference in %s %s", req.method, req.uri)
            log.error("Check the object id and the API version for this endpoint.")
            raise InvalidReference(req.uri, body.get("message"))

        if status == 404 and (not structured or error_type in _ROUTE_NOT_FOUND_TYPES):
            version = _version_of(req.uri)
            log.error("Route not found: %s %s", req.method, req.uri)
            log.error("The endpoint may not exist in API version %s.", version)
            raise RouteNotFound(req.uri, version)

        if structured:
            for key in _ERROR_FIELDS:
                if body.get(key) is not None:
                    log.error("%s: %s", key, body[key])
            raise ApplianceError(
                body.get("errorType"),
                body.get("message"),
                body.get("cause"),
                status=status,
            )

        log.error("%s %s failed with HTTP %d", req.method, req.uri, status)
        raise UnknownTransportError(status, text)

    def request(
        self,
        resource: str,
        method: str = "GET",
        *,
        version: str | None = None,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
        **params: Any,
    ) -> Any:
        """Resolve a logical resource and submit the call."""
        uri = resolve(self.connection, resource, version=version, query=query, **params)
        return self.submit(uri, method, body)

    def get_job_status(self, handle: JobHandle) -> Mapping[str, Any]:
        """Return the current status payload for an asynchronous request."""
        return self.submit(handle.status_uri) or {}


def _decode(raw: bytes, response: requests.Response) -> Any:
    if not raw.strip():
        return None
    text = raw.decode(response.encoding or "utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _version_of(uri: str) -> str | None:
    marker = "/api/"
    if marker not in uri:
        return None
    rest = uri.split(marker, 1)[1]
    return rest.split("/", 1)[0] or None
