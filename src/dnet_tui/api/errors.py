"""Errors raised by the API client and their operator-facing descriptions."""

from __future__ import annotations

from typing import Optional

NO_TOPOLOGY_HINT = (
    "No topology configured yet. Please load a model first to create a topology."
)
CONNECTION_HINT = (
    "Cannot connect to API server. "
    "Please check your settings and ensure the server is running."
)

_NO_TOPOLOGY_MARKERS = (
    "No topology configured",
    "No topology found",
    "model not loaded",
    "No model loaded",
    "prepare_topology",
    "404",
    "Not Found",
)
_CONNECTION_MARKERS = ("connection", "refused", "error sending request")


class ApiError(Exception):
    """Base error for calls against the dnet API server or a shard."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiConnectionError(ApiError):
    """The server could not be reached (refused, DNS, timeout)."""


class ApiStatusError(ApiError):
    """The server answered with a non-2xx status."""

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"


class ApiResponseError(ApiError):
    """The server answered 2xx but the body did not parse."""


def describe_error(exc: BaseException) -> str:
    """Rewrite an error into the text shown in a view's Error sub-state.

    Connectivity failures and "nothing configured yet" answers get fixed
    hints; everything else is shown as-is.
    """
    if isinstance(exc, ApiConnectionError):
        return CONNECTION_HINT
    text = str(exc)
    if any(marker in text for marker in _NO_TOPOLOGY_MARKERS):
        return NO_TOPOLOGY_HINT
    if any(marker in text.lower() for marker in _CONNECTION_MARKERS):
        return CONNECTION_HINT
    return f"Error: {text}"


def is_connection_hint(message: str) -> bool:
    return message == CONNECTION_HINT


def is_no_topology_hint(message: str) -> bool:
    return message == NO_TOPOLOGY_HINT
