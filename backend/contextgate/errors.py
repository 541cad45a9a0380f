"""Error taxonomy for the gateway.

Each HTTP-facing error carries the status code it maps to and a message that is
safe to show the caller. Messages never include tokens or provider responses.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for errors that end an HTTP request."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class InvalidState(GatewayError):
    """OAuth callback state is missing or does not match the saved value."""

    status_code = 400
    public_message = "Invalid or missing OAuth state"


class TokenExchangeFailed(GatewayError):
    """GitHub rejected the authorization code exchange."""

    status_code = 500
    public_message = "OAuth token exchange failed"


class MissingToken(GatewayError):
    status_code = 401
    public_message = "Missing GitHub token"


class InvalidToken(GatewayError):
    status_code = 401
    public_message = "Invalid GitHub token"


class MalformedPayload(GatewayError):
    status_code = 400
    public_message = "Invalid payload: messages array missing"


class UpstreamUnreachable(GatewayError):
    status_code = 500
    public_message = "Upstream completion API unreachable"


class RetrievalError(Exception):
    """The retrieval backend failed to answer a query."""


class JsonRpcError(Exception):
    """A tool-protocol failure rendered as a JSON-RPC error object."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}
