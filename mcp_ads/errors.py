from __future__ import annotations

from typing import Any, Dict, List, Optional

# JSON-RPC error codes
MALFORMED_REQUEST = -32600
METHOD_NOT_FOUND  = -32601
INVALID_PARAMS    = -32602
INTERNAL_ERROR    = -32603
UPSTREAM_FAILURE  = -32000
UNAUTHORIZED      = -32001


class AdsMcpError(Exception):
    """Base for every error that maps onto a JSON-RPC error envelope."""

    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_error(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            err["data"] = self.data
        return err


class MalformedRequest(AdsMcpError):
    code = MALFORMED_REQUEST


class UnknownMethod(AdsMcpError):
    code = METHOD_NOT_FOUND


class InvalidParams(AdsMcpError):
    code = INVALID_PARAMS


class UnknownOperation(InvalidParams):
    def __init__(self, name: Any):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ValidationError(InvalidParams):
    """Arguments did not match the tool's input schema.

    ``errors`` holds one ``{"field", "message", "type"}`` entry per problem;
    ``field`` is a dotted path such as ``dateRange.startDate``.
    """

    def __init__(self, errors: List[Dict[str, str]]):
        fields = ", ".join(e["field"] or "<arguments>" for e in errors)
        super().__init__(f"Invalid params: {fields}", {"errors": errors})
        self.errors = errors


class UpstreamError(AdsMcpError):
    code = UPSTREAM_FAILURE

    def __init__(self, status: Optional[int], detail: str):
        label = f"Google Ads API error {status}" if status is not None else "Google Ads API error"
        super().__init__(f"{label}: {detail}", {"status": status, "detail": detail})
        self.status = status
        self.detail = detail


class CredentialError(AdsMcpError):
    code = UPSTREAM_FAILURE


class ConfigError(AdsMcpError):
    code = UPSTREAM_FAILURE
