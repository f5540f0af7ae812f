"""Transport-agnostic JSON-RPC adapter over a ToolRegistry."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .errors import (
    INTERNAL_ERROR,
    AdsMcpError,
    InvalidParams,
    MalformedRequest,
    UnknownMethod,
    ValidationError,
)
from .registry import ToolRegistry

log = logging.getLogger(__name__)

LIST_METHODS = frozenset({"list", "tools/list", "tools.list"})
CALL_METHODS = frozenset({"call", "tools/call", "tools.call"})


def method_of(obj: Any) -> Optional[str]:
    if not isinstance(obj, Mapping):
        return None
    method = obj.get("method")
    return method.strip().lower() if isinstance(method, str) else None


def is_call(obj: Any) -> bool:
    return method_of(obj) in CALL_METHODS


def call_target(obj: Any) -> Optional[str]:
    """Tool name of a call request; top-level ``name`` wins over ``params.name``."""
    if not isinstance(obj, Mapping):
        return None
    params = obj.get("params") if isinstance(obj.get("params"), Mapping) else {}
    return obj.get("name") or params.get("name")


def help_payload() -> Dict[str, Any]:
    return {
        "mcp": True,
        "message": (
            'POST {"jsonrpc":"2.0","id":1,"method":"tools.list"} or '
            '{"jsonrpc":"2.0","id":1,"method":"tools.call","name":"...","arguments":{...}}'
        ),
        "endpoints": {"list": "tools.list / tools/list", "call": "tools.call / tools/call"},
    }


def build_response(_id: Any, result: Optional[Dict[str, Any]] = None,
                   error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    # exactly one of result/error
    body: Dict[str, Any] = {"jsonrpc": "2.0", "id": _id}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result if result is not None else {}
    return body


def build_error(_id: Any, code: int, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    err: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return build_response(_id, error=err)


class RpcAdapter:
    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def handle(self, request: Any, rid: str = "-") -> Dict[str, Any]:
        """Map one decoded request object to a response envelope. Never raises."""
        _id = request.get("id") if isinstance(request, Mapping) else None
        try:
            return build_response(_id, result=self._dispatch(request, rid))
        except AdsMcpError as e:
            return build_response(_id, error=e.to_error())
        except Exception as e:
            log.exception("rpc dispatch error rid=%s", rid)
            return build_error(_id, INTERNAL_ERROR, f"Internal error: {e}")

    def _dispatch(self, request: Any, rid: str) -> Dict[str, Any]:
        if not isinstance(request, Mapping):
            raise MalformedRequest("Invalid Request: expected a JSON object.")
        raw_method = request.get("method")
        if not raw_method or not isinstance(raw_method, str):
            raise MalformedRequest("Missing 'method' in request body.")
        method = method_of(request)

        if method in LIST_METHODS:
            tools = self.registry.list()
            return {"tools": tools, "actions": tools}

        if method in CALL_METHODS:
            return self._call(request, rid)

        raise UnknownMethod(f"Unsupported method: {raw_method}", help_payload())

    def _call(self, request: Mapping[str, Any], rid: str) -> Dict[str, Any]:
        params = request.get("params") if isinstance(request.get("params"), Mapping) else {}
        name = call_target(request)
        if not name:
            raise InvalidParams("Missing 'name' for tools.call.")
        args = request.get("arguments")
        if args is None:
            args = params.get("arguments")
        if args is None:
            args = {}

        log.info("tools/call start name=%s rid=%s", name, rid)
        try:
            res = self.registry.call(name, args)
        except ValidationError as ve:
            log.warning("tools/call invalid_params name=%s rid=%s errors=%s", name, rid, ve.errors)
            raise
        except InvalidParams as e:
            log.warning("tools/call rejected name=%s rid=%s error=%s", name, rid, e)
            raise
        except AdsMcpError as e:
            log.warning("tools/call failed name=%s rid=%s error=%s", name, rid, e)
            raise
        log.info("tools/call ok name=%s rid=%s rows=%d", name, rid, len(res.rows))
        return res.to_result()
