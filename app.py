from __future__ import annotations

import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from mcp_ads import APP_NAME, APP_VER
from mcp_ads.ads_api import AdsSearchClient
from mcp_ads.config import AdsSettings
from mcp_ads.credentials import ServiceAccountTokenProvider
from mcp_ads.errors import MALFORMED_REQUEST, UNAUTHORIZED
from mcp_ads.rpc import LIST_METHODS, RpcAdapter, build_error, call_target, help_payload, is_call, method_of
from mcp_ads.tools import build_registry

# ---------- Logging & shared-secret ----------
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
log = logging.getLogger(APP_NAME)
MCP_SHARED_KEY = os.getenv("MCP_SHARED_KEY", "").strip()
RPC_PATHS = ("/", "/api/mcp")


# ---------- Ads client, registry & adapter (built once) ----------
def _default_ads() -> AdsSearchClient:
    settings = AdsSettings.from_env()
    return AdsSearchClient(settings, ServiceAccountTokenProvider(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.ads.close()
    log.info("ads http client closed")


# ---------- FastAPI base ----------
app = FastAPI(title=APP_NAME, version=APP_VER, lifespan=lifespan)
app.state.ads = _default_ads()
app.state.adapter = RpcAdapter(build_registry(app.state.ads))

# 1) CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # must be False when allow_origins=["*"]
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# 2) Request ID (make a request-scoped id available to everything)
class RequestId(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = rid
        response = await call_next(request)
        # Echo so clients can correlate
        response.headers["X-Request-ID"] = rid
        return response


# 3) RPC audit logging (method, UA and auth header presence; never the secrets)
class RPCAudit(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method == "POST" and request.url.path in RPC_PATHS:
            body_bytes = await request.body()
            method = "unknown"
            try:
                payload = json.loads(body_bytes.decode("utf-8") or "{}")
                method = "batch" if isinstance(payload, list) else (method_of(payload) or "missing")
            except ValueError:
                pass

            auth = request.headers.get("authorization", "")
            log.info(
                "RPC method=%s ua=%s key:x=%s bearer=%s rid=%s",
                method,
                request.headers.get("user-agent", ""),
                "X-MCP-Key" in request.headers,
                auth.lower().startswith("bearer "),
                getattr(request.state, "request_id", "-"),
            )

        return await call_next(request)


# added last = runs first, so RPCAudit sees the request id
app.add_middleware(RPCAudit)
app.add_middleware(RequestId)


# ---------- Auth ----------
def _is_authed(request: Request) -> bool:
    """Shared-secret auth check for tool calls."""
    if not MCP_SHARED_KEY:
        return True  # No shared key configured => effectively open
    auth_hdr = request.headers.get("Authorization", "")
    bearer_ok = auth_hdr.lower().startswith("bearer ") and auth_hdr.split(" ", 1)[1].strip() == MCP_SHARED_KEY
    xhdr_ok = request.headers.get("X-MCP-Key", "") == MCP_SHARED_KEY
    return bearer_ok or xhdr_ok


# ---------- Health & discovery ----------
@app.get("/", include_in_schema=False)
@app.get("/api/mcp", include_in_schema=False)
async def root_get(request: Request):
    if request.query_params.get("method", "").lower() in LIST_METHODS:
        tools = request.app.state.adapter.registry.list()
        return JSONResponse({"tools": tools, "actions": tools})
    return JSONResponse(help_payload())


@app.head("/", include_in_schema=False)
async def root_head():
    return PlainTextResponse("")


@app.get("/.well-known/mcp.json")
def mcp_discovery(request: Request):
    if MCP_SHARED_KEY:
        auth = {
            "type": "shared-secret",
            "tokenHeader": "Authorization",  # prefer Bearer
            "scheme": "Bearer",
            "altHeaders": ["X-MCP-Key"],
        }
    else:
        auth = {"type": "none"}

    return JSONResponse({
        "name": APP_NAME,
        "version": APP_VER,
        "auth": auth,
        "endpoints": {"rpc": "/", "alt": "/api/mcp"},
        "tools": request.app.state.adapter.registry.list(),
    })


@app.get("/mcp/tools")
def mcp_tools(request: Request):
    return JSONResponse({"tools": request.app.state.adapter.registry.list()})


# ---------- JSON-RPC ----------
async def _handle_single_rpc(obj: Any, request: Request, headers: Dict[str, str]) -> Dict[str, Any]:
    rid = getattr(request.state, "request_id", "-")

    if is_call(obj) and not _is_authed(request):
        auth_hdr = request.headers.get("Authorization", "")
        log.warning(
            "401 on tools/call tool=%s has_bearer=%s has_xmcp=%s rid=%s",
            call_target(obj), auth_hdr.lower().startswith("bearer "), "X-MCP-Key" in request.headers, rid,
        )
        headers["WWW-Authenticate"] = f'Bearer realm="{APP_NAME}"'
        return build_error(obj.get("id"), UNAUTHORIZED, "Unauthorized")

    # tool handlers block on the Ads API
    return await run_in_threadpool(request.app.state.adapter.handle, obj, rid)


@app.post("/")
@app.post("/api/mcp")
async def rpc(request: Request):
    """JSON-RPC endpoint that supports single objects and batches."""
    headers: Dict[str, str] = {}
    rid = getattr(request.state, "request_id", "-")

    try:
        payload = await request.json()
    except ValueError:
        log.warning("unparsable RPC body rid=%s", rid)
        return JSONResponse(build_error(None, MALFORMED_REQUEST, "Request body is not valid JSON."))

    # Batch
    if isinstance(payload, list):
        if not payload:
            return JSONResponse(build_error(None, MALFORMED_REQUEST, "Empty batch."))
        responses: List[Dict[str, Any]] = []
        for entry in payload:
            responses.append(await _handle_single_rpc(entry, request, headers))
        return JSONResponse(responses, headers=headers)

    # Single
    resp = await _handle_single_rpc(payload, request, headers)
    return JSONResponse(resp, headers=headers)


# ---------- Local dev ----------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
