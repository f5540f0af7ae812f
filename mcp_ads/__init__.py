"""Read-only Google Ads reporting tools behind a JSON-RPC endpoint."""

APP_NAME = "mcp-ads"
APP_VER  = "0.1.0"
