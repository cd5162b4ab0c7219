from __future__ import annotations

import logging
import os
from typing import Any, Dict

from bedrock_agentcore import BedrockAgentCoreApp
from dotenv import load_dotenv

from catalog import load_capability_catalog
from config import CATALOG_PATH, require_runtime_settings
from graph import default_orchestrator, run_assistant

load_dotenv()

logger = logging.getLogger(__name__)
app = BedrockAgentCoreApp()


def startup() -> None:
    """Fail fast on missing settings or a malformed catalog before serving requests."""
    require_runtime_settings()
    catalog = load_capability_catalog(CATALOG_PATH)
    default_orchestrator()
    logger.info("Startup: capability catalog loaded: version=%s capabilities=%d", catalog.version, len(catalog))


def _authorization_from_context(context: Any | None) -> str:
    if context is None:
        return ""

    request_headers = getattr(context, "request_headers", None)
    if isinstance(request_headers, dict):
        for key, value in request_headers.items():
            if str(key).lower() == "authorization" and isinstance(value, str) and value.strip():
                return value.strip()

    request = getattr(context, "request", None)
    headers = getattr(request, "headers", None) if request is not None else None
    if headers is not None:
        value = headers.get("Authorization") or headers.get("authorization")
        if isinstance(value, str) and value.strip():
            return value.strip()

    return ""


def _resolve_user_token(payload: Dict[str, Any], context: Any | None) -> str:
    payload_token = payload.get("authorization")
    if isinstance(payload_token, str) and payload_token.strip():
        return payload_token.strip()

    context_token = _authorization_from_context(context)
    if context_token:
        return context_token

    return os.getenv("DEFAULT_USER_TOKEN", "")


@app.entrypoint
def invoke(payload: Dict[str, Any], context: Any | None = None) -> Dict[str, Any]:
    prompt = payload.get("prompt", "")
    user_token = _resolve_user_token(payload, context)
    user_id = payload.get("user_id", "demo-user")
    context_payload = payload.get("context") if isinstance(payload.get("context"), dict) else None
    result = run_assistant(prompt, context_payload, user_token=user_token, user_id=user_id)
    return {
        "result": result["text"],
        "trace_id": result["trace_id"],
        "kind": result["kind"],
        "actions": result.get("actions", []),
        "routing_meta": {
            "route": result.get("route"),
            "answerability": result.get("answerability"),
            "input_decision": result.get("input_decision"),
        },
        "response_meta": {
            "capability_id": result.get("capability_id"),
            "confidence": result.get("confidence", 0.0),
            "low_confidence": result.get("low_confidence", False),
            "tier": result.get("tier"),
            "guard_failures": result.get("guard_failures", []),
            "critic": result.get("critic"),
            "safety": result.get("safety"),
            "fallback": result.get("fallback"),
            "latency_ms": result.get("latency_ms", 0),
            "token_count": result.get("token_count", 0),
            "performance_breaches": result.get("performance_breaches", []),
            "external_failures": result.get("external_failures", []),
            "cache_hit": result.get("cache_hit", False),
        },
    }


if __name__ == "__main__":
    startup()
    app.run()
