from __future__ import annotations

import logging
import threading
from typing import Any, Dict

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from config import AWS_REGION, BEDROCK_CONNECT_TIMEOUT, BEDROCK_READ_TIMEOUT
from errors import GenerationError

from .contracts import GenerationRequest, GenerationResult, GenerationTier

logger = logging.getLogger(__name__)

_CLIENT_LOCK = threading.Lock()
_CLIENTS: Dict[str, Any] = {}


def _bedrock_client(region: str) -> Any:
    with _CLIENT_LOCK:
        client = _CLIENTS.get(region)
        if client is None:
            client = boto3.client(
                "bedrock-runtime",
                region_name=region,
                config=Config(
                    connect_timeout=BEDROCK_CONNECT_TIMEOUT,
                    read_timeout=BEDROCK_READ_TIMEOUT,
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )
            _CLIENTS[region] = client
        return client


def _extract_text_from_converse_payload(payload: Dict[str, Any]) -> str:
    output = payload.get("output") or {}
    message = output.get("message") or {}
    content = message.get("content") or []
    texts: list[str] = []
    if isinstance(content, list):
        for item in content:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                texts.append(item["text"])
    return "\n".join(texts).strip()


def _extract_token_count(payload: Dict[str, Any]) -> int:
    usage = payload.get("usage") or {}
    for key in ("totalTokens", "outputTokens"):
        value = usage.get(key)
        if isinstance(value, (int, float)) and value >= 0:
            return int(value)
    return 0


class BedrockConverseGenerator:
    """Generation function backed by the Bedrock Runtime converse API."""

    def __init__(self, model_id: str, *, tier: GenerationTier, region: str = AWS_REGION) -> None:
        self.model_id = (model_id or "").strip()
        self.tier = tier
        self.region = region

    def __call__(self, request: GenerationRequest) -> GenerationResult:
        if not self.model_id:
            raise GenerationError("model_not_configured", tier=self.tier)
        try:
            response = _bedrock_client(self.region).converse(
                modelId=self.model_id,
                messages=[{"role": "user", "content": [{"text": request.prompt}]}],
                inferenceConfig={"temperature": 0.0, "topP": 0.01, "maxTokens": request.max_tokens},
            )
        except (BotoCoreError, ClientError) as exc:
            raise GenerationError(f"bedrock_invoke_error:{type(exc).__name__}", tier=self.tier) from exc

        text = _extract_text_from_converse_payload(response)
        return GenerationResult(
            text=text,
            token_count=_extract_token_count(response),
            tier=self.tier,
            model_id=self.model_id,
        )
