import os
from dotenv import load_dotenv

from errors import ConfigurationError

env_path = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


AWS_REGION = os.getenv("AWS_REGION", "us-west-2")
BEDROCK_MODEL_ID = os.getenv("BEDROCK_MODEL_ID", "")
BEDROCK_ESCALATED_MODEL_ID = os.getenv("BEDROCK_ESCALATED_MODEL_ID", "") or BEDROCK_MODEL_ID

BACKEND_API_BASE = os.getenv("BACKEND_API_BASE", "http://localhost:8010")
USE_LOCAL_MOCKS = _env_bool("USE_LOCAL_MOCKS", False)
DEFAULT_USER_TOKEN = os.getenv("DEFAULT_USER_TOKEN", "")

CATALOG_PATH = os.getenv(
    "CATALOG_PATH",
    os.path.join(os.path.dirname(__file__), "catalog", "capabilities_v1.json"),
)

# Input gate
INPUT_MAX_CHARS = max(16, _env_int("INPUT_MAX_CHARS", 2000))
INPUT_REPAIR_ENABLED = _env_bool("INPUT_REPAIR_ENABLED", True)
INPUT_REPAIR_SCORE_MIN = _env_float("INPUT_REPAIR_SCORE_MIN", 0.12)
INPUT_REJECT_SCORE_MIN = _env_float("INPUT_REJECT_SCORE_MIN", 0.45)
INPUT_NORMALIZATION_FORM = os.getenv("INPUT_NORMALIZATION_FORM", "NFC").strip().upper() or "NFC"
if INPUT_NORMALIZATION_FORM not in {"NFC", "NFD", "NFKC", "NFKD"}:
    INPUT_NORMALIZATION_FORM = "NFC"

# Hierarchical router
ROUTER_ACCEPT_THRESHOLD = _env_float("ROUTER_ACCEPT_THRESHOLD", 0.6)
ROUTER_MIN_CONFIDENCE = _env_float("ROUTER_MIN_CONFIDENCE", 0.3)
ROUTER_WEAK_CONFIDENCE = _env_float("ROUTER_WEAK_CONFIDENCE", 0.5)
ROUTER_DISAGREEMENT_GAP = _env_float("ROUTER_DISAGREEMENT_GAP", 0.3)
ROUTER_WEIGHT_PATTERN = _env_float("ROUTER_WEIGHT_PATTERN", 0.4)
ROUTER_WEIGHT_SEMANTIC = _env_float("ROUTER_WEIGHT_SEMANTIC", 0.4)
ROUTER_WEIGHT_GENERATIVE = _env_float("ROUTER_WEIGHT_GENERATIVE", 0.2)
ROUTER_SEMANTIC_TOP_K = max(1, _env_int("ROUTER_SEMANTIC_TOP_K", 3))
ROUTER_MAX_ALTERNATIVES = max(0, _env_int("ROUTER_MAX_ALTERNATIVES", 3))
ROUTER_GENERATIVE_ENABLED = _env_bool("ROUTER_GENERATIVE_ENABLED", True)
ROUTER_GENERATIVE_RATE_LIMIT = max(1, _env_int("ROUTER_GENERATIVE_RATE_LIMIT", 30))
ROUTER_GENERATIVE_RATE_WINDOW_SECONDS = max(1.0, _env_float("ROUTER_GENERATIVE_RATE_WINDOW_SECONDS", 60.0))

# Data-sufficiency gate
ANSWERABILITY_CACHE_TTL_SECONDS = max(1.0, _env_float("ANSWERABILITY_CACHE_TTL_SECONDS", 300.0))
ANSWERABILITY_CACHE_MAX_ENTRIES = max(1, _env_int("ANSWERABILITY_CACHE_MAX_ENTRIES", 512))

# Response cache
RESPONSE_CACHE_ENABLED = _env_bool("RESPONSE_CACHE_ENABLED", True)
RESPONSE_CACHE_TTL_SECONDS = max(1.0, _env_float("RESPONSE_CACHE_TTL_SECONDS", 120.0))
RESPONSE_CACHE_MAX_ENTRIES = max(1, _env_int("RESPONSE_CACHE_MAX_ENTRIES", 256))

# Unknown-query collector
UNKNOWN_LOG_MAX_ENTRIES = max(1, _env_int("UNKNOWN_LOG_MAX_ENTRIES", 1000))
UNKNOWN_LOG_RETENTION_DAYS = max(1, _env_int("UNKNOWN_LOG_RETENTION_DAYS", 30))
UNKNOWN_LOG_RETENTION_FLOOR = max(1, _env_int("UNKNOWN_LOG_RETENTION_FLOOR", 5))
UNKNOWN_LOG_SIMILARITY_MIN = _env_float("UNKNOWN_LOG_SIMILARITY_MIN", 0.8)

# Generation tiers
GENERATION_MAX_ATTEMPTS = max(1, _env_int("GENERATION_MAX_ATTEMPTS", 2))
STANDARD_MAX_TOKENS = max(32, _env_int("STANDARD_MAX_TOKENS", 400))
STANDARD_FACT_BUDGET = max(1, _env_int("STANDARD_FACT_BUDGET", 8))
ESCALATED_MAX_TOKENS = max(32, _env_int("ESCALATED_MAX_TOKENS", 800))
ESCALATED_FACT_BUDGET = max(1, min(3, _env_int("ESCALATED_FACT_BUDGET", 3)))
STRATEGY_DISCLAIMER = os.getenv(
    "STRATEGY_DISCLAIMER",
    "This is educational guidance, not personalized financial advice.",
).strip()

# Observability
PERF_LATENCY_MS_MAX = max(1, _env_int("PERF_LATENCY_MS_MAX", 2000))
PERF_TOKENS_MAX = max(1, _env_int("PERF_TOKENS_MAX", 1000))
PERF_GENERATION_ATTEMPTS_MAX = max(1, _env_int("PERF_GENERATION_ATTEMPTS_MAX", 3))
PERF_EXTERNAL_FAILURES_MAX = max(0, _env_int("PERF_EXTERNAL_FAILURES_MAX", 1))
EVENT_SINK_MODE = os.getenv("EVENT_SINK_MODE", "log").strip().lower()
if EVENT_SINK_MODE not in {"log", "http", "none"}:
    EVENT_SINK_MODE = "log"

# ============================================================================
# TIMEOUT CONFIGURATION (Centralized)
# ============================================================================
BACKEND_TIMEOUT_SECONDS = _env_int("BACKEND_TIMEOUT_SECONDS", 20)
STANDARD_GENERATION_TIMEOUT = _env_float("STANDARD_GENERATION_TIMEOUT", 8.0)
ESCALATED_GENERATION_TIMEOUT = _env_float("ESCALATED_GENERATION_TIMEOUT", 20.0)
ROUTER_GENERATIVE_TIMEOUT = _env_float("ROUTER_GENERATIVE_TIMEOUT", 4.0)

# Bedrock client timeouts
BEDROCK_CONNECT_TIMEOUT = _env_int("BEDROCK_CONNECT_TIMEOUT", 10)
BEDROCK_READ_TIMEOUT = _env_int("BEDROCK_READ_TIMEOUT", 60)

# Worker pools
GENERATION_POOL_SIZE = max(1, _env_int("GENERATION_POOL_SIZE", 8))
EVENT_POOL_SIZE = max(1, _env_int("EVENT_POOL_SIZE", 2))


def require_runtime_settings() -> None:
    """Fail fast when the deployed runtime is missing settings it cannot work without."""
    missing: list[str] = []
    if not os.path.exists(CATALOG_PATH):
        missing.append("CATALOG_PATH")
    if not USE_LOCAL_MOCKS:
        if not BEDROCK_MODEL_ID:
            missing.append("BEDROCK_MODEL_ID")
        if not BACKEND_API_BASE:
            missing.append("BACKEND_API_BASE")
    if EVENT_SINK_MODE == "http" and not BACKEND_API_BASE:
        missing.append("BACKEND_API_BASE")
    if missing:
        raise ConfigurationError(f"missing required settings: {', '.join(sorted(set(missing)))}")
