from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, timedelta
from typing import Any, Dict
from urllib.parse import urlparse

import requests
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from catalog import CapabilityCatalog
from config import BACKEND_API_BASE, BACKEND_TIMEOUT_SECONDS, DEFAULT_USER_TOKEN, USE_LOCAL_MOCKS
from errors import CapabilityExecutionError, ContextProviderError
from generation import snapshot_facts
from slots import TimeWindow
from snapshot import ContextSnapshot, snapshot_from_payload

logger = logging.getLogger(__name__)


def _hash_payload(payload: Dict[str, Any]) -> str:
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode()).hexdigest()[:12]


def _is_local_backend() -> bool:
    try:
        host = urlparse(BACKEND_API_BASE).hostname or ""
    except ValueError:
        host = ""
    return host in {"localhost", "127.0.0.1"} or host.endswith(".local")


def _should_use_local_mocks() -> bool:
    # Mock data is only allowed for offline localhost development.
    if not USE_LOCAL_MOCKS:
        return False
    return _is_local_backend()


def _auth_headers(token: str) -> Dict[str, str]:
    if not token:
        return {}
    if token.lower().startswith("bearer "):
        return {"Authorization": token}
    return {"Authorization": f"Bearer {token}"}


def _request_json(
    method: str,
    path: str,
    user_token: str,
    *,
    params: Dict[str, Any] | None = None,
    payload: Dict[str, Any] | None = None,
    timeout: int = BACKEND_TIMEOUT_SECONDS,
) -> Dict[str, Any]:
    response = requests.request(
        method=method,
        url=f"{BACKEND_API_BASE}{path}",
        headers=_auth_headers(user_token),
        params=params,
        json=payload,
        timeout=timeout,
    )
    response.raise_for_status()
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected JSON object from {path}, got {type(data).__name__}")
    return data


@retry(
    retry=retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    reraise=True,
)
def _request_json_with_retry(
    method: str,
    path: str,
    user_token: str,
    *,
    params: Dict[str, Any] | None = None,
    payload: Dict[str, Any] | None = None,
    timeout: int = BACKEND_TIMEOUT_SECONDS,
) -> Dict[str, Any]:
    """Retries connection errors and timeouts only; HTTP status errors surface immediately."""
    return _request_json(method, path, user_token, params=params, payload=payload, timeout=timeout)


def _mock_context_payload(as_of: date) -> Dict[str, Any]:
    month_start = as_of.replace(day=1)

    def day(offset: int) -> str:
        return min(as_of, month_start + timedelta(days=offset)).isoformat()

    return {
        "as_of": as_of.isoformat(),
        "budgets": [
            {"budget_id": "bud_groceries", "name": "Groceries", "category": "groceries", "amount": 500, "spent": 320},
            {"budget_id": "bud_dining", "name": "Dining", "category": "dining", "amount": 200, "spent": 145.5},
            {"budget_id": "bud_transport", "name": "Transport", "category": "transportation", "amount": 150, "spent": 60},
        ],
        "goals": [
            {"goal_id": "goal_emergency", "name": "Emergency fund", "category": "emergency", "target_amount": 6000, "current_amount": 2400},
            {"goal_id": "goal_vacation", "name": "Vacation", "category": "travel", "target_amount": 1500, "current_amount": 300},
        ],
        "transactions": [
            {"transaction_id": "txn_1", "amount": 3200, "direction": "credit", "merchant": "Acme Payroll", "category": "income", "account_id": "acc_checking", "posted_on": day(0)},
            {"transaction_id": "txn_2", "amount": 1400, "direction": "debit", "merchant": "Oak Street Apartments", "category": "rent", "account_id": "acc_checking", "posted_on": day(1)},
            {"transaction_id": "txn_3", "amount": 86.4, "direction": "debit", "merchant": "Trader Joe's", "category": "groceries", "account_id": "acc_checking", "posted_on": day(3)},
            {"transaction_id": "txn_4", "amount": 42.1, "direction": "debit", "merchant": "Chipotle", "category": "dining", "account_id": "acc_credit", "posted_on": day(4)},
            {"transaction_id": "txn_5", "amount": 15.99, "direction": "debit", "merchant": "Netflix", "category": "entertainment", "account_id": "acc_credit", "posted_on": day(5)},
            {"transaction_id": "txn_6", "amount": 60, "direction": "debit", "merchant": "Shell", "category": "transportation", "account_id": "acc_credit", "posted_on": day(6)},
        ],
        "recurring_expenses": [
            {"name": "Rent", "amount": 1400, "category": "rent"},
            {"name": "Netflix", "amount": 15.99, "category": "entertainment"},
        ],
        "debts": [
            {"name": "Visa card", "balance": 2300, "apr": 22.9, "minimum_payment": 65},
            {"name": "Car loan", "balance": 8400, "apr": 6.5, "minimum_payment": 310},
        ],
        "accounts": [
            {"account_id": "acc_checking", "name": "Everyday checking", "account_type": "checking", "balance": 2150},
            {"account_id": "acc_savings", "name": "High-yield savings", "account_type": "savings", "balance": 2400},
            {"account_id": "acc_credit", "name": "Visa card", "account_type": "credit", "balance": -2300},
        ],
    }


def fetch_context_snapshot(user_token: str, user_id: str, *, as_of: date | None = None) -> ContextSnapshot:
    """Read-only snapshot of the user's data from the backend (or local mocks)."""
    if _should_use_local_mocks():
        return snapshot_from_payload(_mock_context_payload(as_of or date.today()))
    params: Dict[str, Any] = {"user_id": user_id}
    if as_of is not None:
        params["as_of"] = as_of.isoformat()
    try:
        data = _request_json_with_retry("GET", "/context/snapshot", user_token, params=params)
        return snapshot_from_payload(data)
    except (requests.RequestException, ValueError, ValidationError) as exc:
        logger.warning("Context provider failed: user_id=%s error=%s", user_id, type(exc).__name__)
        raise ContextProviderError(f"context snapshot unavailable: {type(exc).__name__}") from exc


class CapabilityExecutor:
    """Runs one capability against the backend, or computes its facts locally in mock mode."""

    def __init__(
        self,
        catalog: CapabilityCatalog,
        *,
        user_token: str = "",
        local: bool | None = None,
        timeout: int = BACKEND_TIMEOUT_SECONDS,
    ) -> None:
        self._catalog = catalog
        self.user_token = user_token
        self.local = _should_use_local_mocks() if local is None else local
        self.timeout = timeout

    def execute(
        self,
        capability_id: str,
        params: Dict[str, Any],
        snapshot: ContextSnapshot,
        *,
        window: TimeWindow | None = None,
        trace_id: str | None = None,
        user_token: str | None = None,
    ) -> Dict[str, Any]:
        capability = self._catalog.get(capability_id)
        if capability is None:
            raise CapabilityExecutionError(capability_id, "unknown_capability")

        if self.local:
            facts = snapshot_facts(capability, snapshot, params=params, window=window)
            return {
                "capability_id": capability_id,
                "params": params,
                "facts": [fact.model_dump() for fact in facts],
                "source": "local",
            }

        body = {
            "params": params,
            "time_window": window.model_dump(mode="json") if window is not None else None,
            "trace_id": trace_id,
        }
        token = self.user_token if user_token is None else user_token
        try:
            data = _request_json("POST", f"/capabilities/{capability_id}", token, payload=body, timeout=self.timeout)
        except requests.Timeout as exc:
            raise CapabilityExecutionError(capability_id, "backend_timeout", str(exc)) from exc
        except requests.RequestException as exc:
            raise CapabilityExecutionError(capability_id, "backend_unavailable", str(exc)) from exc
        except ValueError as exc:
            raise CapabilityExecutionError(capability_id, "invalid_payload", str(exc)) from exc
        data.setdefault("source", "backend")
        return data


def audit_write(user_id: str, trace_id: str, payload: Dict[str, Any], user_token: str = "") -> Dict[str, Any]:
    if _should_use_local_mocks():
        return {"trace_id": trace_id, "payload_hash": _hash_payload(payload)}
    try:
        body = {
            "trace_id": trace_id,
            "event_type": "pipeline_event",
            "payload": {
                **payload,
                "user_id": user_id,
            },
        }
        return _request_json("POST", "/audit", user_token, payload=body, timeout=10)
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Audit write failed: trace_id=%s error=%s", trace_id, type(exc).__name__)
        return {"trace_id": trace_id, "payload_hash": _hash_payload(payload)}


def audit_event(event: Dict[str, Any]) -> Dict[str, Any]:
    return audit_write(
        str(event.get("user_id") or ""),
        str(event.get("trace_id") or ""),
        event,
        DEFAULT_USER_TOKEN,
    )
