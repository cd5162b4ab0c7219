from __future__ import annotations

import os
import sys
import types
import unittest
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

os.environ["DEFAULT_USER_TOKEN"] = ""

import config  # noqa: E402
import main  # noqa: E402
from errors import ConfigurationError  # noqa: E402


class MainRuntimeAuthTests(unittest.TestCase):
    def test_resolve_user_token_prefers_payload_authorization(self) -> None:
        context = types.SimpleNamespace(request_headers={"Authorization": "Bearer context-token"}, request=None)
        token = main._resolve_user_token({"authorization": "Bearer payload-token"}, context)
        self.assertEqual(token, "Bearer payload-token")

    def test_resolve_user_token_reads_context_request_headers(self) -> None:
        context = types.SimpleNamespace(request_headers={"authorization": "Bearer context-token"}, request=None)
        token = main._resolve_user_token({}, context)
        self.assertEqual(token, "Bearer context-token")

    def test_resolve_user_token_reads_context_request_headers_fallback(self) -> None:
        request = types.SimpleNamespace(headers={"Authorization": "Bearer request-token"})
        context = types.SimpleNamespace(request_headers=None, request=request)
        token = main._resolve_user_token({}, context)
        self.assertEqual(token, "Bearer request-token")

    def test_resolve_user_token_falls_back_to_default_token(self) -> None:
        context = types.SimpleNamespace(request_headers=None, request=None)
        with patch.dict(os.environ, {"DEFAULT_USER_TOKEN": "fallback-token"}, clear=False):
            token = main._resolve_user_token({}, context)
        self.assertEqual(token, "fallback-token")

    @patch("main.run_assistant")
    def test_invoke_uses_resolved_context_token(self, mock_run_assistant) -> None:
        mock_run_assistant.return_value = {
            "text": "You have $180 remaining of $500.",
            "trace_id": "trc_test",
            "kind": "answer",
            "capability_id": "BUDGET_STATUS",
            "confidence": 0.9,
            "tier": "standard",
        }
        payload = {"prompt": "How's my grocery budget?", "user_id": "u-1"}
        context = types.SimpleNamespace(request_headers={"Authorization": "Bearer context-token"}, request=None)

        out = main.invoke(payload, context)

        self.assertEqual(out["result"], "You have $180 remaining of $500.")
        self.assertEqual(out["kind"], "answer")
        self.assertEqual(out["response_meta"]["capability_id"], "BUDGET_STATUS")
        self.assertEqual(out["response_meta"]["guard_failures"], [])
        self.assertEqual(mock_run_assistant.call_count, 1)
        self.assertEqual(mock_run_assistant.call_args.kwargs.get("user_token"), "Bearer context-token")
        self.assertEqual(mock_run_assistant.call_args.kwargs.get("user_id"), "u-1")
        self.assertIsNone(mock_run_assistant.call_args.args[1])

    @patch("main.run_assistant")
    def test_invoke_passes_inline_context(self, mock_run_assistant) -> None:
        mock_run_assistant.return_value = {"text": "ok", "trace_id": "trc_ctx", "kind": "fallback"}
        context_payload = {"budgets": []}

        main.invoke({"prompt": "how am I doing?", "context": context_payload}, None)

        self.assertEqual(mock_run_assistant.call_args.args, ("how am I doing?", context_payload))
        self.assertEqual(mock_run_assistant.call_args.kwargs.get("user_id"), "demo-user")


class StartupTests(unittest.TestCase):
    def test_missing_settings_fail_fast(self) -> None:
        with patch.object(config, "USE_LOCAL_MOCKS", False), patch.object(config, "BEDROCK_MODEL_ID", ""), patch.object(
            config, "BACKEND_API_BASE", ""
        ):
            with self.assertRaises(ConfigurationError) as ctx:
                main.startup()
        self.assertIn("BEDROCK_MODEL_ID", str(ctx.exception))
        self.assertIn("BACKEND_API_BASE", str(ctx.exception))

    @patch("main.default_orchestrator")
    @patch("main.require_runtime_settings")
    def test_startup_loads_catalog(self, mock_require, mock_default) -> None:
        with self.assertLogs("main", level="INFO") as captured:
            main.startup()

        mock_require.assert_called_once_with()
        mock_default.assert_called_once_with()
        self.assertIn("capability catalog loaded", captured.output[0])


if __name__ == "__main__":
    unittest.main()
