from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, TypedDict

from langgraph.graph import END, StateGraph
from pydantic import ValidationError

from answerability import AnswerabilityResult, DataSufficiencyGate
from catalog import CapabilityCatalog, CapabilitySpec, load_capability_catalog
from config import (
    ANSWERABILITY_CACHE_MAX_ENTRIES,
    ANSWERABILITY_CACHE_TTL_SECONDS,
    BEDROCK_ESCALATED_MODEL_ID,
    BEDROCK_MODEL_ID,
    CATALOG_PATH,
    ESCALATED_FACT_BUDGET,
    ESCALATED_GENERATION_TIMEOUT,
    ESCALATED_MAX_TOKENS,
    EVENT_SINK_MODE,
    GENERATION_MAX_ATTEMPTS,
    INPUT_MAX_CHARS,
    INPUT_NORMALIZATION_FORM,
    INPUT_REJECT_SCORE_MIN,
    INPUT_REPAIR_ENABLED,
    INPUT_REPAIR_SCORE_MIN,
    RESPONSE_CACHE_ENABLED,
    RESPONSE_CACHE_MAX_ENTRIES,
    RESPONSE_CACHE_TTL_SECONDS,
    STANDARD_FACT_BUDGET,
    STANDARD_GENERATION_TIMEOUT,
    STANDARD_MAX_TOKENS,
    STRATEGY_DISCLAIMER,
    UNKNOWN_LOG_MAX_ENTRIES,
    UNKNOWN_LOG_RETENTION_DAYS,
    UNKNOWN_LOG_RETENTION_FLOOR,
    UNKNOWN_LOG_SIMILARITY_MIN,
)
from errors import CapabilityExecutionError, ContextProviderError, GenerationError
from fallback import FallbackAction, FallbackGenerator, FallbackResponse, UnknownQueryCollector
from generation import (
    BedrockConverseGenerator,
    Fact,
    GenerationFunction,
    GenerationRequest,
    build_answer_prompt,
    build_fact_pack,
    call_generation,
    template_generation,
)
from intake import InputDecisionV1, apply_utterance_gate
from observability import (
    EventDispatcher,
    HttpAuditSink,
    LoggingEventSink,
    PerformanceMonitor,
    PipelineEventV1,
    SafetyClassifier,
)
from response import (
    CANCELLED_MESSAGE,
    HANDOFF_ACTION,
    AssistantResponse,
    question_actions,
    render_fallback_text,
    slot_actions,
)
from router import HierarchicalRouter, RouteDecisionV1, build_clarifying_question
from slots import SlotResolver, TimeWindow, build_slot_question
from snapshot import ContextSnapshot, empty_snapshot, snapshot_from_payload
from tools import CapabilityExecutor, audit_event, fetch_context_snapshot
from ttl_cache import TTLCache
from validation import CascadeCritic, CriticReport, GeneratedAnswer, GuardBatteryReport, run_guard_battery

logger = logging.getLogger(__name__)

PIPELINE_ERROR_MESSAGE = "Something went wrong while answering. Please try again in a moment."


class AssistantState(TypedDict, total=False):
    trace_id: str
    user_id: str
    user_token: str
    raw_utterance: Any
    utterance: str
    snapshot: ContextSnapshot
    cancel_event: threading.Event | None
    started_at: float
    input_decision: InputDecisionV1 | None
    cache_key: tuple[str, str] | None
    cache_hit: bool
    route: RouteDecisionV1 | None
    capability: CapabilitySpec | None
    window: TimeWindow | None
    answerability: AnswerabilityResult | None
    execution_payload: Dict[str, Any]
    facts: list[Fact]
    answer: GeneratedAnswer | None
    guard_report: GuardBatteryReport | None
    critic: CriticReport | None
    guard_failures: list[str]
    fallback_reason: str
    token_count: int
    generation_attempts: int
    external_failures: list[str]
    response: AssistantResponse | None


def _new_trace_id() -> str:
    return f"trc_{uuid.uuid4().hex[:8]}"


def _cache_key(utterance: str, snapshot: ContextSnapshot) -> tuple[str, str]:
    return (" ".join(utterance.lower().split()), snapshot.content_fingerprint())


def _merge_failures(existing: list[str], new: tuple[str, ...] | list[str]) -> list[str]:
    merged = list(existing)
    for code in new:
        if code not in merged:
            merged.append(code)
    return merged


class AssistantOrchestrator:
    """Runs one utterance through intake, routing, answerability, generation, validation and fallback.

    Every collaborator is an instance owned by the orchestrator; the only state shared
    between requests lives in the bounded caches and the unknown-query log. ``run``
    always returns an ``AssistantResponse``.
    """

    def __init__(
        self,
        catalog: CapabilityCatalog,
        *,
        router: HierarchicalRouter | None = None,
        gate: DataSufficiencyGate | None = None,
        slot_resolver: SlotResolver | None = None,
        critic: CascadeCritic | None = None,
        fallback_generator: FallbackGenerator | None = None,
        executor: CapabilityExecutor | None = None,
        standard_generate: GenerationFunction | None = None,
        escalated_generate: GenerationFunction | None = None,
        safety: SafetyClassifier | None = None,
        monitor: PerformanceMonitor | None = None,
        dispatcher: EventDispatcher | None = None,
        response_cache: TTLCache[AssistantResponse] | None = None,
        standard_timeout: float = STANDARD_GENERATION_TIMEOUT,
        escalated_timeout: float = ESCALATED_GENERATION_TIMEOUT,
        max_attempts: int = GENERATION_MAX_ATTEMPTS,
        standard_max_tokens: int = STANDARD_MAX_TOKENS,
        escalated_max_tokens: int = ESCALATED_MAX_TOKENS,
        standard_fact_budget: int = STANDARD_FACT_BUDGET,
        escalated_fact_budget: int = ESCALATED_FACT_BUDGET,
        disclaimer: str = STRATEGY_DISCLAIMER,
    ) -> None:
        self.catalog = catalog
        self.slot_resolver = slot_resolver or SlotResolver()
        self.router = router or HierarchicalRouter(
            catalog,
            slot_resolver=self.slot_resolver,
            generate=standard_generate,
        )
        self.gate = gate or DataSufficiencyGate(
            catalog,
            cache_ttl_seconds=ANSWERABILITY_CACHE_TTL_SECONDS,
            cache_max_entries=ANSWERABILITY_CACHE_MAX_ENTRIES,
        )
        self.critic = critic or CascadeCritic()
        if fallback_generator is None:
            fallback_generator = FallbackGenerator(
                catalog,
                self.gate,
                UnknownQueryCollector(
                    max_entries=UNKNOWN_LOG_MAX_ENTRIES,
                    retention_days=UNKNOWN_LOG_RETENTION_DAYS,
                    retention_floor=UNKNOWN_LOG_RETENTION_FLOOR,
                    similarity_min=UNKNOWN_LOG_SIMILARITY_MIN,
                ),
            )
        self.fallback_generator = fallback_generator
        self.executor = executor or CapabilityExecutor(catalog)
        self.standard_generate = standard_generate
        self.escalated_generate = escalated_generate
        self.safety = safety or SafetyClassifier()
        self.monitor = monitor or PerformanceMonitor()
        self.dispatcher = dispatcher
        self.response_cache = response_cache
        self.standard_timeout = standard_timeout
        self.escalated_timeout = escalated_timeout
        self.max_attempts = max(1, int(max_attempts))
        self.standard_max_tokens = standard_max_tokens
        self.escalated_max_tokens = escalated_max_tokens
        self.standard_fact_budget = standard_fact_budget
        self.escalated_fact_budget = max(1, min(3, int(escalated_fact_budget)))
        self.disclaimer = disclaimer
        self._graph = self._build_graph()

    def _build_graph(self) -> Any:
        graph = StateGraph(AssistantState)
        graph.add_node("intake", self._intake)
        graph.add_node("cache_lookup", self._cache_lookup)
        graph.add_node("route", self._route)
        graph.add_node("answerability", self._answerability)
        graph.add_node("execute", self._execute)
        graph.add_node("generate", self._generate)
        graph.add_node("validate", self._validate)
        graph.add_node("escalate", self._escalate)
        graph.add_node("fallback", self._fallback)
        graph.add_node("safety", self._safety)
        graph.add_node("finalize", self._finalize)

        graph.set_entry_point("intake")
        for node, next_node in (
            ("intake", "cache_lookup"),
            ("cache_lookup", "route"),
            ("route", "answerability"),
            ("answerability", "execute"),
            ("execute", "generate"),
            ("generate", "validate"),
            ("validate", "escalate"),
        ):
            graph.add_conditional_edges(
                node,
                self._branch(next_node),
                {next_node: next_node, "fallback": "fallback", "safety": "safety"},
            )
        graph.add_edge("escalate", "safety")
        graph.add_edge("fallback", "safety")
        graph.add_edge("safety", "finalize")
        graph.add_edge("finalize", END)
        return graph.compile()

    @staticmethod
    def _branch(next_node: str) -> Callable[[AssistantState], str]:
        def _choose(state: AssistantState) -> str:
            if state.get("response") is not None:
                return "safety"
            if state.get("fallback_reason"):
                return "fallback"
            return next_node

        return _choose

    @staticmethod
    def _cancelled(state: AssistantState) -> bool:
        event = state.get("cancel_event")
        return event is not None and event.is_set()

    def _respond(self, state: AssistantState, **fields: Any) -> AssistantResponse:
        route = state.get("route")
        base: Dict[str, Any] = {
            "trace_id": state["trace_id"],
            "route": route,
            "capability_id": route.capability_id if route is not None else None,
            "confidence": route.confidence if route is not None else 0.0,
            "answerability": state.get("answerability"),
            "critic": state.get("critic"),
            "guard_failures": list(state.get("guard_failures", [])),
            "input_decision": state.get("input_decision"),
        }
        base.update(fields)
        return AssistantResponse(**base)

    def _skip(self, state: AssistantState) -> bool:
        """True when a response is already set; converts a pending cancellation into one."""
        if state.get("response") is not None:
            return True
        if self._cancelled(state):
            logger.info("Request cancelled: trace_id=%s", state["trace_id"])
            state["response"] = self._respond(state, text=CANCELLED_MESSAGE, kind="cancelled")
            return True
        return False

    def _generate_text(
        self,
        state: AssistantState,
        generate: GenerationFunction,
        request: GenerationRequest,
        *,
        timeout_seconds: float,
    ) -> GeneratedAnswer | None:
        capability = state["capability"]
        try:
            result = call_generation(
                generate,
                request,
                timeout_seconds=timeout_seconds,
                max_attempts=self.max_attempts,
            )
        except GenerationError as exc:
            logger.warning(
                "Generation failed: trace_id=%s tier=%s error=%s",
                state["trace_id"],
                request.tier,
                exc,
            )
            state["external_failures"].append(f"generation:{request.tier}:{type(exc).__name__}")
            state["generation_attempts"] = state.get("generation_attempts", 0) + self.max_attempts
            return None

        state["generation_attempts"] = state.get("generation_attempts", 0) + result.attempts
        state["token_count"] = state.get("token_count", 0) + result.token_count
        return GeneratedAnswer(
            text=result.text.strip(),
            content_kind=capability.content_kind if capability is not None else "factual",
            token_count=result.token_count,
            tier=request.tier,
        )

    def _template_answer(self, state: AssistantState) -> GeneratedAnswer:
        capability = state["capability"]
        result = template_generation(
            capability,
            state.get("facts", []),
            window=state.get("window"),
            disclaimer=self.disclaimer,
        )
        return GeneratedAnswer(text=result.text, content_kind=capability.content_kind, token_count=0, tier="template")

    def _release(self, state: AssistantState, answer: GeneratedAnswer, *, low_confidence: bool) -> None:
        state["answer"] = answer
        state["response"] = self._respond(
            state,
            text=answer.text,
            kind="answer",
            tier=answer.tier,
            low_confidence=low_confidence,
        )

    def _intake(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        text, decision = apply_utterance_gate(
            state.get("raw_utterance"),
            max_chars=INPUT_MAX_CHARS,
            repair_enabled=INPUT_REPAIR_ENABLED,
            repair_score_min=INPUT_REPAIR_SCORE_MIN,
            reject_score_min=INPUT_REJECT_SCORE_MIN,
            normalization_form=INPUT_NORMALIZATION_FORM,
        )
        state["utterance"] = text
        state["input_decision"] = decision
        if decision.decision == "reject":
            logger.info("Input rejected: trace_id=%s reasons=%s", state["trace_id"], ",".join(decision.reason_codes))
            state["response"] = self._respond(state, text=decision.rephrase_prompt, kind="rejected")
        return state

    def _cache_lookup(self, state: AssistantState) -> AssistantState:
        if self._skip(state) or self.response_cache is None:
            return state
        key = _cache_key(state["utterance"], state["snapshot"])
        state["cache_key"] = key
        cached = self.response_cache.get(key)
        if cached is not None:
            logger.debug("Response cache hit: trace_id=%s", state["trace_id"])
            state["cache_hit"] = True
            state["response"] = cached.model_copy(
                update={"trace_id": state["trace_id"], "cache_hit": True, "input_decision": state.get("input_decision")}
            )
        return state

    def _route(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        utterance = state["utterance"]
        snapshot = state["snapshot"]
        route = self.router.route(utterance, snapshot)
        state["route"] = route
        if self._skip(state):
            return state

        if route.kind == "guided_fallback":
            state["fallback_reason"] = "route_low_confidence"
            return state
        if route.kind == "unknown_fallback":
            state["fallback_reason"] = route.reason_code
            return state

        capability = self.catalog.require(str(route.capability_id))
        state["capability"] = capability
        state["window"] = self.slot_resolver.resolve_time_window(utterance, snapshot)
        if route.missing_slots:
            logger.info(
                "Slot clarification needed: trace_id=%s capability=%s missing=%s",
                state["trace_id"],
                capability.capability_id,
                ",".join(route.missing_slots),
            )
            state["response"] = self._respond(
                state,
                text=build_slot_question(capability, route.missing_slots, route.slot_suggestions),
                kind="clarification",
                actions=slot_actions(capability, route.missing_slots, route.slot_suggestions),
            )
        return state

    def _answerability(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        result = self.gate.check(state["capability"].capability_id, state["snapshot"])
        state["answerability"] = result
        if not result.can_answer:
            state["fallback_reason"] = "insufficient_data"
        return state

    def _execute(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        capability = state["capability"]
        route = state["route"]
        payload: Dict[str, Any] = {}
        try:
            payload = self.executor.execute(
                capability.capability_id,
                dict(route.params),
                state["snapshot"],
                window=state.get("window"),
                trace_id=state["trace_id"],
                user_token=state.get("user_token") or None,
            )
        except CapabilityExecutionError as exc:
            logger.warning(
                "Capability execution failed: trace_id=%s capability=%s code=%s",
                state["trace_id"],
                exc.capability_id,
                exc.code,
            )
            state["external_failures"].append(f"executor:{exc.code}")
            state["fallback_reason"] = "execution_failed"
            return state
        if self._skip(state):
            return state

        state["execution_payload"] = payload
        state["facts"] = build_fact_pack(
            capability,
            state["snapshot"],
            execution_payload=payload,
            params=dict(route.params),
            window=state.get("window"),
            fact_budget=self.standard_fact_budget,
        )
        return state

    def _generate(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        if self.standard_generate is None:
            state["answer"] = self._template_answer(state)
            return state

        capability = state["capability"]
        request = GenerationRequest(
            prompt=build_answer_prompt(
                utterance=state["utterance"],
                capability=capability,
                facts=state.get("facts", []),
                window=state.get("window"),
                tier="standard",
                disclaimer=self.disclaimer,
            ),
            max_tokens=self.standard_max_tokens,
            tier="standard",
        )
        answer = self._generate_text(state, self.standard_generate, request, timeout_seconds=self.standard_timeout)
        if self._skip(state):
            return state
        if answer is None:
            if not state.get("facts"):
                state["fallback_reason"] = "generation_failed"
                return state
            self._release(state, self._template_answer(state), low_confidence=True)
            return state
        state["answer"] = answer
        return state

    def _validate(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        answer = state["answer"]
        guard_report = run_guard_battery(answer, state["snapshot"], state.get("window"))
        critic = self.critic.review(state["utterance"], answer, guard_report, state["snapshot"])
        state["guard_report"] = guard_report
        state["critic"] = critic
        state["guard_failures"] = _merge_failures(state.get("guard_failures", []), guard_report.failures)
        if not critic.escalate:
            self._release(state, answer, low_confidence=False)
            return state
        logger.info(
            "Critic escalation: trace_id=%s reason=%s risk=%s",
            state["trace_id"],
            critic.escalation_reason,
            critic.risk_level,
        )
        return state

    def _best_effort(self, state: AssistantState) -> None:
        answer = state["answer"]
        guard_report = state.get("guard_report")
        if guard_report is not None and guard_report.passed:
            self._release(state, answer, low_confidence=True)
            return
        self._release(state, self._template_answer(state), low_confidence=True)

    def _escalate(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        if self.escalated_generate is None:
            logger.info("Escalated tier unavailable: trace_id=%s", state["trace_id"])
            self._best_effort(state)
            return state

        capability = state["capability"]
        critic = state["critic"]
        guard_report = state["guard_report"]
        feedback = ", ".join(guard_report.failures) if guard_report.failures else str(critic.escalation_reason or "")
        request = GenerationRequest(
            prompt=build_answer_prompt(
                utterance=state["utterance"],
                capability=capability,
                facts=state.get("facts", [])[: self.escalated_fact_budget],
                window=state.get("window"),
                tier="escalated",
                disclaimer=self.disclaimer,
                corrective_feedback=feedback,
            ),
            max_tokens=self.escalated_max_tokens,
            tier="escalated",
        )
        escalated = self._generate_text(state, self.escalated_generate, request, timeout_seconds=self.escalated_timeout)
        if self._skip(state):
            return state
        if escalated is None:
            self._best_effort(state)
            return state

        escalated_report = run_guard_battery(escalated, state["snapshot"], state.get("window"))
        state["guard_failures"] = _merge_failures(state.get("guard_failures", []), escalated_report.failures)
        if escalated_report.passed:
            state["guard_report"] = escalated_report
            self._release(state, escalated, low_confidence=False)
            return state
        logger.info(
            "Escalated answer failed guards: trace_id=%s failures=%s",
            state["trace_id"],
            ",".join(escalated_report.failures),
        )
        self._release(state, self._template_answer(state), low_confidence=True)
        return state

    def _fallback(self, state: AssistantState) -> AssistantState:
        if self._skip(state):
            return state
        route = state.get("route")
        reason_code = state.get("fallback_reason") or "route_no_match"
        candidates: list[str] = []
        if route is not None:
            if route.capability_id:
                candidates.append(route.capability_id)
            candidates.extend(item.capability_id for item in route.alternatives)

        fallback = self.fallback_generator.generate(
            state["utterance"],
            state["snapshot"],
            reason_code=reason_code,
            answerability=state.get("answerability"),
            candidate_capabilities=candidates,
        )
        actions = list(fallback.actions)
        question = None
        if route is not None and route.kind == "guided_fallback" and route.alternatives and fallback.kind == "guided":
            question = build_clarifying_question(route, self.catalog)
            names = {}
            for item in route.alternatives:
                capability = self.catalog.get(item.capability_id)
                if capability is not None:
                    names.setdefault(capability.name, capability.capability_id)
            actions = [*question_actions(question, names), *actions]

        state["response"] = self._respond(
            state,
            text=render_fallback_text(fallback, question),
            kind="fallback",
            low_confidence=True,
            fallback=fallback,
            actions=actions,
        )
        return state

    def _safety(self, state: AssistantState) -> AssistantState:
        response = state.get("response")
        if response is None or response.kind in {"rejected", "cancelled"} or state.get("cache_hit"):
            return state
        verdict = self.safety.classify(response.text, utterance=state.get("utterance", ""))
        update: Dict[str, Any] = {"safety": verdict}
        if verdict.blocked:
            update.update({"kind": "blocked", "text": verdict.text, "actions": []})
        elif verdict.action != "allow":
            update["text"] = verdict.text
            if verdict.handoff:
                update["actions"] = [*response.actions, HANDOFF_ACTION]
        state["response"] = response.model_copy(update=update)
        return state

    def _finalize(self, state: AssistantState) -> AssistantState:
        response = state.get("response")
        if response is None:
            response = self._error_response(state["trace_id"], "pipeline_no_response")
        latency_ms = int((time.perf_counter() - state["started_at"]) * 1000)
        external_failures = list(state.get("external_failures", []))
        report = self.monitor.evaluate(
            latency_ms=latency_ms,
            token_count=state.get("token_count", 0),
            generation_attempts=state.get("generation_attempts", 0),
            external_failures=len(external_failures),
        )
        response = response.model_copy(
            update={
                "latency_ms": report.latency_ms,
                "token_count": report.token_count,
                "performance_breaches": list(report.breaches),
                "external_failures": external_failures,
            }
        )
        state["response"] = response

        if self.dispatcher is not None:
            self.dispatcher.dispatch(self._event(state, response))

        key = state.get("cache_key")
        if (
            self.response_cache is not None
            and key is not None
            and not state.get("cache_hit")
            and response.kind == "answer"
            and not response.low_confidence
            and not self._cancelled(state)
        ):
            self.response_cache.put(key, response)

        logger.info(
            "Pipeline finished: trace_id=%s kind=%s capability=%s tier=%s latency_ms=%d",
            response.trace_id,
            response.kind,
            response.capability_id,
            response.tier,
            response.latency_ms,
        )
        return state

    def _event(self, state: AssistantState, response: AssistantResponse) -> PipelineEventV1:
        route = response.route
        answerability = response.answerability
        critic = response.critic
        input_decision = state.get("input_decision")
        return PipelineEventV1(
            trace_id=response.trace_id,
            user_id=state.get("user_id", ""),
            utterance_fingerprint=input_decision.input_fingerprint if input_decision is not None else "",
            input_decision=input_decision.decision if input_decision is not None else "pass",
            response_kind=response.kind,
            route_kind=route.kind if route is not None else None,
            capability_id=response.capability_id,
            route_confidence=route.confidence if route is not None else None,
            route_reason=route.reason_code if route is not None else None,
            passes_run=list(route.passes_run) if route is not None else [],
            answerability_can_answer=answerability.can_answer if answerability is not None else None,
            answerability_confidence=answerability.confidence if answerability is not None else None,
            missing_data=answerability.missing_categories() if answerability is not None else [],
            guard_failures=list(response.guard_failures),
            critic_escalate=critic.escalate if critic is not None else None,
            escalation_reason=critic.escalation_reason if critic is not None else None,
            risk_level=critic.risk_level if critic is not None else None,
            tier=response.tier,
            low_confidence=response.low_confidence,
            fallback_kind=response.fallback.kind if response.fallback is not None else None,
            safety_action=response.safety.action,
            safety_severity=response.safety.severity,
            latency_ms=response.latency_ms,
            token_count=response.token_count,
            generation_attempts=state.get("generation_attempts", 0),
            performance_breaches=list(response.performance_breaches),
            external_failures=list(response.external_failures),
            cache_hit=response.cache_hit,
        )

    @staticmethod
    def _error_response(trace_id: str, reason_code: str) -> AssistantResponse:
        fallback = FallbackResponse(
            kind="guided",
            message=PIPELINE_ERROR_MESSAGE,
            actions=(FallbackAction(action_id="rephrase", label="Try again", action_type="rephrase"),),
            reason_code=reason_code,
        )
        return AssistantResponse(
            trace_id=trace_id,
            text=PIPELINE_ERROR_MESSAGE,
            kind="fallback",
            low_confidence=True,
            fallback=fallback,
            actions=list(fallback.actions),
        )

    def run(
        self,
        utterance: Any,
        snapshot: ContextSnapshot | None = None,
        *,
        trace_id: str | None = None,
        user_id: str = "",
        user_token: str = "",
        cancel_event: threading.Event | None = None,
        external_failures: list[str] | None = None,
    ) -> AssistantResponse:
        trace_id = trace_id or _new_trace_id()
        initial: AssistantState = {
            "trace_id": trace_id,
            "user_id": user_id,
            "user_token": user_token,
            "raw_utterance": utterance,
            "utterance": "",
            "snapshot": snapshot if snapshot is not None else empty_snapshot(),
            "cancel_event": cancel_event,
            "started_at": time.perf_counter(),
            "input_decision": None,
            "cache_key": None,
            "cache_hit": False,
            "route": None,
            "capability": None,
            "window": None,
            "answerability": None,
            "execution_payload": {},
            "facts": [],
            "answer": None,
            "guard_report": None,
            "critic": None,
            "guard_failures": [],
            "fallback_reason": "",
            "token_count": 0,
            "generation_attempts": 0,
            "external_failures": list(external_failures or []),
            "response": None,
        }
        try:
            state = self._graph.invoke(initial)
        except Exception as exc:
            logger.exception("Pipeline failed: trace_id=%s error=%s", trace_id, type(exc).__name__)
            return self._error_response(trace_id, "pipeline_error")
        response = state.get("response")
        if response is None:
            return self._error_response(trace_id, "pipeline_no_response")
        return response


_DEFAULT_LOCK = threading.Lock()
_DEFAULT_ORCHESTRATOR: AssistantOrchestrator | None = None


def _event_dispatcher_for_mode(mode: str) -> EventDispatcher | None:
    if mode == "http":
        return EventDispatcher(HttpAuditSink(audit_event))
    if mode == "log":
        return EventDispatcher(LoggingEventSink())
    return None


def build_default_orchestrator(catalog: CapabilityCatalog | None = None) -> AssistantOrchestrator:
    catalog = catalog or load_capability_catalog(CATALOG_PATH)
    standard = BedrockConverseGenerator(BEDROCK_MODEL_ID, tier="standard") if BEDROCK_MODEL_ID else None
    escalated = (
        BedrockConverseGenerator(BEDROCK_ESCALATED_MODEL_ID, tier="escalated") if BEDROCK_ESCALATED_MODEL_ID else None
    )
    response_cache: TTLCache[AssistantResponse] | None = None
    if RESPONSE_CACHE_ENABLED:
        response_cache = TTLCache(ttl_seconds=RESPONSE_CACHE_TTL_SECONDS, max_entries=RESPONSE_CACHE_MAX_ENTRIES)
    return AssistantOrchestrator(
        catalog,
        executor=CapabilityExecutor(catalog),
        standard_generate=standard,
        escalated_generate=escalated,
        dispatcher=_event_dispatcher_for_mode(EVENT_SINK_MODE),
        response_cache=response_cache,
    )


def default_orchestrator() -> AssistantOrchestrator:
    global _DEFAULT_ORCHESTRATOR
    with _DEFAULT_LOCK:
        if _DEFAULT_ORCHESTRATOR is None:
            _DEFAULT_ORCHESTRATOR = build_default_orchestrator()
        return _DEFAULT_ORCHESTRATOR


def run_assistant(
    prompt: Any,
    context_payload: Dict[str, Any] | None = None,
    *,
    user_token: str = "",
    user_id: str = "",
    trace_id: str | None = None,
    orchestrator: AssistantOrchestrator | None = None,
) -> Dict[str, Any]:
    """Entry point for the runtime: resolve the snapshot, run the pipeline, return a JSON-ready dict."""
    trace_id = trace_id or _new_trace_id()
    orchestrator = orchestrator or default_orchestrator()
    external_failures: list[str] = []
    if context_payload is not None:
        try:
            snapshot = snapshot_from_payload(context_payload)
        except ValidationError as exc:
            logger.warning("Context payload invalid: trace_id=%s errors=%d", trace_id, exc.error_count())
            external_failures.append("context:invalid_payload")
            snapshot = empty_snapshot()
    else:
        try:
            snapshot = fetch_context_snapshot(user_token, user_id)
        except ContextProviderError as exc:
            logger.warning("Context provider unavailable: trace_id=%s error=%s", trace_id, exc)
            external_failures.append("context:unavailable")
            snapshot = empty_snapshot()

    response = orchestrator.run(
        prompt,
        snapshot,
        trace_id=trace_id,
        user_id=user_id,
        user_token=user_token,
        external_failures=external_failures,
    )
    return response.model_dump(mode="json")
