"""Completion orchestration for one customer turn.

Role:
    Turns a raw customer message plus prior conversation into the exact message list
    sent to the completion service, calls it once, and reports the answer or a failure.

Turn data contract (fields on TurnContext passed across steps):
    - user_message, history: inputs; history is copied, never mutated.
    - guard_note: redirect note from the topic guard, empty when on-topic.
    - knowledge: RoutedContext from the knowledge router (domain "none" when nothing fits).
    - messages: outbound [system, *history, user] list.
    - answer_text / failure_reason: outcome of the completion step.

Step contracts:
    Topic Guard:
        Reads user_message; sets guard_note.
    Knowledge Retrieval:
        Reads user_message; sets knowledge.
    Compose Messages:
        Reads guard_note + knowledge + history; sets messages.
    Completion:
        Sends messages once; sets answer_text or failure_reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from .errors import CompletionError
from .knowledge.router import NO_RELEVANT_INFORMATION, KnowledgeRouter, RoutedContext
from .step_runner import PipelineStep, StepRunner
from .topic_guard import TopicGuard

logger = logging.getLogger("support_bot.agent")

ANSWER_INSTRUCTION = "Please answer based on this information."


class CompletionService(Protocol):
    def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        temperature: float = ...,
        max_output_tokens: int = ...,
    ) -> str:
        ...


@dataclass
class TurnResult:
    """Outcome of run_turn: an answer, or a failure reason with an empty answer."""
    answer_text: str = ""
    failure_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure_reason is None


@dataclass
class TurnContext:
    """Mutable context passed through each turn step."""
    user_message: str
    history: List[Dict[str, str]]
    guard_note: str = ""
    knowledge: RoutedContext = NO_RELEVANT_INFORMATION
    messages: List[Dict[str, str]] = field(default_factory=list)
    answer_text: str = ""
    failure_reason: Optional[str] = None
    step_logs: List[Dict[str, str]] = field(default_factory=list)

    def log(self, event: str, detail: str, status: str = "success") -> None:
        """Append a structured step log entry for debugging."""
        self.step_logs.append({"event": event, "detail": detail, "status": status})


def build_user_content(user_message: str, guard_note: str, knowledge: RoutedContext) -> str:
    """Purpose: Assemble the final user-turn text sent to the model.
    Inputs/Outputs: Inputs are the raw message, guard note, and routed knowledge;
        output is the composed content string.
    Side Effects / State: None; pure function.
    Dependencies: RoutedContext.has_content decides whether the knowledge section and
        its answer instruction appear.
    Failure Modes: None.
    If Removed: Guard notes and knowledge never reach the model.
    Testing Notes: Sentinel knowledge must leave no "RELEVANT KNOWLEDGE" header.
    """
    content = guard_note + ("\n\n" if guard_note else "")
    content += f"CUSTOMER QUESTION: {user_message}\n\n"
    if knowledge.has_content:
        content += f"RELEVANT KNOWLEDGE:\n{knowledge.text}\n\n{ANSWER_INSTRUCTION}"
    return content


class SupportAgent:
    """Compose guard note, knowledge, and history into one completion call per turn."""

    def __init__(
        self,
        completion: Optional[CompletionService],
        router: KnowledgeRouter,
        system_prompt: str,
        guard: Optional[TopicGuard] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
    ) -> None:
        self._completion = completion
        self._router = router
        self._guard = guard
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._runner: StepRunner[TurnContext] = StepRunner(
            steps=[
                PipelineStep("topic_guard", self._step_topic_guard, skip_if=lambda _: self._guard is None),
                PipelineStep("knowledge_retrieval", self._step_knowledge_retrieval),
                PipelineStep("compose_messages", self._step_compose_messages),
                PipelineStep("completion", self._step_completion),
            ]
        )

    @property
    def is_configured(self) -> bool:
        return self._completion is not None

    def run_turn(self, user_message: str, history: Sequence[Mapping[str, str]] = ()) -> TurnResult:
        """Purpose: Run guard, retrieval, composition, and one completion call.
        Inputs/Outputs: Inputs are the raw message and prior role/content history;
            output is a TurnResult.
        Side Effects / State: Exactly one outbound completion call; history is untouched.
        Dependencies: StepRunner with the four step methods below.
        Failure Modes: Completion errors become a failure TurnResult; other exceptions
            propagate to the caller.
        If Removed: The chat endpoint has nothing to answer with.
        Testing Notes: Stub the completion service and inspect the messages it receives.
        """
        context = self.prepare(user_message, history)
        self._runner.run(context)
        for entry in context.step_logs:
            logger.debug("turn step=%s status=%s detail=%s", entry["event"], entry["status"], entry["detail"])
        return TurnResult(answer_text=context.answer_text, failure_reason=context.failure_reason)

    def prepare(self, user_message: str, history: Sequence[Mapping[str, str]] = ()) -> TurnContext:
        return TurnContext(
            user_message=user_message,
            history=[{"role": str(m["role"]), "content": str(m["content"])} for m in history],
        )

    def _step_topic_guard(self, context: TurnContext) -> None:
        assert self._guard is not None
        context.guard_note = self._guard.annotation(context.user_message)
        if context.guard_note:
            logger.info("turn flagged off-topic message=%s", context.user_message[:80])
            context.log("topic_guard", "off-topic", status="flagged")

    def _step_knowledge_retrieval(self, context: TurnContext) -> None:
        context.knowledge = self._router.route(context.user_message)
        context.log("knowledge_retrieval", context.knowledge.domain)
        logger.debug("turn knowledge domain=%s", context.knowledge.domain)

    def _step_compose_messages(self, context: TurnContext) -> None:
        messages = [{"role": "system", "content": self._system_prompt}]
        messages.extend(dict(message) for message in context.history)
        messages.append(
            {
                "role": "user",
                "content": build_user_content(context.user_message, context.guard_note, context.knowledge),
            }
        )
        context.messages = messages
        context.log("compose_messages", f"{len(messages)} messages")

    def _step_completion(self, context: TurnContext) -> None:
        if self._completion is None:
            context.failure_reason = "Completion service not configured"
            context.log("completion", context.failure_reason, status="error")
            return
        try:
            context.answer_text = self._completion.complete(
                context.messages,
                temperature=self._temperature,
                max_output_tokens=self._max_output_tokens,
            )
        except CompletionError as exc:
            context.answer_text = ""
            context.failure_reason = str(exc) or "Unknown error occurred"
            context.log("completion", context.failure_reason, status="error")
            return
        context.log("completion", f"{len(context.answer_text)} chars")
