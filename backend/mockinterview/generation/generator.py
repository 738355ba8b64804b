from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re

from core.config import NOVELTY_PROMPT_WINDOW
from mockinterview.generation import prompts
from mockinterview.generation.llm import CompletionFn, complete_chat
from mockinterview.models import NEUTRAL_EXPRESSION, NO_ANSWER, ResumeFacts, RoundKind, UserExpression
from mockinterview.novelty.store import DEFAULT_CONVERSATION_ID, NoveltyStore

logger = logging.getLogger("mockinterview.generation")

PRIMARY_TEMPERATURE = 0.7
PRIMARY_MAX_TOKENS = 200
RETRY_TEMPERATURE = 0.9
RETRY_MAX_TOKENS = 120


def sanitize_answer(answer) -> str:
    text = answer.strip() if isinstance(answer, str) else ""
    if not text or text.lower() in {"undefined", "null"}:
        return NO_ANSWER
    return text


@dataclass
class QuestionRequest:
    round: RoundKind
    conversation_id: str = DEFAULT_CONVERSATION_ID
    last_answer: str = NO_ANSWER
    expression: UserExpression = NEUTRAL_EXPRESSION
    emotion: str | None = None
    facts: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        round_kind: RoundKind,
        conversation_id: str,
        last_answer: str | None,
        expression: UserExpression | None,
        resume: ResumeFacts | None,
    ) -> "QuestionRequest":
        return cls(
            round=round_kind,
            conversation_id=conversation_id,
            last_answer=sanitize_answer(last_answer),
            expression=expression or NEUTRAL_EXPRESSION,
            facts=(resume or ResumeFacts()).for_round(round_kind),
        )

    @property
    def emotion_descriptor(self) -> str:
        return self.emotion or self.expression.describe()


class QuestionGenerator:
    """
    Generates the next question for a round under the per-conversation
    no-repeat constraint. Always returns a non-empty question and records it.
    """

    def __init__(
        self,
        store: NoveltyStore,
        completion_fn: CompletionFn = complete_chat,
        meta_patterns: dict[RoundKind, str | None] | None = None,
        prompt_window: int = NOVELTY_PROMPT_WINDOW,
    ):
        self.store = store
        self.completion_fn = completion_fn
        self.prompt_window = prompt_window
        patterns = dict(prompts.DEFAULT_META_PATTERNS)
        patterns.update(meta_patterns or {})
        self._meta_patterns = {
            kind: re.compile(pattern, re.IGNORECASE)
            for kind, pattern in patterns.items()
            if pattern
        }

    def is_meta_question(self, round_kind: RoundKind, text: str) -> bool:
        pattern = self._meta_patterns.get(round_kind)
        return bool(pattern and pattern.search(text or ""))

    async def _complete(self, messages: list[dict], temperature: float, max_tokens: int) -> str:
        try:
            text = await self.completion_fn(
                messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as exc:
            logger.warning("question completion failed | err=%s", exc)
            return ""
        return str(text or "").strip()

    async def generate(self, request: QuestionRequest) -> str:
        round_kind = request.round
        conversation_id = request.conversation_id
        previously_asked = self.store.recent(conversation_id, self.prompt_window)

        messages = [
            {"role": "system", "content": prompts.SYSTEM_PROMPTS[round_kind]},
            {
                "role": "user",
                "content": prompts.build_user_prompt(
                    round_kind,
                    request.emotion_descriptor,
                    request.last_answer,
                    request.facts,
                    previously_asked,
                ),
            },
        ]
        question = await self._complete(messages, PRIMARY_TEMPERATURE, PRIMARY_MAX_TOKENS)

        with self.store.exclusive(conversation_id):
            reason = self._rejection_reason(round_kind, conversation_id, question)
            if not reason:
                self.store.record(conversation_id, question)
                return question

        logger.info("question rejected | round=%s conversation=%s reason=%s", round_kind.value, conversation_id, reason)
        retry_messages = [
            {"role": "system", "content": prompts.RETRY_SYSTEM_PROMPTS[round_kind]},
            {"role": "user", "content": prompts.build_retry_prompt(round_kind, previously_asked)},
        ]
        question = await self._complete(retry_messages, RETRY_TEMPERATURE, RETRY_MAX_TOKENS)

        with self.store.exclusive(conversation_id):
            if not question or self.store.collides(conversation_id, question):
                logger.info("retry rejected, using canned question | round=%s conversation=%s", round_kind.value, conversation_id)
                question = prompts.CANNED_QUESTIONS[round_kind]
            self.store.record(conversation_id, question)
        return question

    def _rejection_reason(self, round_kind: RoundKind, conversation_id: str, question: str) -> str | None:
        if not question:
            return "empty"
        if self.store.collides(conversation_id, question):
            return "collision"
        if self.is_meta_question(round_kind, question):
            return "meta_question"
        return None
