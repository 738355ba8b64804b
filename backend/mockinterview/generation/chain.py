from __future__ import annotations

import logging
from typing import Awaitable, Callable

import httpx

from core.config import QUESTION_SERVICE_TIMEOUT_SEC
from mockinterview.errors import GenerationUnavailable
from mockinterview.generation.generator import QuestionGenerator, QuestionRequest
from mockinterview.generation.prompts import CANNED_QUESTIONS
from mockinterview.models import RoundKind
from mockinterview.novelty.store import NoveltyStore

logger = logging.getLogger("mockinterview.generation.chain")

ROUND_ENDPOINTS = {
    RoundKind.TECHNICAL: "/api/technical",
    RoundKind.CORE: "/api/project",
    RoundKind.HR: "/api/hr",
}

QuestionProvider = Callable[[QuestionRequest], Awaitable[str]]


class RemoteQuestionProvider:
    """Asks the generation service for a question and records the answer locally."""

    name = "remote"

    def __init__(
        self,
        base_url: str,
        store: NoveltyStore,
        timeout_sec: float = QUESTION_SERVICE_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = str(base_url or "").rstrip("/")
        self.store = store
        self.timeout_sec = timeout_sec
        self._transport = transport

    def _payload(self, request: QuestionRequest) -> dict:
        payload = {
            "emotion": request.emotion_descriptor,
            "last_answer": request.last_answer,
            "round": request.round.value,
        }
        payload.update(request.facts)
        return payload

    async def __call__(self, request: QuestionRequest) -> str:
        url = f"{self.base_url}{ROUND_ENDPOINTS[request.round]}"
        async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
            response = await client.post(
                url,
                headers={"X-Conversation-Id": request.conversation_id},
                json=self._payload(request),
            )

        if response.status_code != 200:
            raise GenerationUnavailable(f"generation service error {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationUnavailable("generation service returned malformed JSON") from exc

        question = str((data or {}).get("question") or "").strip() if isinstance(data, dict) else ""
        if not question:
            raise GenerationUnavailable(f"generation service returned no question: {data!r}"[:240])

        self.store.record(request.conversation_id, question)
        return question


class LocalQuestionProvider:
    name = "local"

    def __init__(self, generator: QuestionGenerator):
        self.generator = generator

    async def __call__(self, request: QuestionRequest) -> str:
        return await self.generator.generate(request)


class CannedQuestionProvider:
    name = "canned"

    def __init__(self, store: NoveltyStore):
        self.store = store

    async def __call__(self, request: QuestionRequest) -> str:
        question = CANNED_QUESTIONS[request.round]
        self.store.record(request.conversation_id, question)
        return question


class QuestionChain:
    """Tries providers in order; the first non-empty question wins."""

    def __init__(self, providers: list[QuestionProvider]):
        if not providers:
            raise ValueError("QuestionChain requires at least one provider")
        self.providers = list(providers)

    async def next_question(self, request: QuestionRequest) -> tuple[str, str]:
        last_error: Exception | None = None
        for provider in self.providers:
            provider_name = getattr(provider, "name", getattr(provider, "__name__", "provider"))
            try:
                question = str(await provider(request) or "").strip()
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "question provider failed | provider=%s round=%s err=%s",
                    provider_name,
                    request.round.value,
                    exc,
                )
                continue
            if question:
                return question, provider_name
            logger.warning("question provider returned empty | provider=%s round=%s", provider_name, request.round.value)

        raise GenerationUnavailable(f"all question providers failed: {last_error}")


def build_question_chain(
    store: NoveltyStore,
    generator: QuestionGenerator,
    service_url: str = "",
    transport: httpx.AsyncBaseTransport | None = None,
) -> QuestionChain:
    providers: list[QuestionProvider] = []
    if service_url:
        providers.append(RemoteQuestionProvider(service_url, store, transport=transport))
    providers.append(LocalQuestionProvider(generator))
    providers.append(CannedQuestionProvider(store))
    return QuestionChain(providers)
