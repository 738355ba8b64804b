import asyncio
import logging
from typing import Awaitable, Callable

from openai import AsyncOpenAI
from core.config import LLM_TIMEOUT_SEC, MODEL_NAME, OPENAI_API_KEY, OPENAI_BASE_URL

logger = logging.getLogger("mockinterview.generation.llm")

_client: AsyncOpenAI | None = None

CompletionFn = Callable[..., Awaitable[str]]


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if not OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is not configured")
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
    return _client


async def complete_chat(
    messages: list[dict],
    temperature: float = 0.7,
    max_tokens: int = 200,
    timeout_sec: float = LLM_TIMEOUT_SEC,
    retries: int = 0,
) -> str:
    """
    Sends chat messages to the LLM and returns the trimmed reply text.
    Returns "" when every attempt fails; callers treat that as a rejected result.
    """
    if not messages:
        return ""

    last_error: Exception | None = None
    for attempt in range(max(1, retries + 1)):
        try:
            response = await asyncio.wait_for(
                get_client().chat.completions.create(
                    model=MODEL_NAME,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=timeout_sec,
            )
            message = response.choices[0].message.content
            return str(message or "").strip()
        except asyncio.TimeoutError as exc:
            last_error = exc
            logger.warning("complete_chat timeout | attempt=%s", attempt + 1)
        except Exception as exc:
            last_error = exc
            logger.warning("complete_chat failure | attempt=%s err=%s", attempt + 1, exc)

        if attempt < retries:
            await asyncio.sleep(0.35 * (attempt + 1))

    logger.warning("complete_chat exhausted | err=%s", last_error)
    return ""
