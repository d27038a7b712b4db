"""
Reply Generator.

Produces the assistant's natural-language reply for a chat turn. The
recommendation engine treats the reply as opaque text and only reads the
garment terms it mentions.

OpenAIReplyGenerator tries each configured model in priority order under a
per-call timeout and raises ReplyGenerationError when all of them fail; the
chat service then answers with the canned fallback reply.
"""

import json
import threading
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

from assistant.catalog import CatalogClient, CatalogError
from assistant.models import CatalogItem, ChatMessage
from config.constants import MAX_PROMPT_PRODUCTS
from core.logging import get_logger

logger = get_logger(__name__)


class ReplyGenerationError(Exception):
    """Raised when no model could produce a reply."""
    pass


class ReplyGenerator(Protocol):
    def generate(self, message: str, history: Sequence[ChatMessage]) -> str: ...


# =============================================================================
# Prompt construction
# =============================================================================

def build_product_context(items: Sequence[CatalogItem], limit: int = MAX_PROMPT_PRODUCTS) -> List[Dict[str, Any]]:
    """Compact product summaries embedded in the system prompt."""
    return [
        {
            "id": item.id,
            "name": item.name,
            "price": round(item.price, 2),
            "category": item.category,
            "subCategory": item.sub_category,
            "sizes": list(item.size_tags),
        }
        for item in items[:limit]
    ]


def build_system_prompt(product_context: List[Dict[str, Any]], store_name: str = "Pinnacle") -> str:
    return (
        f"You are {store_name} Assistant, a helpful chatbot for the {store_name} fashion store.\n\n"
        "Here is information about some of our products that you can use to answer customer questions:\n"
        f"{json.dumps(product_context, indent=2)}\n\n"
        "When answering:\n"
        "1. Be conversational and helpful\n"
        "2. Recommend products by name when relevant\n"
        "3. Provide pricing information if available\n"
        "4. If you don't know an answer, admit it and suggest contacting customer service\n"
        "5. Keep responses concise (under 100 words when possible)"
    )


def build_messages(system_prompt: str, message: str, history: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt}]
    for turn in history:
        messages.append({"role": "user" if turn.is_user else "assistant", "content": turn.text})
    messages.append({"role": "user", "content": message})
    return messages


# =============================================================================
# OpenAI Reply Generator
# =============================================================================

class OpenAIReplyGenerator:
    """Chat-completions reply generator with model fallback."""

    def __init__(
        self,
        api_key: str,
        models: Sequence[str],
        catalog: Optional[CatalogClient] = None,
        timeout: float = 15.0,
        max_tokens: int = 500,
        temperature: float = 0.7,
        store_name: str = "Pinnacle",
    ):
        self._api_key = api_key
        self._models = list(models)
        self._catalog = catalog
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._store_name = store_name
        self._client = None
        self._client_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, catalog: Optional[CatalogClient] = None) -> "OpenAIReplyGenerator":
        return cls(
            api_key=settings.openai_api_key,
            models=settings.assistant_models,
            catalog=catalog,
            timeout=settings.assistant_timeout_seconds,
            max_tokens=settings.assistant_max_tokens,
            temperature=settings.assistant_temperature,
        )

    @property
    def client(self):
        """Lazy-load OpenAI client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    from openai import OpenAI
                    self._client = OpenAI(
                        api_key=self._api_key,
                        timeout=self._timeout,
                        max_retries=0,
                    )
        return self._client

    @property
    def enabled(self) -> bool:
        return bool(self._api_key and self._models)

    def _product_context(self) -> List[Dict[str, Any]]:
        if self._catalog is None:
            return []
        try:
            return build_product_context(self._catalog.query_newest(MAX_PROMPT_PRODUCTS))
        except CatalogError as e:
            # The assistant can still talk without product context
            logger.warning("Product context unavailable", error=str(e))
            return []

    def generate(self, message: str, history: Sequence[ChatMessage] = ()) -> str:
        """
        Generate a reply, trying each model in priority order.

        Raises:
            ReplyGenerationError: if the generator is disabled or every model failed
        """
        if not self.enabled:
            raise ReplyGenerationError("Reply generator disabled (no API key or models configured)")

        messages = build_messages(build_system_prompt(self._product_context(), self._store_name), message, history)

        last_error: Optional[Exception] = None
        for model in self._models:
            t_start = time.time()
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                    timeout=self._timeout,
                )
                text = (response.choices[0].message.content or "").strip()
                if not text:
                    raise ReplyGenerationError(f"Model {model} returned an empty reply")

                logger.info(
                    "Assistant reply generated",
                    model=model,
                    latency_ms=int((time.time() - t_start) * 1000),
                )
                return text
            except Exception as e:
                last_error = e
                logger.warning(
                    "Reply model failed, trying next",
                    model=model,
                    error=str(e),
                    latency_ms=int((time.time() - t_start) * 1000),
                )

        raise ReplyGenerationError(f"All models failed. Last error: {last_error}")
