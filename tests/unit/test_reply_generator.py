"""
Tests for the OpenAI-backed reply generator.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from assistant.catalog import CatalogError
from assistant.models import ChatMessage
from assistant.reply_generator import (
    OpenAIReplyGenerator,
    ReplyGenerationError,
    build_messages,
    build_product_context,
)


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


@pytest.fixture
def generator(catalog):
    gen = OpenAIReplyGenerator(api_key="sk-test", models=["model-a", "model-b"], catalog=catalog)
    gen._client = MagicMock()
    return gen


class TestPromptConstruction:

    def test_product_context_is_bounded(self, storefront_items):
        context = build_product_context(storefront_items, limit=3)
        assert len(context) == 3
        assert context[0] == {
            "id": "dress-1",
            "name": "Delia Dress",
            "price": 59.0,
            "category": "Women",
            "subCategory": "Dresses",
            "sizes": ["S", "M", "L"],
        }

    def test_history_roles(self):
        history = [ChatMessage(text="hi", is_user=True), ChatMessage(text="hello!", is_user=False)]
        messages = build_messages("SYSTEM", "dresses?", history)
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "dresses?"


class TestGenerate:

    def test_first_model_answers(self, generator):
        generator._client.chat.completions.create.return_value = _completion("We have dresses!")

        assert generator.generate("dresses?", []) == "We have dresses!"
        kwargs = generator._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "model-a"
        assert "Delia Dress" in kwargs["messages"][0]["content"]

    def test_falls_through_to_next_model(self, generator):
        generator._client.chat.completions.create.side_effect = [
            RuntimeError("rate limited"),
            _completion("Second model reply"),
        ]
        assert generator.generate("hi") == "Second model reply"

    def test_empty_reply_counts_as_failure(self, generator):
        generator._client.chat.completions.create.side_effect = [_completion("  "), _completion("ok")]
        assert generator.generate("hi") == "ok"

    def test_all_models_fail(self, generator):
        generator._client.chat.completions.create.side_effect = RuntimeError("down")
        with pytest.raises(ReplyGenerationError):
            generator.generate("hi")

    def test_disabled_without_key(self):
        gen = OpenAIReplyGenerator(api_key="", models=["model-a"])
        assert gen.enabled is False
        with pytest.raises(ReplyGenerationError):
            gen.generate("hi")

    def test_catalog_failure_still_generates(self, generator):
        failing = MagicMock()
        failing.query_newest.side_effect = CatalogError("down")
        generator._catalog = failing
        generator._client.chat.completions.create.return_value = _completion("Hello")

        assert generator.generate("hi") == "Hello"
