# tests/test_remote.py
import asyncio
import json

import httpx
import pytest

from cuet_prep.errors import GenerationError
from cuet_prep.remote import GroqQuestionClient, build_prompt, parse_questions

ITEM = {
    "question": "The SI unit of electric charge is:",
    "options": ["Coulomb", "Ampere", "Volt", "Ohm"],
    "correct": 0,
    "explanation": "Charge is measured in coulombs.",
    "concept": "Electric Charge",
    "difficulty": "easy",
}


def _reply(content):
    return {"choices": [{"message": {"content": content}}]}


def test_build_prompt_mentions_scope():
    prompt = build_prompt("Physics", "Electrostatics", 5, "hard", "Focus on Gauss Law")
    assert "Generate 5 CUET" in prompt
    assert "trap options" in prompt
    assert "Focus on Gauss Law" in prompt


def test_parse_plain_array():
    questions = parse_questions(json.dumps([ITEM]), "Physics", "Electrostatics")
    assert len(questions) == 1
    q = questions[0]
    assert q.source == "groq"
    assert q.concept == "Electric Charge"
    assert q.difficulty == "easy"
    assert q.correct_option == "Coulomb"


def test_parse_fenced_array_with_trailing_comma():
    content = "Here you go:\n```json\n[" + json.dumps(ITEM) + ",]\n```"
    assert len(parse_questions(content, "Physics", "Electrostatics")) == 1


def test_parse_drops_invalid_items():
    bad = dict(ITEM, options=["Option A", "Option B", "Option C", "Option D"])
    no_index = dict(ITEM, correct="first")
    questions = parse_questions(json.dumps([bad, no_index, ITEM]), "Physics", "Electrostatics")
    assert len(questions) == 1


def test_parse_garbage_returns_empty():
    assert parse_questions("I cannot help with that.", "Physics", "Electrostatics") == []


def test_is_available():
    assert GroqQuestionClient(api_key="gsk_test").is_available
    assert not GroqQuestionClient(api_key="").is_available
    assert not GroqQuestionClient(api_key="your_groq_api_key_here").is_available


def test_generate_posts_chat_completion():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply(json.dumps([ITEM, ITEM])))

    client = GroqQuestionClient(api_key="gsk_test", model="test-model",
                                base_url="https://groq.test/v1/",
                                transport=httpx.MockTransport(handler))
    questions = asyncio.run(client.generate("Physics", "Electrostatics", 1))
    assert len(questions) == 1
    assert seen["url"] == "https://groq.test/v1/chat/completions"
    assert seen["auth"] == "Bearer gsk_test"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["temperature"] == 0.7


def test_generate_http_error_raises_generation_error():
    client = GroqQuestionClient(
        api_key="gsk_test",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="oops")),
    )
    with pytest.raises(GenerationError):
        asyncio.run(client.generate("Physics", "Electrostatics", 3))


def test_generate_unparseable_reply_raises_generation_error():
    client = GroqQuestionClient(
        api_key="gsk_test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=_reply("no json here"))),
    )
    with pytest.raises(GenerationError, match="No valid questions"):
        asyncio.run(client.generate("Physics", "Electrostatics", 3))


def test_generate_without_key_raises():
    with pytest.raises(GenerationError):
        asyncio.run(GroqQuestionClient(api_key="").generate("Physics", "Electrostatics", 3))
