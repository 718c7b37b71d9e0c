"""Chat-completion client, intent classifier and plan narrator."""

import asyncio
import json
import unittest

import aiohttp

from agent_engine.errors import UpstreamError
from agent_engine.models import Priority, RiskLevel
from execution_engine.models import Classification
from llm_adapter.classifier import ClassificationError, IntentClassifier, build_user_prompt
from llm_adapter.client import ChatCompletionClient, LLMAdapterError, sanitize_context, strip_code_fence
from llm_adapter.narrator import FALLBACK_EXPLANATION, PlanNarrator


class _FakeResponse:
    def __init__(self, status=200, payload=None, body="") -> None:
        self.status = status
        self._payload = payload
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def text(self):
        return self._body

    async def json(self, content_type="application/json"):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def post(self, url, json=None, headers=None):
        self.requests.append({"url": url, "json": json, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class _FakeCompletionClient:
    def __init__(self, answer=None, error=None) -> None:
        self.answer = answer
        self.error = error
        self.calls = []

    async def complete(self, messages, temperature, max_tokens):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.answer


class ChatCompletionClientTests(unittest.IsolatedAsyncioTestCase):
    def _client(self, session) -> ChatCompletionClient:
        return ChatCompletionClient("sk-test", base_url="https://llm.example/v1/", model="test-model", session=session)

    async def test_posts_chat_completion_request(self) -> None:
        session = _FakeSession(_FakeResponse(payload=_completion("  hello  ")))

        content = await self._client(session).complete([{"role": "user", "content": "hi"}], 0.1, 50)

        self.assertEqual(content, "hello")
        request = session.requests[0]
        self.assertEqual(request["url"], "https://llm.example/v1/chat/completions")
        self.assertEqual(request["headers"]["Authorization"], "Bearer sk-test")
        self.assertEqual(
            request["json"],
            {"model": "test-model", "messages": [{"role": "user", "content": "hi"}], "temperature": 0.1, "max_tokens": 50},
        )

    async def test_empty_content_is_none(self) -> None:
        session = _FakeSession(_FakeResponse(payload=_completion("   ")))

        self.assertIsNone(await self._client(session).complete([], 0.1, 50))

    async def test_http_error(self) -> None:
        session = _FakeSession(_FakeResponse(status=429, body="rate limited"))

        with self.assertRaisesRegex(LLMAdapterError, "HTTP 429"):
            await self._client(session).complete([], 0.1, 50)

    async def test_transport_errors(self) -> None:
        for error in (aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()):
            with self.subTest(error=type(error).__name__):
                with self.assertRaisesRegex(LLMAdapterError, "request failed"):
                    await self._client(_FakeSession(error=error)).complete([], 0.1, 50)

    async def test_malformed_bodies(self) -> None:
        with self.assertRaisesRegex(LLMAdapterError, "invalid JSON"):
            await self._client(_FakeSession(_FakeResponse(payload=ValueError("bad")))).complete([], 0.1, 50)
        with self.assertRaisesRegex(LLMAdapterError, "unexpected response"):
            await self._client(_FakeSession(_FakeResponse(payload={"choices": []}))).complete([], 0.1, 50)

    async def test_errors_are_upstream_errors(self) -> None:
        self.assertTrue(issubclass(LLMAdapterError, UpstreamError))

    async def test_injected_session_is_not_closed(self) -> None:
        session = _FakeSession()

        async with self._client(session):
            pass

        self.assertFalse(session.closed)

    def test_api_key_is_required(self) -> None:
        with self.assertRaises(LLMAdapterError):
            ChatCompletionClient("")


class HelperTests(unittest.TestCase):
    def test_sanitize_context_drops_key_material(self) -> None:
        context = {
            "user_balance": 10,
            "seedPhrase": "abandon abandon",
            "current_positions": [{"id": "p1", "privateKey": "0xdead", "amount": 5}],
            "wallet": {"api_secret": "x", "name": "main"},
        }

        self.assertEqual(
            sanitize_context(context),
            {"user_balance": 10, "current_positions": [{"id": "p1", "amount": 5}], "wallet": {"name": "main"}},
        )

    def test_strip_code_fence(self) -> None:
        self.assertEqual(strip_code_fence('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(strip_code_fence('  {"a": 1} '), '{"a": 1}')

    def test_user_prompt(self) -> None:
        prompt = build_user_prompt(
            "stake 100",
            {
                "user_balance": 250,
                "current_positions": [{"id": "p1", "mnemonic": "words"}],
                "previous_messages": ["one", "two", "three", "four"],
            },
        )

        self.assertEqual(
            prompt,
            'User message: "stake 100"\n'
            "User balance: 250 STT\n"
            'Current positions: [{"id": "p1"}]\n'
            "Previous context: two; three; four",
        )
        self.assertEqual(build_user_prompt("hi"), 'User message: "hi"')


class IntentClassifierTests(unittest.IsolatedAsyncioTestCase):
    async def test_parses_classification(self) -> None:
        answer = json.dumps(
            {
                "intent": "swap_tokens",
                "confidence": 0.92,
                "requiredAgents": ["trade-agent"],
                "parameters": {"tokenIn": "ETH", "tokenOut": "USDC", "amountIn": "1"},
                "priority": "high",
                "riskLevel": "medium",
            }
        )
        client = _FakeCompletionClient("```json\n" + answer + "\n```")

        classification = await IntentClassifier(client).classify("swap 1 ETH to USDC")

        self.assertIsInstance(classification, Classification)
        self.assertEqual(classification.intent, "swap_tokens")
        self.assertEqual(classification.priority, Priority.HIGH)
        self.assertEqual(classification.risk_level, RiskLevel.MEDIUM)
        self.assertEqual(classification.required_agents, ("trade-agent",))
        self.assertEqual((client.calls[0]["temperature"], client.calls[0]["max_tokens"]), (0.1, 1000))
        self.assertEqual(client.calls[0]["messages"][0]["role"], "system")

    async def test_no_response(self) -> None:
        with self.assertRaisesRegex(ClassificationError, "No response from LLM"):
            await IntentClassifier(_FakeCompletionClient(None)).classify("hi")

    async def test_invalid_json(self) -> None:
        with self.assertRaisesRegex(ClassificationError, "Invalid JSON response from LLM"):
            await IntentClassifier(_FakeCompletionClient("I think you want to swap.")).classify("hi")

    async def test_invalid_shape(self) -> None:
        client = _FakeCompletionClient(json.dumps({"intent": "swap_tokens", "confidence": 3}))

        with self.assertRaisesRegex(ClassificationError, "Invalid classification from LLM: confidence"):
            await IntentClassifier(client).classify("hi")


class PlanNarratorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.classification = Classification.model_validate(
            {"intent": "stake_tokens", "confidence": 0.8, "riskLevel": "low"}
        )

    async def test_uses_llm_text(self) -> None:
        client = _FakeCompletionClient("You will stake 100 STT.")

        text = await PlanNarrator(client).narrate(self.classification, (), 250_000, 100)

        self.assertEqual(text, "You will stake 100 STT.")
        prompt = client.calls[0]["messages"][0]["content"]
        self.assertIn("Intent: stake_tokens", prompt)
        self.assertIn("Estimated value: 100 STT", prompt)
        self.assertIn("Risk level: low", prompt)
        self.assertEqual((client.calls[0]["temperature"], client.calls[0]["max_tokens"]), (0.3, 200))

    async def test_falls_back(self) -> None:
        empty = PlanNarrator(_FakeCompletionClient(None))
        failing = PlanNarrator(_FakeCompletionClient(error=LLMAdapterError("down")))

        self.assertEqual(await empty.narrate(self.classification, (), 0, 0), FALLBACK_EXPLANATION)
        self.assertEqual(await failing.narrate(self.classification, (), 0, 0), FALLBACK_EXPLANATION)


if __name__ == "__main__":
    unittest.main()
