"""
Tests for the LangChain chat-model gateway and the Workers AI HTTP gateway.
"""

import json
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import unquote

import httpx
import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from mentor.domain.errors import InferenceGatewayError
from mentor.domain.inference import (
    ChatModelGateway, WorkersAIGateway, build_messages, create_inference_gateway
)
from mentor.infrastructure.config.settings import DEFAULT_SYSTEM_PROMPT, Settings

MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"


class TestChatModelGateway:

    def test_prompt_layout(self):
        messages = build_messages("be brief", "let x = 1;")
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert messages[0].content == "be brief"
        assert messages[1].content == "let x = 1;"

    @pytest.mark.asyncio
    async def test_returns_model_response(self):
        gateway = ChatModelGateway(FakeListChatModel(responses=["use const"]))
        assert await gateway.analyze("var x = 1;") == "use const"

    @pytest.mark.asyncio
    async def test_sends_system_prompt_and_snapshot(self):
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(return_value=AIMessage(content=" prefer let "))

        gateway = ChatModelGateway(chat_model)
        assert await gateway.analyze("var x = 1;") == "prefer let"

        messages = chat_model.ainvoke.call_args.args[0]
        assert messages[0].content == DEFAULT_SYSTEM_PROMPT
        assert messages[1].content == "var x = 1;"

    @pytest.mark.asyncio
    async def test_joins_content_blocks(self):
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(return_value=AIMessage(content=[
            {"type": "text", "text": "use "},
            {"type": "text", "text": "const"},
        ]))

        assert await ChatModelGateway(chat_model).analyze("x") == "use const"

    @pytest.mark.asyncio
    async def test_model_error_becomes_gateway_error(self):
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))

        with pytest.raises(InferenceGatewayError, match="rate limited"):
            await ChatModelGateway(chat_model).analyze("x")

    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self):
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(return_value=AIMessage(content="   "))

        with pytest.raises(InferenceGatewayError):
            await ChatModelGateway(chat_model).analyze("x")


def workers_ai(handler) -> WorkersAIGateway:
    return WorkersAIGateway(
        account_id="acct-123",
        api_token="secret-token",
        model=MODEL,
        transport=httpx.MockTransport(handler)
    )


class TestWorkersAIGateway:

    @pytest.mark.asyncio
    async def test_posts_messages_and_reads_response(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = unquote(request.url.path)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "result": {"response": "Use const for x."}})

        gateway = workers_ai(handler)
        try:
            assert await gateway.analyze("var x = 1;") == "Use const for x."
        finally:
            await gateway.aclose()

        assert captured["path"] == f"/client/v4/accounts/acct-123/ai/run/{MODEL}"
        assert captured["auth"] == "Bearer secret-token"
        assert captured["body"]["messages"] == [
            {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": "var x = 1;"},
        ]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        gateway = workers_ai(lambda request: httpx.Response(500, json={"success": False}))
        try:
            with pytest.raises(InferenceGatewayError, match="500"):
                await gateway.analyze("x")
        finally:
            await gateway.aclose()

    @pytest.mark.asyncio
    async def test_reported_failure(self):
        body = {"success": False, "errors": [{"message": "quota"}], "result": None}
        gateway = workers_ai(lambda request: httpx.Response(200, json=body))
        try:
            with pytest.raises(InferenceGatewayError, match="quota"):
                await gateway.analyze("x")
        finally:
            await gateway.aclose()

    @pytest.mark.asyncio
    async def test_missing_response_text(self):
        gateway = workers_ai(lambda request: httpx.Response(200, json={"success": True, "result": {}}))
        try:
            with pytest.raises(InferenceGatewayError):
                await gateway.analyze("x")
        finally:
            await gateway.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        gateway = workers_ai(lambda request: httpx.Response(200, text="<html>bad gateway</html>"))
        try:
            with pytest.raises(InferenceGatewayError):
                await gateway.analyze("x")
        finally:
            await gateway.aclose()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        gateway = workers_ai(handler)
        try:
            with pytest.raises(InferenceGatewayError, match="timed out"):
                await gateway.analyze("x")
        finally:
            await gateway.aclose()

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            WorkersAIGateway(account_id="", api_token="token")


@pytest.mark.asyncio
async def test_factory_builds_workers_ai_gateway():
    settings = Settings(cloudflare_account_id="acct", cloudflare_api_token="token", inference_model=MODEL)
    gateway = create_inference_gateway(settings)
    try:
        assert isinstance(gateway, WorkersAIGateway)
        assert gateway.model == MODEL
    finally:
        await gateway.aclose()


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        create_inference_gateway(Settings(gateway_provider="nope"))


@pytest.mark.asyncio
async def test_factory_wraps_chat_model():
    settings = Settings(gateway_provider="chat_model", system_prompt="be brief")
    gateway = create_inference_gateway(settings, FakeListChatModel(responses=["use const"]))

    assert isinstance(gateway, ChatModelGateway)
    assert gateway.system_prompt == "be brief"
    assert await gateway.analyze("var x = 1;") == "use const"


def test_factory_chat_model_provider_requires_model():
    with pytest.raises(ValueError):
        create_inference_gateway(Settings(gateway_provider="chat_model"))
