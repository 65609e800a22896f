from abc import ABC, abstractmethod
from typing import Any, List

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from mentor.domain.errors import InferenceGatewayError
from mentor.infrastructure.config.settings import DEFAULT_SYSTEM_PROMPT

logger = structlog.get_logger(__name__)


class InferenceGateway(ABC):
    """External analysis call that turns a snapshot into a short advisory"""

    @abstractmethod
    async def analyze(self, text: str) -> str:
        """
        Analyze a document snapshot.

        Args:
            text: Full document snapshot

        Returns:
            Advisory text, never empty

        Raises:
            InferenceGatewayError: If the call fails or returns no advisory
        """

    async def aclose(self) -> None:
        """Release any transport resources"""


def build_messages(system_prompt: str, text: str) -> List[BaseMessage]:
    """Prompt layout shared by every chat-style gateway"""
    return [
        SystemMessage(content=system_prompt),
        HumanMessage(content=text),
    ]


def _content_to_text(content: Any) -> str:
    # Chat models may return a list of content blocks instead of a string
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class ChatModelGateway(InferenceGateway):
    """Gateway backed by any LangChain chat model"""

    def __init__(self, chat_model: BaseChatModel, system_prompt: str = DEFAULT_SYSTEM_PROMPT):
        self.chat_model = chat_model
        self.system_prompt = system_prompt

    async def analyze(self, text: str) -> str:
        messages = build_messages(self.system_prompt, text)

        try:
            response = await self.chat_model.ainvoke(messages)
        except Exception as e:
            logger.error("Chat model call failed", error=str(e))
            raise InferenceGatewayError(f"Chat model call failed: {e}") from e

        advisory = _content_to_text(response.content).strip()
        if not advisory:
            raise InferenceGatewayError("Chat model returned an empty response")

        return advisory
