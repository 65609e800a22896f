from typing import Optional

from langchain_core.language_models.chat_models import BaseChatModel

from .gateway import InferenceGateway, ChatModelGateway, build_messages
from .workers_ai import WorkersAIGateway

from mentor.infrastructure.config.settings import Settings


def create_inference_gateway(settings: Settings, chat_model: Optional[BaseChatModel] = None) -> InferenceGateway:
    """Build the gateway selected by settings.gateway_provider.

    ``workers_ai`` calls the Cloudflare REST API; ``chat_model`` wraps the
    given LangChain chat model, which the caller must supply.
    """
    if settings.gateway_provider == "chat_model":
        if chat_model is None:
            raise ValueError("gateway_provider 'chat_model' requires a chat model instance")
        return ChatModelGateway(chat_model, system_prompt=settings.system_prompt)

    if settings.gateway_provider != "workers_ai":
        raise ValueError(f"Unknown gateway provider: {settings.gateway_provider}")

    return WorkersAIGateway(
        account_id=settings.cloudflare_account_id or "",
        api_token=settings.cloudflare_api_token or "",
        model=settings.inference_model,
        system_prompt=settings.system_prompt,
        base_url=settings.workers_ai_base_url,
        timeout=settings.gateway_timeout_seconds
    )


__all__ = [
    "InferenceGateway",
    "ChatModelGateway",
    "WorkersAIGateway",
    "build_messages",
    "create_inference_gateway",
]
