"""
Cloudflare Workers AI gateway.

Calls the Workers AI REST endpoint directly with httpx:

    POST {base_url}/accounts/{account_id}/ai/run/{model}
    {"messages": [{"role": "system", ...}, {"role": "user", ...}]}

and reads the advisory from ``result.response``.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from mentor.domain.errors import InferenceGatewayError
from mentor.infrastructure.config.settings import DEFAULT_SYSTEM_PROMPT
from .gateway import InferenceGateway

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"


class WorkersAIGateway(InferenceGateway):
    """Gateway for Workers AI text generation models"""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str = DEFAULT_MODEL,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not account_id or not api_token:
            raise ValueError("Workers AI needs both an account id and an API token")

        self.model = model
        self.system_prompt = system_prompt
        self.url = f"{base_url.rstrip('/')}/accounts/{account_id}/ai/run/{model}"
        self.client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_token}"},
            timeout=timeout,
            transport=transport
        )

    def _build_payload(self, text: str) -> Dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ]
        }

    async def analyze(self, text: str) -> str:
        logger.info("Calling Workers AI", model=self.model, input_chars=len(text))

        try:
            response = await self.client.post(self.url, json=self._build_payload(text))
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            logger.error("Workers AI timeout", model=self.model, error=str(e))
            raise InferenceGatewayError(f"Workers AI request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error("Workers AI HTTP error", model=self.model, status_code=e.response.status_code)
            raise InferenceGatewayError(f"Workers AI returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Workers AI error", model=self.model, error=str(e))
            raise InferenceGatewayError(f"Workers AI request failed: {e}") from e

        if body.get("success") is False:
            raise InferenceGatewayError(f"Workers AI reported failure: {body.get('errors')}")

        result = body.get("result") or {}
        advisory = result.get("response") if isinstance(result, dict) else None
        if not isinstance(advisory, str) or not advisory.strip():
            raise InferenceGatewayError("Workers AI response did not contain any text")

        logger.info("Workers AI response", model=self.model, output_chars=len(advisory))
        return advisory.strip()

    async def aclose(self) -> None:
        await self.client.aclose()
