# server/core/completion.py
"""
Completion service client used by the diagnosis and monitoring agents
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from core.exceptions import AuthQuotaError, CompletionError

logger = logging.getLogger(__name__)

AUTH_QUOTA_STATUS_CODES = {401, 403, 429}
AUTH_QUOTA_MARKERS = (
    "resource_exhausted",
    "permission_denied",
    "unauthenticated",
    "api_key_invalid",
    "api_key_service_blocked",
    "api key not valid",
    "quota",
    "rate limit",
    "too many requests",
)

def strip_data_url(image: str) -> str:
    """Return the base64 payload of a data URL, or the input unchanged"""
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image

def is_auth_or_quota_error(error: BaseException) -> bool:
    """Classify a provider exception (or anything in its cause chain) as auth/quota"""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))

        for attr in ("status_code", "code", "status"):
            value = getattr(current, attr, None)
            if isinstance(value, int) and value in AUTH_QUOTA_STATUS_CODES:
                return True
            # grpc-style codes expose a name
            name = getattr(value, "name", None)
            if isinstance(name, str) and name.lower() in AUTH_QUOTA_MARKERS:
                return True

        message = str(current).lower()
        if any(marker in message for marker in AUTH_QUOTA_MARKERS):
            return True

        current = current.__cause__ or current.__context__
    return False

class CompletionClient(ABC):
    """Capability wrapper around a vision/text reasoning completion"""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        image: Optional[str] = None,
        continuity_token: Optional[str] = None,
        response_shape_hint: Optional[str] = None,
    ) -> str:
        """Return the raw completion text.

        Raises AuthQuotaError for auth/quota rejections and CompletionError for
        any other service failure.
        """

class GeminiCompletionClient(CompletionClient):
    """Completion client backed by Google Generative AI through LangChain"""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash",
        temperature: float = 0.2,
        max_output_tokens: int = 8192,
    ):
        self.model = model
        if not api_key:
            logger.warning("No GOOGLE_API_KEY found - completion calls will run in demo mode")
            self.llm = None
        else:
            self.llm = ChatGoogleGenerativeAI(
                model=model,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
                google_api_key=api_key,
            )
            logger.info(f"Completion client initialized with model {model}")

    async def complete(
        self,
        prompt: str,
        image: Optional[str] = None,
        continuity_token: Optional[str] = None,
        response_shape_hint: Optional[str] = None,
    ) -> str:
        if self.llm is None:
            raise AuthQuotaError("GOOGLE_API_KEY not configured")

        message = HumanMessage(content=self._build_content(prompt, image, continuity_token, response_shape_hint))

        try:
            response = await self.llm.ainvoke([message])
        except Exception as e:
            if is_auth_or_quota_error(e):
                logger.warning(f"Completion rejected (auth/quota): {e}")
                raise AuthQuotaError(str(e)) from e
            logger.error(f"Completion call failed: {e}")
            raise CompletionError(f"Completion call failed: {e}") from e

        return self._response_text(response.content)

    def _build_content(
        self,
        prompt: str,
        image: Optional[str],
        continuity_token: Optional[str],
        response_shape_hint: Optional[str],
    ) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = []

        # Forwarded verbatim
        if continuity_token:
            content.append({"type": "text", "text": f"CONTINUITY TOKEN: {continuity_token}"})

        content.append({"type": "text", "text": prompt})

        if response_shape_hint:
            content.append({
                "type": "text",
                "text": f"Respond with a single JSON object in the {response_shape_hint} format described above."
            })

        if image:
            content.append({
                "type": "image_url",
                "image_url": {"url": image if image.startswith("data:") else f"data:image/jpeg;base64,{image}"}
            })

        return content

    @staticmethod
    def _response_text(content: Any) -> str:
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, str):
                    parts.append(part)
                elif isinstance(part, dict) and isinstance(part.get("text"), str):
                    parts.append(part["text"])
            return "".join(parts)
        return str(content)
