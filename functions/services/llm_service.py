"""LLM service for RoofEstimate.

Both analysis backends are LLM calls: the image-analysis backend sends the
overhead image as an image content part, the structural-analysis backend
sends text only. This module owns the ChatOpenAI client, token accounting,
error classification and JSON decoding for both.
"""

import json
import re
from typing import Dict, Any, Optional, List, Union
import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from config.settings import settings
from config.errors import RoofEstimateError, ErrorCode

logger = structlog.get_logger()


JSON_ONLY_INSTRUCTION = (
    "IMPORTANT: You MUST respond with valid JSON only. "
    "No markdown, no explanation, just JSON."
)

# ```json ... ``` or ``` ... ``` wrapped around the whole reply
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

RAW_CONTENT_PREVIEW_CHARS = 500


def build_messages(
    system_prompt: str,
    user_message: str,
    image_url: Optional[str] = None
) -> List[BaseMessage]:
    """System + user messages, with the image as a high-detail content part."""
    content: Union[str, List[Dict[str, Any]]] = user_message
    if image_url:
        content = [
            {"type": "text", "text": user_message},
            {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
        ]
    return [SystemMessage(content=system_prompt), HumanMessage(content=content)]


def strip_code_fence(text: str) -> str:
    """Remove a markdown code fence wrapped around a reply, if present."""
    text = text.strip()
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


def classify_llm_error(error: Exception) -> RoofEstimateError:
    """Map a provider exception onto an error code."""
    error_msg = str(error)
    lowered = error_msg.lower()

    if "rate_limit" in lowered or "429" in lowered:
        code, message = ErrorCode.LLM_RATE_LIMIT, "OpenAI rate limit exceeded"
    elif "context_length" in lowered or "maximum context" in lowered:
        code, message = ErrorCode.LLM_CONTEXT_TOO_LONG, "Roof analysis prompt too long for model context"
    else:
        code, message = ErrorCode.LLM_ERROR, f"LLM generation failed: {error_msg}"

    return RoofEstimateError(code=code, message=message, details={"original_error": error_msg})


class LLMService:
    """ChatOpenAI wrapper shared by the analysis backends.

    Tracks token usage across calls and converts provider failures into
    RoofEstimateError.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None
    ):
        """Initialize LLMService.

        Args:
            model: Vision-capable chat model (default from settings).
            temperature: Sampling temperature; 0.0 is honored (default from settings).
            api_key: OpenAI API key (default from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """ChatOpenAI client, created on first use."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        return self._total_tokens_used

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Invoke the model.

        Returns:
            {"content": str, "tokens_used": int}

        Raises:
            RoofEstimateError: LLM_RATE_LIMIT, LLM_CONTEXT_TOO_LONG or LLM_ERROR.
        """
        kwargs = {"max_tokens": max_tokens} if max_tokens else {}
        try:
            response = await self.client.ainvoke(messages, **kwargs)
        except Exception as e:
            error = classify_llm_error(e)
            logger.warning("llm_call_failed", model=self.model, code=error.code)
            raise error from e

        usage = getattr(response, "response_metadata", None) or {}
        tokens_used = usage.get("token_usage", {}).get("total_tokens", 0)
        self._total_tokens_used += tokens_used

        logger.info(
            "llm_generated",
            model=self.model,
            tokens_used=tokens_used,
            content_length=len(response.content)
        )
        return {"content": response.content, "tokens_used": tokens_used}

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        image_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """Invoke the model with a system prompt and an optional image.

        Args:
            system_prompt: Analyst instructions.
            user_message: Property-specific request.
            max_tokens: Optional response cap.
            image_url: Data URL or remote URL of an overhead image.
        """
        return await self.generate(build_messages(system_prompt, user_message, image_url), max_tokens)

    async def generate_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        image_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """Invoke the model and decode its reply as JSON.

        Returns:
            {"content": decoded JSON, "tokens_used": int}

        Raises:
            RoofEstimateError: LLM_ERROR if the reply is not valid JSON.
        """
        result = await self.generate_with_system_prompt(
            f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}",
            user_message,
            max_tokens,
            image_url=image_url
        )

        try:
            parsed = json.loads(strip_code_fence(result["content"]))
        except json.JSONDecodeError as e:
            raise RoofEstimateError(
                code=ErrorCode.LLM_ERROR,
                message="LLM did not return valid JSON",
                details={
                    "parse_error": str(e),
                    "raw_content": result["content"][:RAW_CONTENT_PREVIEW_CHARS]
                }
            ) from e

        return {"content": parsed, "tokens_used": result["tokens_used"]}
