"""
Vision-description and table-summarization providers.

Both run on Gemini through langchain_google_genai. The vision provider sends
the image as a base64 data URI inside a multimodal HumanMessage together with
the context-aware prompt. The table summarizer degrades to returning the
table verbatim whenever the model is unavailable.

Dependencies: langchain_google_genai, langchain_core
System role: LLM boundary for visual enrichment and table summaries
"""

import base64
import logging
from typing import Any, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from kb_pipeline.core.document_processing.prompts import TABLE_SUMMARY_PROMPT, build_vision_prompt
from kb_pipeline.core.exceptions import ConfigurationError, VisionError

logger = logging.getLogger(__name__)


class VisionProvider(Protocol):
    """Turns an image plus context into descriptive text."""

    @property
    def has_credentials(self) -> bool:
        ...

    async def describe(
        self,
        image: bytes,
        element_type: str,
        domain: str,
        page_number: int | None = None,
    ) -> str:
        ...


def detect_image_mime(data: bytes) -> str:
    """Sniff the image MIME type from magic bytes (defaults to PNG)."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def message_text(content: Any) -> str:
    """Flatten a chat model response content into plain text."""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts).strip()
    return ""


class GeminiVisionProvider:
    """Describe visual elements with a multimodal Gemini model."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str = "gemini-2.5-flash",
        timeout_seconds: float = 60.0,
        model: BaseChatModel | None = None,
    ) -> None:
        """
        Initialize the vision provider.

        Args:
            api_key: Google API key
            model_name: Gemini model identifier
            timeout_seconds: Request timeout
            model: Pre-built chat model (overrides the other arguments)
        """
        self.model_name = model_name
        if model is not None:
            self._model: BaseChatModel | None = model
        elif api_key:
            self._model = ChatGoogleGenerativeAI(
                model=model_name,
                temperature=0,
                google_api_key=api_key,
                timeout=timeout_seconds,
            )
        else:
            self._model = None

    @property
    def has_credentials(self) -> bool:
        return self._model is not None

    async def describe(
        self,
        image: bytes,
        element_type: str,
        domain: str,
        page_number: int | None = None,
    ) -> str:
        """
        Describe one image.

        Args:
            image: Raw image bytes
            element_type: Layout element hint
            domain: Resolved document domain
            page_number: Source page, when known

        Returns:
            str: Description (may be empty; the caller treats that as failure)

        Raises:
            ConfigurationError: No Google API key configured
            VisionError: When the model call fails
        """
        if self._model is None:
            raise ConfigurationError("Google API key not configured", setting="PROVIDER_GOOGLE_API_KEY")

        prompt = build_vision_prompt(element_type, domain, page_number)
        data_uri = f"data:{detect_image_mime(image)};base64,{base64.b64encode(image).decode('ascii')}"
        message = HumanMessage(
            content=[
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": data_uri}},
            ]
        )

        try:
            response = await self._model.ainvoke([message])
        except Exception as e:
            raise VisionError(f"Vision provider call failed: {type(e).__name__}: {e}") from e

        description = message_text(response.content)
        logger.info(
            f"{__name__}:describe - Described {element_type} ({domain}): {len(description)} chars"
        )
        return description


class TableSummarizer:
    """Summarize markdown tables, falling back to the table itself."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str = "gemini-2.5-flash-lite",
        model: BaseChatModel | None = None,
    ) -> None:
        if model is not None:
            self._model: BaseChatModel | None = model
        elif api_key:
            self._model = ChatGoogleGenerativeAI(model=model_name, temperature=0, google_api_key=api_key)
        else:
            self._model = None

    async def summarize(self, markdown: str) -> str:
        """
        Short natural-language summary of a markdown table.

        Args:
            markdown: Table in markdown

        Returns:
            str: Summary, or the original markdown when the provider is
            unavailable, fails, or returns nothing
        """
        if self._model is None:
            logger.warning(f"{__name__}:summarize - No credentials, keeping table verbatim")
            return markdown

        try:
            response = await (TABLE_SUMMARY_PROMPT | self._model).ainvoke({"table": markdown})
        except Exception as e:
            logger.warning(
                f"{__name__}:summarize - {type(e).__name__}: {e}; keeping table verbatim"
            )
            return markdown

        summary = message_text(response.content)
        return summary or markdown
