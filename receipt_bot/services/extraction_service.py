"""Receipt transcription using the OpenAI Responses API.

The service sends the processed receipt photo (and the user's comment,
if any) to a vision model and asks for structured output constrained by
a strict JSON schema: store name, products with price and category, and
the total. Token usage is returned alongside the analysis so the bot can
report the cost of the call.

A failed call is never retried here; every failure, whether from the
API, an empty response or output that does not match the schema, is
raised as ``CollaboratorError("transcription", ...)``.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from receipt_bot.core.config import settings
from receipt_bot.core.exceptions import CollaboratorError
from receipt_bot.models.schemas import AnalysisResult, ReceiptAnalysis, TokenUsage
from receipt_bot.utils.prompts import get_transcription_prompt

logger = logging.getLogger(__name__)

RECEIPT_ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "store_name": {
            "type": "string",
            "description": "The name of the store where the receipt was issued.",
        },
        "products": {
            "type": "array",
            "description": "List of products purchased.",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "The name of the product."},
                    "price": {"type": "number", "description": "The price of the product."},
                    "category": {"type": "string", "description": "The category to which the product belongs."},
                },
                "required": ["name", "price", "category"],
                "additionalProperties": False,
            },
        },
        "total_amount": {"type": "number", "description": "The total amount spent on the receipt."},
    },
    "required": ["store_name", "products", "total_amount"],
    "additionalProperties": False,
}


class ExtractionService:
    """Service responsible for transcribing receipt photos.

    Diagnostic logging can be enabled by setting env var EXTRACTION_DEBUG=1.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> None:
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.model: str = model or settings.EXTRACTION_MODEL
        self.max_output_tokens: int = max_output_tokens or settings.EXTRACTION_MAX_OUTPUT_TOKENS
        self.debug: bool = os.getenv("EXTRACTION_DEBUG", "0").lower() in {"1", "true", "yes"}

    def _image_to_base64(self, data: bytes) -> str:
        """Encode raw image bytes as a base64 string."""
        return base64.b64encode(data).decode("utf-8")

    def _build_input(self, image_data: bytes, user_comment: str, categories: str) -> list[dict[str, Any]]:
        user_content: list[dict[str, Any]] = [
            {
                "type": "input_image",
                "image_url": f"data:image/jpeg;base64,{self._image_to_base64(image_data)}",
                "detail": "auto",
            }
        ]
        if user_comment:
            user_content.append({"type": "input_text", "text": user_comment})
        return [
            {"role": "system", "content": [{"type": "input_text", "text": get_transcription_prompt(categories)}]},
            {"role": "user", "content": user_content},
        ]

    async def analyze(self, image_data: bytes, user_comment: str, categories: str) -> AnalysisResult:
        """Transcribe one receipt photo.

        :param image_data: JPEG bytes of the processed photo
        :param user_comment: Free-text hint from the user; empty to omit
        :param categories: Category list rendered for the prompt
        :returns: The parsed analysis and the token usage of the call
        """
        if self.debug:
            logger.info("[extraction] model=%s size=%d comment=%s", self.model, len(image_data), bool(user_comment))
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=self._build_input(image_data, user_comment, categories),
                text={
                    "format": {
                        "type": "json_schema",
                        "name": "receipt_analysis",
                        "strict": True,
                        "schema": RECEIPT_ANALYSIS_SCHEMA,
                    }
                },
                max_output_tokens=self.max_output_tokens,
            )
        except OpenAIError as e:
            logger.error("[extraction] OpenAI call failed: %s", e)
            raise CollaboratorError("transcription", str(e), e) from e

        raw_json_text = getattr(response, "output_text", "") or ""
        if not raw_json_text:
            raise CollaboratorError("transcription", "empty response output")
        try:
            analysis = ReceiptAnalysis.model_validate(json.loads(raw_json_text))
        except ValueError as e:  # JSONDecodeError and pydantic.ValidationError
            logger.error("[extraction] unparsable output: %s", raw_json_text[:200])
            raise CollaboratorError("transcription", f"invalid structured output: {e}", e) from e

        raw_usage = getattr(response, "usage", None)
        usage = TokenUsage(
            input_tokens=getattr(raw_usage, "input_tokens", 0) or 0,
            output_tokens=getattr(raw_usage, "output_tokens", 0) or 0,
            total_tokens=getattr(raw_usage, "total_tokens", 0) or 0,
        )
        if self.debug:
            logger.info(
                "[extraction] store=%s products=%d tokens=%d",
                analysis.store_name,
                len(analysis.products),
                usage.total_tokens,
            )
        return AnalysisResult(analysis=analysis, usage=usage)
