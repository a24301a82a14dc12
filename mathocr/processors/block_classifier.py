"""
Block Classifier processor.

Sends one page raster to a vision model (Gemini through its
OpenAI-compatible endpoint by default) and turns the structured response
into ordered content blocks.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

import openai
from openai import OpenAI
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .base import BaseProcessor, ProcessingContext
from ..exceptions import ClassificationError, ConfigurationError
from ..models import BoundingBox, ContentBlock, RasterImage
from ..utils.ai_parser import extract_json
from ..utils.image_utils import to_data_url


CLASSIFIER_PROMPT = """\
You are a specialized Math OCR engine for Vietnamese High School Mathematics exams.

CRITICAL OBJECTIVES:
1. EXTRACT TEXT:
   - Convert all text to standard format.
   - Convert all math expressions (formulas, equations) to LaTeX, e.g. $f(x) = x^2 + 1$.

2. DETECT FIGURES (type: "figure"):
   - You MUST detect ALL visual elements that cannot be represented purely by text.
   - Specifically look for:
     * "Bảng biến thiên" (variation tables) -> FIGURE.
     * "Đồ thị hàm số" (function graphs) -> FIGURE.
     * "Hình học" (geometry figures: triangles, circles, cubes) -> FIGURE.
     * Coordinate systems with curves or lines -> FIGURE.

3. PRECISE CROPPING INSTRUCTIONS:
   - For every figure, return "box_2d" as [ymin, xmin, ymax, xmax], normalized 0-1.
   - The box must be EXTREMELY PRECISE but inclusive. Include:
     * All axis labels (x, y, O, values on axes).
     * All point labels (A, B, C, M, N...).
     * The entire border of the "Bảng biến thiên".
     * Legend text describing the graph if it is visually attached.
   - Do NOT include the question number (e.g. "Câu 1:") inside the figure box
     unless it overlaps the drawing.

4. OUTPUT:
   - Return the blocks in top-to-bottom reading order.
   - For "text" blocks fill "content"; for "figure" blocks fill "box_2d" and leave "content" empty.
"""

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "blocks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": ["text", "figure"],
                        "description": "Whether the section is text (including inline math) or a visual figure/graph.",
                    },
                    "content": {
                        "type": "string",
                        "description": "For 'text', the OCR content with LaTeX for math. For 'figure', leave empty.",
                    },
                    "box_2d": {
                        "type": "array",
                        "items": {"type": "number"},
                        "description": "The precise bounding box [ymin, xmin, ymax, xmax] (0-1) of a figure, including all labels.",
                    },
                },
                "required": ["type"],
            },
        },
    },
    "required": ["blocks"],
}


# Strict: booleans and numeric strings are rejected, JSON integers are fine
Coordinate = Annotated[float, Field(strict=True, allow_inf_nan=False)]
Box2D = Annotated[List[Coordinate], Field(min_length=4, max_length=4)]


class _TextItem(BaseModel):
    type: Literal["text"]
    content: str
    box_2d: Optional[List[Any]] = None


class _FigureItem(BaseModel):
    type: Literal["figure"]
    content: Optional[str] = None
    box_2d: Optional[Box2D] = None


_BlockItem = Annotated[Union[_TextItem, _FigureItem], Field(discriminator="type")]
_blocks_adapter = TypeAdapter(List[_BlockItem])


class BlockClassifier(BaseProcessor):
    """
    Classify a page raster into text and figure blocks.

    One request per page: the fixed instruction prompt plus the image,
    with a declared JSON schema and a low temperature. The response is
    validated immediately; anything that does not match the schema is a
    ClassificationError. An empty response means a blank page.
    """

    name = "BlockClassifier"

    def __init__(
        self,
        context: ProcessingContext,
        client: Optional[Any] = None,
        prompt: Optional[str] = None,
    ):
        """
        Initialize classifier.

        Args:
            context: Processing context
            client: OpenAI-compatible client (built from config when omitted)
            prompt: Instruction prompt override
        """
        super().__init__(context)
        self.client = client
        self.prompt = prompt or CLASSIFIER_PROMPT
        self.model = self.config.ai.model

    def validate(self) -> None:
        if self.client is None and not self.config.ai.api_key:
            raise ConfigurationError(
                "AI_API_KEY not set. Please set in .env or environment variables.",
                config_key="AI_API_KEY",
            )

    def _initialize_client(self) -> None:
        if self.client is None:
            self.validate()
            ai_config = self.config.ai
            self.client = OpenAI(
                api_key=ai_config.api_key,
                base_url=ai_config.get_normalized_base_url() or None,
                timeout=ai_config.timeout_sec,
                max_retries=0,
            )
        usage = self.context.ai_usage
        usage.provider = self.config.ai.provider
        usage.model = self.model

    def process(self, raster: RasterImage) -> List[ContentBlock]:
        """Classify a page raster."""
        return self.classify(raster.data, raster.media_type)

    def classify(self, data: bytes, media_type: str) -> List[ContentBlock]:
        """
        Classify one page image.

        Args:
            data: Encoded image bytes
            media_type: Media type of `data` (e.g. image/jpeg)

        Returns:
            Content blocks in reading order, figures not yet cropped

        Raises:
            ClassificationError: Service unreachable, non-success status or
                a response that does not match the schema
        """
        self._initialize_client()

        response_text = self._call_ai(data, media_type)

        if self.config.dump_raw_responses:
            self.logger.debug(f"Raw model response: {response_text[:2000] if response_text else 'EMPTY'}")

        blocks = self._parse_blocks(response_text)
        self.log_debug(
            f"Classified {len(blocks)} blocks",
            figures=sum(1 for b in blocks if b.is_figure),
        )
        return blocks

    def _build_payload(self, data: bytes, media_type: str) -> dict[str, Any]:
        ai_config = self.config.ai

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": to_data_url(data, media_type)},
                        },
                    ],
                },
            ],
            "temperature": ai_config.temperature,
            "max_tokens": ai_config.max_tokens,
        }

        if ai_config.response_format == "json_schema":
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "page_blocks", "schema": RESPONSE_SCHEMA},
            }
        elif ai_config.response_format == "json_object":
            payload["response_format"] = {"type": "json_object"}

        return payload

    def _call_ai(self, data: bytes, media_type: str) -> Optional[str]:
        """Send the request and return the message content."""
        ai_config = self.config.ai
        payload = self._build_payload(data, media_type)

        self.log_debug("Calling AI", model=self.model, provider=ai_config.provider or "default")

        try:
            completion = self.client.chat.completions.create(**payload)
        except openai.APIStatusError as e:
            raise ClassificationError(
                f"Model service returned HTTP {e.status_code}: {e.message}",
                ai_provider=ai_config.provider,
                model=self.model,
                recoverable=e.status_code in (408, 409, 429) or e.status_code >= 500,
            ) from e
        except openai.APIConnectionError as e:
            raise ClassificationError(
                f"Model service unreachable: {e}",
                ai_provider=ai_config.provider,
                model=self.model,
                recoverable=True,
            ) from e
        except openai.OpenAIError as e:
            raise ClassificationError(
                f"Model call failed: {e}",
                ai_provider=ai_config.provider,
                model=self.model,
                recoverable=False,
            ) from e

        self._track_usage(completion)

        try:
            choices = completion.choices
        except AttributeError as e:
            raise ClassificationError(
                f"Unexpected response shape: {e}",
                ai_provider=ai_config.provider,
                model=self.model,
            ) from e

        if not choices:
            return None
        return choices[0].message.content

    def _track_usage(self, completion: Any) -> None:
        u = getattr(completion, "usage", None)
        if u is None:
            self.log_debug("No usage data in AI response")
            return

        input_tokens = int(getattr(u, "prompt_tokens", 0) or 0)
        output_tokens = int(getattr(u, "completion_tokens", 0) or 0)
        cost = self.config.ai.estimate_cost(input_tokens, output_tokens)
        self.context.ai_usage.add_call(input_tokens, output_tokens, cost)

    def _parse_blocks(self, response_text: Optional[str]) -> List[ContentBlock]:
        """Validate the model output and convert it to content blocks."""
        try:
            payload = extract_json(response_text)
        except ValueError as e:
            raise self._schema_error(str(e), response_text) from e

        if payload is None:
            return []

        if isinstance(payload, dict):
            if "blocks" not in payload:
                raise self._schema_error("Response object has no 'blocks' array", response_text)
            payload = payload["blocks"]
            if payload is None:
                return []

        if not isinstance(payload, list):
            raise self._schema_error("Response is not an array of blocks", response_text)

        try:
            items = _blocks_adapter.validate_python(payload)
        except ValidationError as e:
            raise self._schema_error(
                f"Response does not match block schema ({e.error_count()} errors): {e.errors()[0]['msg']}",
                response_text,
            ) from e

        blocks: List[ContentBlock] = []
        for index, item in enumerate(items):
            if isinstance(item, _TextItem):
                if item.box_2d is not None:
                    self.log_debug(f"Dropping box_2d from text block {index}")
                blocks.append(ContentBlock.text_block(item.content))
            else:
                box = self._clamp_box(item.box_2d, index) if item.box_2d is not None else None
                if box is None:
                    self.log_warning(f"Figure block {index} has no box_2d; it will not be cropped")
                blocks.append(ContentBlock.figure_block(box))

        return blocks

    def _clamp_box(self, values: List[float], index: int) -> BoundingBox:
        """Clamp coordinates into [0, 1], warning when any was out of range."""
        clamped = [min(1.0, max(0.0, v)) for v in values]
        if clamped != list(values):
            self.log_warning(f"Figure block {index} box_2d out of range, clamped", box=list(values))
        return BoundingBox(*clamped)

    def _schema_error(self, message: str, response_text: Optional[str]) -> ClassificationError:
        return ClassificationError(
            f"Invalid model response: {message}",
            ai_provider=self.config.ai.provider,
            model=self.model,
            response_text=response_text,
            recoverable=False,
        )
