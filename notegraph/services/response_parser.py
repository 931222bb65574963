"""
Parse raw model responses into display text and explicit triples.

Provider envelopes are normalised by a fixed, ordered set of adapters;
structured content is then decoded according to the declared format.
Parse failures are recorded in an error log and never raised.
"""

import csv
import html
import json
import re
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from notegraph.models.response import (
    ParsedResponse,
    ResponseFormat,
    StructuredResponse,
    StructuredTriplePayload,
)
from notegraph.models.triple import KnowledgeTriple
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)

XML_CONFIDENCE = 0.8
CSV_CONFIDENCE = 0.7
TRIPLE_CONFIDENCE = 0.8

ASSISTANT_MARKER = "Assistant:"

CODE_FENCE_PATTERN = re.compile(r"```[\w-]*[ \t]*\n?(.*?)```", re.DOTALL)

XML_TRIPLE_PATTERN = re.compile(
    r"<triple>\s*<subject>(.*?)</subject>\s*<predicate>(.*?)</predicate>\s*"
    r"<object>(.*?)</object>\s*</triple>",
    re.DOTALL | re.IGNORECASE,
)
TEXT_TRIPLE_PATTERN = re.compile(
    r"Subject:\s*(?P<subject>[^,\n]+?)\s*,\s*Predicate:\s*(?P<predicate>[^,\n]+?)\s*,\s*"
    r"Object:\s*(?P<object>.+?)(?=\s*(?:\bSubject:|\n|$))",
    re.IGNORECASE,
)


# ═══════════════════════════════════════════════════════════
# ENVELOPE ADAPTERS
# ═══════════════════════════════════════════════════════════


class EnvelopeAdapter(ABC):
    """Recognise one provider response shape and pull its text out."""

    name: str = "envelope"

    @abstractmethod
    def extract(self, raw: Any) -> str | None:
        """Return the answer text, or None when raw is not this shape."""
        pass


class ChatCompletionAdapter(EnvelopeAdapter):
    """OpenAI style: choices[0].message.content"""

    name = "chat_completion"

    def extract(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        choices = raw.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return None


class CandidatePartsAdapter(EnvelopeAdapter):
    """Gemini style: candidates[0].content.parts[*].text"""

    name = "candidate_parts"

    def extract(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        candidates = raw.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return None
        content = candidates[0].get("content")
        if not isinstance(content, dict) or not isinstance(content.get("parts"), list):
            return None
        texts = [
            part["text"]
            for part in content["parts"]
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "".join(texts) if texts else None


class ChatMessageAdapter(EnvelopeAdapter):
    """Ollama style: message.content"""

    name = "chat_message"

    def extract(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        message = raw.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return None


class ContentBlocksAdapter(EnvelopeAdapter):
    """Anthropic style: content[*].text"""

    name = "content_blocks"

    def extract(self, raw: Any) -> str | None:
        if not isinstance(raw, dict) or not isinstance(raw.get("content"), list):
            return None
        texts = [
            block["text"]
            for block in raw["content"]
            if isinstance(block, dict)
            and block.get("type", "text") == "text"
            and isinstance(block.get("text"), str)
        ]
        return "".join(texts) if texts else None


class FlatFieldAdapter(EnvelopeAdapter):
    """A top-level answer, output or text field."""

    name = "flat_field"
    fields = ("answer", "output", "text")

    def extract(self, raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return None
        for field in self.fields:
            if isinstance(raw.get(field), str):
                return raw[field]
        return None


class PlainStringAdapter(EnvelopeAdapter):
    """A bare string, trimmed to what follows the last "Assistant:" marker."""

    name = "plain_string"

    def extract(self, raw: Any) -> str | None:
        if not isinstance(raw, str):
            return None
        if ASSISTANT_MARKER in raw:
            return raw.rsplit(ASSISTANT_MARKER, 1)[1].strip()
        return raw.strip()


ENVELOPE_ADAPTERS: tuple[EnvelopeAdapter, ...] = (
    ChatCompletionAdapter(),
    CandidatePartsAdapter(),
    ChatMessageAdapter(),
    ContentBlocksAdapter(),
    FlatFieldAdapter(),
    PlainStringAdapter(),
)


# ═══════════════════════════════════════════════════════════
# PARSER
# ═══════════════════════════════════════════════════════════


class ResponseParser:
    """
    Turn a raw model response into text and explicitly stated triples.

    Keeps an error log per parse() call; get_parsing_errors() exposes it.
    """

    def __init__(self, adapters: tuple[EnvelopeAdapter, ...] = ENVELOPE_ADAPTERS):
        self.adapters = adapters
        self._errors: list[str] = []

    def get_parsing_errors(self) -> list[str]:
        return list(self._errors)

    def _record(self, message: str) -> None:
        logger.debug(f"Parse error: {message}")
        self._errors.append(message)

    def extract_text(self, raw: Any) -> str:
        """Normalise a provider envelope to answer text; unknown shapes give ""."""
        if hasattr(raw, "model_dump"):
            raw = raw.model_dump()

        for adapter in self.adapters:
            text = adapter.extract(raw)
            if text is not None:
                return text

        self._record(f"Unrecognised response shape: {type(raw).__name__}")
        return ""

    def parse(
        self,
        raw: Any,
        expected_format: ResponseFormat = ResponseFormat.STRUCTURED,
        source: str = "unknown",
    ) -> ParsedResponse:
        """
        Parse a raw response.

        Args:
            raw: Provider response (SDK object, dict or string)
            expected_format: Declared structured format
            source: Model identifier stamped on each triple

        Returns:
            ParsedResponse with display text, triples and recorded errors
        """
        self._errors = []
        text = self.extract_text(raw)

        structured = None
        if text and expected_format != ResponseFormat.RAW_TEXT:
            structured = self.parse_structured(text, expected_format, source)

        display_text = structured.answer if structured and structured.answer else text
        return ParsedResponse(
            text=display_text,
            triples=structured.triples if structured else [],
            format=structured.format if structured else None,
            errors=self.get_parsing_errors(),
        )

    def parse_structured(
        self, text: str, expected_format: ResponseFormat, source: str = "unknown"
    ) -> StructuredResponse | None:
        """Dispatch on the declared format; None when nothing structured was found."""
        if expected_format == ResponseFormat.JSON:
            return self.parse_json(text, source)
        if expected_format == ResponseFormat.XML:
            return self.parse_xml(text, source)
        if expected_format == ResponseFormat.CSV:
            return self.parse_csv(text, source)
        if expected_format == ResponseFormat.TRIPLE:
            return self.parse_triple_text(text, source)
        if expected_format == ResponseFormat.STRUCTURED:
            return self._parse_any(text, source)
        return None

    def _parse_any(self, text: str, source: str) -> StructuredResponse | None:
        """JSON, then TRIPLE, then XML; individual misses are not errors."""
        errors_before = list(self._errors)
        for attempt in (self.parse_json, self.parse_triple_text, self.parse_xml):
            result = attempt(text, source)
            if result is not None:
                self._errors = errors_before
                return result

        self._errors = errors_before
        self._record("No structured content found (tried JSON, TRIPLE, XML)")
        return None

    # ═══════════════════════════════════════════════════════════
    # FORMATS
    # ═══════════════════════════════════════════════════════════

    def parse_json(self, text: str, source: str = "unknown") -> StructuredResponse | None:
        try:
            data = json.loads(self._strip_code_fence(text))
        except json.JSONDecodeError as e:
            self._record(f"Invalid JSON: {e.msg} at position {e.pos}")
            return None
        except RecursionError:
            self._record("Invalid JSON: nesting too deep")
            return None

        if isinstance(data, list):
            data = {"triples": data}
        if not isinstance(data, dict):
            self._record(f"JSON payload must be an object, got {type(data).__name__}")
            return None

        try:
            payload = StructuredTriplePayload.model_validate(data)
        except PydanticValidationError as e:
            self._record(f"Invalid JSON triple payload: {e.error_count()} error(s)")
            return None

        return StructuredResponse(
            format=ResponseFormat.JSON,
            answer=payload.answer,
            triples=[
                KnowledgeTriple(
                    subject=t.subject,
                    predicate=t.predicate,
                    object=t.object,
                    confidence=t.confidence,
                    source=source,
                )
                for t in payload.triples
            ],
        )

    def parse_xml(self, text: str, source: str = "unknown") -> StructuredResponse | None:
        triples = []
        for match in XML_TRIPLE_PATTERN.finditer(text):
            subject, predicate, obj = (html.unescape(part).strip() for part in match.groups())
            if subject and predicate and obj:
                triples.append(self._triple(subject, predicate, obj, XML_CONFIDENCE, source))

        if not triples:
            self._record("No <triple> elements found in XML")
            return None
        return StructuredResponse(format=ResponseFormat.XML, triples=triples)

    def parse_csv(self, text: str, source: str = "unknown") -> StructuredResponse | None:
        try:
            rows = list(csv.reader(self._strip_code_fence(text).splitlines()))
        except csv.Error as e:
            self._record(f"Invalid CSV: {e}")
            return None
        rows = [row for row in rows if any(cell.strip() for cell in row)]
        if not rows:
            self._record("CSV is empty")
            return None

        header = [cell.strip().strip("\"'").lower() for cell in rows[0]]
        missing = [col for col in ("subject", "predicate", "object") if col not in header]
        if missing:
            self._record(f"CSV header missing required columns: {', '.join(missing)}")
            return None

        indices = [header.index(col) for col in ("subject", "predicate", "object")]
        triples = []
        for row in rows[1:]:
            values = [row[i].strip().strip("\"'").strip() if i < len(row) else "" for i in indices]
            if all(values):
                triples.append(self._triple(*values, CSV_CONFIDENCE, source))

        return StructuredResponse(format=ResponseFormat.CSV, triples=triples)

    def parse_triple_text(self, text: str, source: str = "unknown") -> StructuredResponse | None:
        triples = []
        for match in TEXT_TRIPLE_PATTERN.finditer(text):
            subject = match.group("subject").strip().strip("\"'")
            predicate = match.group("predicate").strip().strip("\"'")
            obj = match.group("object").strip().rstrip(".;").strip().strip("\"'")
            if subject and predicate and obj:
                triples.append(self._triple(subject, predicate, obj, TRIPLE_CONFIDENCE, source))

        if not triples:
            self._record("No 'Subject: ..., Predicate: ..., Object: ...' lines found")
            return None
        return StructuredResponse(format=ResponseFormat.TRIPLE, triples=triples)

    @staticmethod
    def _triple(subject: str, predicate: str, obj: str, confidence: float, source: str) -> KnowledgeTriple:
        return KnowledgeTriple(
            subject=subject, predicate=predicate, object=obj, confidence=confidence, source=source
        )

    @staticmethod
    def _strip_code_fence(content: str) -> str:
        """Return the body of a fenced code block, or the stripped content."""
        content = content.strip()
        match = CODE_FENCE_PATTERN.search(content)
        return match.group(1).strip() if match else content
