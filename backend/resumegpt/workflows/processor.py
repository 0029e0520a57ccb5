import json
import re
from typing import Any, Dict, Iterable, List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import ValidationError

from ..core.errors import MalformedOutput
from ..spec.output_models import ChatEnvelope, CoverLetterEnvelope, Turn

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_JSON_FINDER = re.compile(r"\{.*\}", re.S)

_MARKUP = [
    (re.compile(r"```[a-zA-Z]*"), ""),
    (re.compile(r"\*\*|__|`"), ""),
    # Single-character emphasis; snake_case and spaced asterisks are left alone
    (re.compile(r"(?<![\w*])\*(?=\S)([^*\n]+?)(?<=\S)\*(?![\w*])"), r"\1"),
    (re.compile(r"(?<!\w)_(?=\S)([^_\n]+?)(?<=\S)_(?!\w)"), r"\1"),
    (re.compile(r"^[ \t]{0,3}#{1,6}[ \t]*", re.M), ""),
    (re.compile(r"^[ \t]*[*•][ \t]+", re.M), ""),
]

ENVELOPE_KEYS = {"acknowledgement", "updatedSection"}


def parse_json_object(raw: str) -> Any:
    """Parse model output as JSON, tolerating code fences and chatter around one object."""
    cleaned = _CODE_FENCE.sub(r"\1", raw or "").strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        if m := _JSON_FINDER.search(cleaned):
            try:
                return json.loads(m.group())
            except json.JSONDecodeError:
                pass
    raise MalformedOutput("Model output is not valid JSON", raw_output=raw)


def parse_chat_envelope(raw: str, document_fields: Iterable[str]) -> ChatEnvelope:
    """
    Enforce the {acknowledgement, updatedSection} shape.

    Document fields emitted at the top level instead of inside updatedSection
    are folded into the patch; anything else unexpected is malformed.
    """
    data = parse_json_object(raw)
    if not isinstance(data, dict):
        raise MalformedOutput(
            f"Expected a JSON object, got {type(data).__name__}", raw_output=raw
        )

    extra = set(data) - ENVELOPE_KEYS
    unknown = extra - set(document_fields)
    if unknown:
        raise MalformedOutput(f"Unexpected keys in model output: {sorted(unknown)}", raw_output=raw)

    try:
        envelope = ChatEnvelope.model_validate({k: data[k] for k in ENVELOPE_KEYS if k in data})
    except ValidationError as e:
        raise MalformedOutput(f"Model output does not match the reply shape: {e}", raw_output=raw) from e

    if extra:
        stray = {k: data[k] for k in extra}
        envelope = envelope.model_copy(update={"updatedSection": {**stray, **envelope.updatedSection}})
    return envelope


def parse_cover_letter_envelope(raw: str) -> Dict[str, Any]:
    data = parse_json_object(raw)
    try:
        return CoverLetterEnvelope.model_validate(data).coverLetterData
    except ValidationError as e:
        raise MalformedOutput(f"Model output does not match the cover letter shape: {e}", raw_output=raw) from e


def to_plain_text(text: str) -> str:
    for pattern, replacement in _MARKUP:
        text = pattern.sub(replacement, text)
    return text.strip()


def turns_to_messages(turns: List[Turn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for turn in turns:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))
    return messages
