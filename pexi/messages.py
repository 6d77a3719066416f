"""
Conversation data model.

A :class:`Turn` is one message authored by the user or the model.  Each turn
holds an ordered, non-empty tuple of :class:`ContentPart` objects, and each
part carries exactly one payload: plain text or inline base64 data.

The ``to_dict`` / ``from_dict`` helpers produce and accept the JSON shapes
used by the Gemini ``generateContent`` endpoint::

    {"text": "..."}
    {"inlineData": {"mimeType": "image/png", "data": "<base64>"}}
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Author of a turn.  Values are the wire names used by the API."""

    USER = "user"
    MODEL = "model"


@dataclass(frozen=True)
class InlineData:
    """Base64-encoded binary payload with its declared MIME type."""

    mime_type: str
    data: str


@dataclass(frozen=True)
class ContentPart:
    """An atomic piece of a turn's content: text *or* inline data."""

    text: str | None = None
    inline_data: InlineData | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.inline_data is None):
            raise ValueError(
                "ContentPart needs exactly one of 'text' or 'inline_data'."
            )

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def from_inline_data(cls, mime_type: str, data: str) -> "ContentPart":
        return cls(inline_data=InlineData(mime_type=mime_type, data=data))

    @property
    def is_text(self) -> bool:
        return self.text is not None

    @property
    def is_image(self) -> bool:
        return (
            self.inline_data is not None
            and self.inline_data.mime_type.startswith("image/")
        )

    def to_dict(self) -> dict:
        """Return the request form of this part."""
        if self.inline_data is not None:
            return {
                "inlineData": {
                    "mimeType": self.inline_data.mime_type,
                    "data": self.inline_data.data,
                },
            }
        return {"text": self.text}

    @classmethod
    def from_dict(cls, raw: dict) -> "ContentPart":
        """Inverse of :meth:`to_dict`.

        Raises
        ------
        ValueError
            When *raw* carries neither (or both) of the payload keys, or the
            inline data block is incomplete.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"Content part must be a dict, got {type(raw).__name__}.")
        has_text = "text" in raw
        has_inline = "inlineData" in raw
        if has_text == has_inline:
            raise ValueError(f"Malformed content part: keys {sorted(raw)}")
        if has_text:
            if not isinstance(raw["text"], str):
                raise ValueError(
                    f"Text part must be a string, got {type(raw['text']).__name__}."
                )
            return cls.from_text(raw["text"])
        block = raw["inlineData"]
        try:
            return cls.from_inline_data(block["mimeType"], block["data"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed inlineData block: {block!r}") from exc


def _new_turn_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Turn:
    """One message in the conversation.  Immutable once created."""

    role: Role
    parts: tuple[ContentPart, ...]
    id: str = field(default_factory=_new_turn_id)
    # Set on model turns synthesised from a failed request; never sent.
    failed: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable of parts but store a tuple.
        object.__setattr__(self, "parts", tuple(self.parts))
        object.__setattr__(self, "role", Role(self.role))
        if not self.parts:
            raise ValueError("A turn must contain at least one content part.")

    @property
    def text(self) -> str:
        """All text parts joined by newlines (attachments are skipped)."""
        return "\n".join(p.text for p in self.parts if p.text is not None)

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "parts": [p.to_dict() for p in self.parts],
        }
