"""Pending user input: free text plus at most one attachment."""

import logging

from .file_handler import Attachment, read_attachment
from .messages import ContentPart

log = logging.getLogger("pexi")

# Tk event.state bit for the Shift modifier.
SHIFT_MASK = 0x1


def is_submit_keypress(keysym: str, state: int) -> bool:
    """Return *True* when a key press should submit instead of editing.

    Bare Return submits; Shift+Return inserts a literal newline.
    """
    if keysym not in ("Return", "KP_Enter"):
        return False
    return not state & SHIFT_MASK


class InputComposer:
    """Accumulates text and one attachment between submissions."""

    def __init__(self) -> None:
        self.text: str = ""
        self.attachment: Attachment | None = None

    def set_text(self, value: str) -> None:
        # Trimming happens on submit only.
        self.text = value

    def attach_file(self, file_path: str) -> Attachment:
        """Read *file_path* and make it the pending attachment.

        Any previous attachment is replaced.  On :class:`OSError` the
        composer is left unchanged and the error propagates.
        """
        return self.attach(read_attachment(file_path))

    def attach(self, attachment: Attachment) -> Attachment:
        if self.attachment is not None:
            log.debug("[APP] replacing attachment %s with %s",
                      self.attachment.name, attachment.name)
        self.attachment = attachment
        return attachment

    def remove_attachment(self) -> None:
        self.attachment = None

    def can_submit(self, loading: bool = False) -> bool:
        if loading:
            return False
        return bool(self.text.strip()) or self.attachment is not None

    def submit(self, loading: bool = False) -> tuple[ContentPart, ...] | None:
        """Compose the parts for a new user turn and clear the input.

        Returns *None* (and leaves the input untouched) when a request is
        already in flight or there is nothing to send.  Otherwise the
        attachment part comes first, followed by the trimmed text when it is
        non-empty.
        """
        if not self.can_submit(loading):
            return None

        parts: list[ContentPart] = []
        if self.attachment is not None:
            parts.append(self.attachment.to_part())
        text = self.text.strip()
        if text:
            parts.append(ContentPart.from_text(text))

        self.text = ""
        self.attachment = None
        return tuple(parts)
