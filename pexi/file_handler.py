"""
Utilities for reading file attachments.

Every attachment is sent to the model as inline data: the raw bytes are
base64-encoded and paired with a MIME type derived from the file extension.

Supported types (as offered by the file picker)
-----------------------------------------------
* **Images** (.png / .jpg / .jpeg / .gif / .webp)
* **Plain text** (.txt) and **Markdown** (.md)
* **PDF** (.pdf)
* **CSV** (.csv)

The filter is only a hint to the picker; any readable file is accepted and
falls back to ``application/octet-stream``.
"""

import base64
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path

from .messages import ContentPart

log = logging.getLogger("pexi")


@dataclass(frozen=True)
class Attachment:
    """A file waiting to be sent."""

    name: str        # original file name
    mime_type: str   # e.g. "image/png"
    data: str        # base64-encoded bytes

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_part(self) -> ContentPart:
        return ContentPart.from_inline_data(self.mime_type, self.data)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_KNOWN_MIME: dict[str, str] = {
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
    ".gif":  "image/gif",
    ".webp": "image/webp",
    ".txt":  "text/plain",
    ".md":   "text/markdown",
    ".pdf":  "application/pdf",
    ".csv":  "text/csv",
}

FALLBACK_MIME = "application/octet-stream"

#: ``filetypes`` argument for :func:`tkinter.filedialog.askopenfilename`.
FILE_TYPES: list[tuple[str, str]] = [
    ("Supported files",
     "*.png *.jpg *.jpeg *.gif *.webp *.txt *.md *.pdf *.csv"),
    ("Images",    "*.png *.jpg *.jpeg *.gif *.webp"),
    ("Documents", "*.txt *.md *.pdf *.csv"),
    ("All files", "*.*"),
]


def guess_mime_type(file_path: str) -> str:
    """Return the MIME type for *file_path* based on its extension."""
    ext = Path(file_path).suffix.lower()
    if ext in _KNOWN_MIME:
        return _KNOWN_MIME[ext]
    mime, _ = mimetypes.guess_type(file_path)
    return mime or FALLBACK_MIME


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def read_attachment(file_path: str) -> Attachment:
    """Read *file_path* and return it as a base64 :class:`Attachment`.

    Raises :class:`OSError` when the file cannot be read.
    """
    with open(file_path, "rb") as fh:
        raw = fh.read()
    attachment = Attachment(
        name=os.path.basename(file_path),
        mime_type=guess_mime_type(file_path),
        data=base64.b64encode(raw).decode("ascii"),
    )
    log.debug("[FILE] %s read (%s, %d bytes)",
              attachment.name, attachment.mime_type, len(raw))
    return attachment
