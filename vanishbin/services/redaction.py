"""
Sensitive-data redaction for paste content.

Two pattern classes are recognised:

- IPv4-shaped dotted quads, e.g. ``10.0.0.12``
- credential-looking key/value pairs whose key is ``token``, ``api key``
  (``api_key``, ``api-key``, ``apikey``) or ``authorization`` followed by a
  value of at least 16 characters from ``[a-z0-9-_.]``

Every match is replaced by ``REDACTION_PLACEHOLDER``. The placeholder
contains no digits and only brackets around letters, so it matches neither
pattern. ``redact`` substitutes until no match is left, which makes it
idempotent.

Redaction runs at two stages that both call ``redact``:

``persistence``
    before a paste created with the redacted flag is written.
``presentation``
    on every raw read of a paste carrying the redacted flag, covering content
    that reached the store without the first stage.
"""

from __future__ import annotations

import logging
import re
from typing import Literal


logger = logging.getLogger(__name__)

REDACTION_PLACEHOLDER = "[REDACTED]"

SENSITIVE_PATTERN = re.compile(
    r"\b\d{1,3}(?:\.\d{1,3}){3}\b"
    r"|(?:token|api[ _-]?key|authorization)[:=]?\s*[\"']?[a-z0-9\-_.]{16,}[\"']?",
    re.IGNORECASE,
)

RedactionStage = Literal["persistence", "presentation"]


def find_sensitive_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of every sensitive match in ``text``."""
    return [match.span() for match in SENSITIVE_PATTERN.finditer(text)]


def contains_sensitive_data(text: str) -> bool:
    return SENSITIVE_PATTERN.search(text) is not None


def redact(text: str) -> str:
    """
    Replace every sensitive span in ``text`` with the placeholder.

    Substitution repeats until nothing matches: a placeholder can open a
    word boundary that a neighbouring IP needed, e.g.
    ``1.2.3.4token=...``. Each pass consumes unredacted characters, so the
    loop terminates.
    """
    while True:
        redacted, count = SENSITIVE_PATTERN.subn(REDACTION_PLACEHOLDER, text)
        if count == 0:
            return text
        text = redacted


def apply_stage(text: str, *, stage: RedactionStage, paste_id: str | None = None) -> str:
    """Run ``redact`` for one pipeline stage, logging how many spans it hid."""
    spans = find_sensitive_spans(text)
    if not spans:
        return text

    logger.info(
        "Sensitive spans redacted",
        extra={
            "event": f"paste_redacted_{stage}",
            "paste_id": paste_id,
        },
    )
    return redact(text)
