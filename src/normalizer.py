import re
from typing import Optional

_LEGAL_SUFFIX = re.compile(r"\b(inc|llc|ltd|co|corp|corporation|company)\b")


def normalize_party(text: Optional[str]) -> str:
    """Canonical counterparty name: lower-case, no punctuation or legal-entity suffixes."""
    if not text:
        return ""
    s = text.lower()
    s = re.sub(r"[,.]", " ", s)
    s = _LEGAL_SUFFIX.sub("", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def normalize_tracking(text: Optional[str]) -> str:
    if not text:
        return ""
    return re.sub(r"[\s-]", "", text.upper())
