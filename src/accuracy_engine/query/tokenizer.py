"""Text preprocessing for query tokens."""

from __future__ import annotations

import re

from accuracy_engine.config.constants import STOPWORDS


def tokenize(text: str) -> list[str]:
    """Tokenize text: lowercase, strip punctuation, remove stopwords and single chars.

    Order is preserved and repeated tokens are kept once.
    """
    text = text.lower()
    text = re.sub(r"[^\w\s]", " ", text)
    seen: set[str] = set()
    tokens: list[str] = []
    for t in text.split():
        if t in STOPWORDS or len(t) <= 1 or t in seen:
            continue
        seen.add(t)
        tokens.append(t)
    return tokens
