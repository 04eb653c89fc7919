"""Static vocabularies used by the query processor."""

from __future__ import annotations

STOPWORDS: frozenset[str] = frozenset(
    {
        "a", "about", "above", "after", "again", "all", "am", "an", "and", "any",
        "are", "as", "at", "be", "been", "before", "being", "below", "between",
        "both", "but", "by", "can", "could", "did", "do", "does", "doing", "down",
        "during", "each", "few", "for", "from", "further", "had", "has", "have",
        "having", "he", "her", "here", "hers", "him", "his", "i", "if", "in",
        "into", "is", "it", "its", "itself", "just", "may", "me", "might", "more",
        "most", "must", "my", "no", "nor", "not", "of", "off", "on", "once",
        "only", "or", "other", "our", "ours", "out", "over", "own", "same",
        "shall", "she", "should", "so", "some", "such", "than", "that", "the",
        "their", "them", "then", "there", "these", "they", "this", "those",
        "through", "to", "too", "under", "until", "up", "very", "was", "we",
        "were", "will", "with", "would", "you", "your",
    }
)

# Each entry is bidirectional: the key expands to its aliases and any alias
# expands back to the key.
DEFAULT_SYNONYMS: dict[str, tuple[str, ...]] = {
    "security": ("infosec", "protection", "cybersecurity"),
    "password": ("passphrase", "credential", "passcode"),
    "authentication": ("login", "signin", "auth"),
    "data": ("information", "records"),
    "system": ("platform", "infrastructure"),
    "policy": ("rule", "regulation", "guideline"),
    "process": ("procedure", "workflow"),
    "server": ("host", "service"),
    "cloud": ("aws", "azure", "gcp"),
    "refund": ("reimbursement", "chargeback", "return"),
}

# Ordered: the first intent whose cue matches wins. Cues are matched against
# the normalised query text on word boundaries.
DEFAULT_INTENT_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("comparison", ("compare", "difference", "versus", "vs", "better than")),
    ("definition", ("what is", "what are", "define", "meaning of")),
    ("procedure", ("how to", "how do", "how can", "steps", "procedure")),
    ("navigational", ("where can i find", "link to", "go to", "portal", "page for")),
    ("factual", ("when", "where", "who", "how many", "how much", "which")),
)
