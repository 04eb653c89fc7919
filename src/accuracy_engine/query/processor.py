"""Query normalization, tokenization, synonym expansion and intent tagging."""

from __future__ import annotations

import re
import unicodedata

from accuracy_engine.exceptions import InvalidQuery
from accuracy_engine.models.domain import Intent, ProcessedQuery
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.protocols.dictionary import SynonymDictionary
from accuracy_engine.query.dictionary import StaticSynonymDictionary
from accuracy_engine.query.tokenizer import tokenize

logger = get_logger("query_processor")


class QueryProcessor:
    def __init__(
        self,
        dictionary: SynonymDictionary | None = None,
        max_query_length: int = 500,
    ) -> None:
        self._dictionary = dictionary or StaticSynonymDictionary()
        self._max_length = max_query_length
        self._intent_patterns = [
            (Intent(intent), re.compile(r"\b(?:" + "|".join(re.escape(c) for c in cues) + r")\b"))
            for intent, cues in self._dictionary.intent_rules()
        ]

    def process(self, raw_query: str) -> ProcessedQuery:
        if raw_query is None or not raw_query.strip():
            raise InvalidQuery("query must contain non-whitespace text")

        normalized = self._normalize(raw_query)[: self._max_length]
        tokens = tuple(tokenize(normalized))

        expanded: set[str] = set()
        for token in tokens:
            expanded.update(self._dictionary.synonyms(token))
        expanded.difference_update(tokens)

        intent = self._classify_intent(normalized)

        logger.debug(
            "query_processed",
            tokens=len(tokens),
            expanded=len(expanded),
            intent=str(intent),
            dictionary=self._dictionary.version,
        )

        return ProcessedQuery(
            raw_text=raw_query,
            normalized_tokens=tokens,
            expanded_terms=frozenset(expanded),
            intent=intent,
        )

    @staticmethod
    def _normalize(text: str) -> str:
        text = unicodedata.normalize("NFKC", text).lower()
        return re.sub(r"\s+", " ", text).strip()

    def _classify_intent(self, query: str) -> Intent:
        for intent, pattern in self._intent_patterns:
            if pattern.search(query):
                return intent
        return Intent.GENERAL
