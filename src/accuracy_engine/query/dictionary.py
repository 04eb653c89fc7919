"""In-process synonym/intent dictionary backed by static mappings."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence

from accuracy_engine.config.constants import DEFAULT_INTENT_RULES, DEFAULT_SYNONYMS


class StaticSynonymDictionary:
    """Bidirectional synonym lookup plus ordered intent cues.

    Swapping the dictionary (and its ``version``) is how vocabulary changes
    ship; the query processor itself never learns.
    """

    def __init__(
        self,
        synonyms: Mapping[str, Sequence[str]] | None = None,
        intent_rules: Sequence[tuple[str, Sequence[str]]] | None = None,
        version: str = "builtin-1",
    ) -> None:
        self._version = version
        self._intent_rules = tuple(
            (intent, tuple(cues))
            for intent, cues in (intent_rules if intent_rules is not None else DEFAULT_INTENT_RULES)
        )
        index: dict[str, set[str]] = defaultdict(set)
        for term, aliases in (synonyms if synonyms is not None else DEFAULT_SYNONYMS).items():
            term = term.lower()
            for alias in aliases:
                alias = alias.lower()
                index[term].add(alias)
                index[alias].add(term)
        self._index = {k: frozenset(v) for k, v in index.items()}

    @property
    def version(self) -> str:
        return self._version

    def synonyms(self, term: str) -> frozenset[str]:
        return self._index.get(term.lower(), frozenset())

    def intent_rules(self) -> tuple[tuple[str, tuple[str, ...]], ...]:
        return self._intent_rules
