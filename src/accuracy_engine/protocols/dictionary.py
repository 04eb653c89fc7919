"""Protocol for the synonym/intent dictionary."""

from __future__ import annotations

from typing import Protocol


class SynonymDictionary(Protocol):
    def synonyms(self, term: str) -> frozenset[str]: ...

    def intent_rules(self) -> tuple[tuple[str, tuple[str, ...]], ...]: ...

    @property
    def version(self) -> str: ...
