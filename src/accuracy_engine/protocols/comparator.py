"""Protocol for the promotion policy comparing candidate and control ratings."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class RatingComparator(Protocol):
    def no_worse(self, control: Sequence[float], candidate: Sequence[float]) -> bool:
        """True if the candidate's ratings are acceptably no worse than control's."""
        ...
