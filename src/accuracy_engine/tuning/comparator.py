"""Default promotion policy."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


class MeanRatingComparator:
    """Candidate passes when ``mean(candidate) >= mean(control) - tolerance``.

    Both samples need at least ``min_samples`` ratings; otherwise the
    candidate is not (yet) shown to be no worse. Any object with a matching
    ``no_worse`` method can replace this policy.
    """

    def __init__(self, tolerance: float = 0.05, min_samples: int = 5) -> None:
        self.tolerance = tolerance
        self.min_samples = min_samples

    def no_worse(self, control: Sequence[float], candidate: Sequence[float]) -> bool:
        if len(control) < self.min_samples or len(candidate) < self.min_samples:
            return False
        return float(np.mean(candidate)) >= float(np.mean(control)) - self.tolerance
