from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import Fix


def select_best(current: Optional[Fix], sample: Fix) -> Fix:
    """Return whichever fix has the smaller accuracy radius.

    Ties keep ``current`` so the held value only changes on a strict
    improvement.
    """
    if current is None or sample.accuracy_meters < current.accuracy_meters:
        return sample
    return current


def fold_best(samples: Iterable[Fix], current: Optional[Fix] = None) -> Optional[Fix]:
    for sample in samples:
        current = select_best(current, sample)
    return current


@dataclass
class BestFixSelector:
    """Running best-fix fold for a single acquisition.

    Not thread-safe; the acquisition session serializes updates.
    """

    best: Optional[Fix] = None
    samples: int = field(default=0, init=False)

    def update(self, sample: Fix) -> bool:
        """Fold ``sample`` in and report whether it replaced the held fix."""
        self.samples += 1
        previous = self.best
        self.best = select_best(previous, sample)
        return self.best is not previous

    @property
    def best_accuracy_meters(self) -> Optional[float]:
        if self.best is None:
            return None
        return self.best.accuracy_meters
