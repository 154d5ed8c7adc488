from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Protocol

from mutarand.core.engine.width import Width


class EntropySource(Protocol):
    """
    Source of raw randomness for seeds, reseeding and chain construction.

    Passed explicitly to engines and builders so tests can pin it down.
    """

    def next_word(self, width: Width) -> int:
        """
        Return a uniformly distributed signed word of the given width.
        """
        ...

    def next_index(self, bound: int) -> int:
        """
        Return a uniform integer in [0, bound).
        """
        ...


@dataclass(slots=True)
class RandomEntropy:
    """
    EntropySource backed by a ``random.Random`` instance.
    """

    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def seeded(cls, seed: int) -> "RandomEntropy":
        return cls(rng=random.Random(seed))

    def next_word(self, width: Width) -> int:
        return width.wrap(self.rng.getrandbits(width.bits))

    def next_index(self, bound: int) -> int:
        if bound <= 0:
            raise ValueError("bound must be > 0")
        return self.rng.randrange(bound)


def default_entropy() -> EntropySource:
    return RandomEntropy()
