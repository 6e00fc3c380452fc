"""Reproducible winner selection for the tenure payout draw."""

from __future__ import annotations

import hashlib
import os
import random
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from core import get_logger, PayoutDefaults
from services.eligibility import EligibleMember
from utils.timestamps import utc_now

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class Winner:
    user_id: str
    email: str
    prepaid: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DrawResult:
    seed: str
    winners: List[Winner] = field(default_factory=list)
    eligible_count: int = 0
    prepaid_count: int = 0
    draw_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "seed": self.seed,
            "eligible_count": self.eligible_count,
            "prepaid_count": self.prepaid_count,
            "winners": [w.to_dict() for w in self.winners],
        }


def draw_candidates(eligible: Iterable[EligibleMember], prepaid: Set[str]) -> List[EligibleMember]:
    """Eligible members that are also prepaid, in a stable order.

    Sorting by user id keeps a replay independent of row order.
    """
    return sorted((m for m in eligible if m.user_id in prepaid), key=lambda m: m.user_id)


def select_winners(
    eligible: Iterable[EligibleMember],
    prepaid: Set[str],
    max_winners: int,
    seed: str,
) -> List[Winner]:
    """Shuffle the prepaid eligible members with ``seed`` and keep the first few.

    Returns every candidate when there are fewer than ``max_winners``; an
    empty list is a normal outcome.
    """
    candidates = draw_candidates(eligible, prepaid)
    rng = random.Random(int(seed, 16))
    rng.shuffle(candidates)
    return [
        Winner(user_id=m.user_id, email=m.email, prepaid=True)
        for m in candidates[:min(max_winners, len(candidates))]
    ]


class SecureDraw:
    """Cryptographically seeded, replayable payout draw.

    Each draw gets a fresh SHA-256 seed from the clock and ``os.urandom``, so
    running the draw twice usually picks different winners. Storing the seed
    lets anyone replay a past draw against the same candidates.
    """

    def __init__(
        self,
        max_winners: int = PayoutDefaults.MAX_WINNERS,
        random_bytes_size: int = PayoutDefaults.SEED_RANDOM_BYTES,
    ) -> None:
        if max_winners < 1:
            raise ValueError("Number of winners must be at least 1")
        self.max_winners = max_winners
        self._random_bytes_size = random_bytes_size

    def generate_seed(self) -> str:
        """Generate cryptographically secure seed for a draw.

        Returns:
            str: SHA-256 hex digest of timestamp and random bytes
        """
        timestamp = utc_now().isoformat()
        random_bytes = os.urandom(self._random_bytes_size)
        seed = hashlib.sha256(f"{timestamp}{random_bytes.hex()}".encode()).hexdigest()
        logger.info(f"Generated new payout draw seed: {seed[:16]}...")
        return seed

    def draw(
        self,
        eligible: Sequence[EligibleMember],
        prepaid: Set[str],
        seed: Optional[str] = None,
    ) -> DrawResult:
        """Select up to ``max_winners`` prepaid members from ``eligible``."""
        seed = seed or self.generate_seed()
        winners = select_winners(eligible, prepaid, self.max_winners, seed)
        prepaid_count = sum(1 for m in eligible if m.user_id in prepaid)

        logger.info(
            f"Selected {len(winners)} winners from {prepaid_count} prepaid "
            f"of {len(eligible)} eligible members (seed {seed[:16]}...)"
        )
        return DrawResult(
            seed=seed,
            winners=winners,
            eligible_count=len(eligible),
            prepaid_count=prepaid_count,
        )

    def replay(
        self,
        seed: str,
        eligible: Sequence[EligibleMember],
        prepaid: Set[str],
        max_winners: Optional[int] = None,
    ) -> List[Winner]:
        """Recompute the winners of a past draw from its seed.

        ``max_winners`` defaults to this draw's limit.
        """
        limit = self.max_winners if max_winners is None else max_winners
        return select_winners(eligible, prepaid, limit, seed)
