"""Ranking rules that are independent from HTTP and DB.

Rule of thumb:
- Higher score is better; on equal score, lower time taken is better.
- Ranks are 1-based positions after sorting. Exact ties still get distinct,
  consecutive ranks (no "1, 1, 3" competition ranking).
"""

from typing import Iterable, List, Sequence, Tuple

from slotboard.models.schema_models import RankedEntrySchema, ScoreEntrySchema

# (email, score, timetaken) of one rank position
RankSignature = Tuple[Tuple[str, int, int], ...]


def ranking_key(entry: ScoreEntrySchema) -> tuple:
    # Submission date and email only break exact (score, timetaken) ties so the
    # order never depends on the row order the store happened to return.
    return (-entry.score, entry.timetaken, entry.date, entry.email)


def rank(entries: Iterable[ScoreEntrySchema]) -> List[RankedEntrySchema]:
    """Order entries best first and attach their 1-based rank.

    Args:
        entries (Iterable[ScoreEntrySchema]): Entries of one slot or one aggregate view

    Returns:
        List[RankedEntrySchema]: New ranked entries; the input is left untouched
    """
    ordered = sorted(entries, key=ranking_key)
    return [
        RankedEntrySchema(**entry.model_dump(), rank=position)
        for position, entry in enumerate(ordered, start=1)
    ]


def is_better(score: int, timetaken: int, old_score: int, old_timetaken: int) -> bool:
    """Best-score-wins: a result replaces the stored one only when strictly better."""
    if score != old_score:
        return score > old_score
    return timetaken < old_timetaken


def top_k_signature(ranked: Sequence[RankedEntrySchema], k: int) -> RankSignature:
    """Minimal comparable view of the leading ``k`` ranks.

    Two rankings with equal signatures render the same visible board, so a
    push can be skipped.
    """
    return tuple((entry.email, entry.score, entry.timetaken) for entry in ranked[:k])


def find_player(ranked: Sequence[RankedEntrySchema], email: str) -> RankedEntrySchema | None:
    for entry in ranked:
        if entry.email == email:
            return entry
    return None
