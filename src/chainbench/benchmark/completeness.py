"""
Completeness Scorer - which semantic token fields a provider reliably fills
"""
from typing import Any, Dict, List, Sequence

from ..data.models import COMPLETENESS_FIELDS, CompletenessResult, TokenRecord
from .stats import round_half_up

# Tunable heuristics. A field counts as populated when it is present in more
# than PRESENCE_THRESHOLD of the sampled records.
PRESENCE_THRESHOLD = 0.3
SAMPLE_SIZE = 20
MIN_MEANINGFUL = 5


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value == "":
        return False
    return True


def pick_sample(records: Sequence[TokenRecord], sample_size: int = SAMPLE_SIZE) -> List[TokenRecord]:
    # Tokens with a name or symbol are the ones a provider would normally enrich;
    # dust and unknown tokens legitimately lack metadata.
    meaningful = [r for r in records if r.symbol or r.name]
    pool = meaningful if len(meaningful) >= MIN_MEANINGFUL else list(records)
    return pool[:sample_size]


def score_completeness(records: Sequence[TokenRecord], threshold: float = PRESENCE_THRESHOLD,
                       sample_size: int = SAMPLE_SIZE) -> CompletenessResult:
    total = len(COMPLETENESS_FIELDS)
    if not records:
        return CompletenessResult(
            score=0,
            total_fields=total,
            present_fields=0,
            field_breakdown={f: False for f in COMPLETENESS_FIELDS},
            tokens_returned=0,
        )

    sample = pick_sample(records, sample_size)
    counts: Dict[str, int] = {f: 0 for f in COMPLETENESS_FIELDS}
    for record in sample:
        for f in COMPLETENESS_FIELDS:
            if is_present(getattr(record, f)):
                counts[f] += 1

    breakdown = {f: counts[f] > len(sample) * threshold for f in COMPLETENESS_FIELDS}
    present = sum(1 for v in breakdown.values() if v)
    return CompletenessResult(
        score=int(round_half_up(present / total * 100)),
        total_fields=total,
        present_fields=present,
        field_breakdown=breakdown,
        tokens_returned=len(records),
    )
