from typing import Dict, List, Optional, Sequence, Tuple

from recon_models import Mode, SourceTag, Verdict, VerdictKind

# Strongest corroboration first.
VERDICT_RANK: List[VerdictKind] = [
    # fully matched
    VerdictKind.MATCHED,
    VerdictKind.NO_TRACKING_PROVIDED,
    # found, but something disagrees
    VerdictKind.DATE_OUT_OF_WINDOW,
    VerdictKind.PARTY_MISMATCH,
    VerdictKind.TRACKING_NOT_FOUND,
    # not found
    VerdictKind.NO_ACTIVITY,
    VerdictKind.NO_MATCH_ORDER,
    # failed to evaluate
    VerdictKind.ERROR,
]

_SCORES: Dict[VerdictKind, int] = {kind: len(VERDICT_RANK) - i for i, kind in enumerate(VERDICT_RANK)}


def score_verdict(verdict: Verdict) -> int:
    return _SCORES[verdict.kind]


def preferred_mode(source_tag: Optional[SourceTag]) -> Mode:
    if source_tag in (SourceTag.SECONDARY, SourceTag.CARRIER):
        return Mode.SECONDARY
    return Mode.PRIMARY


def arbitrate(
    per_mode: Sequence[Tuple[Mode, Verdict]],
    source_tag: Optional[SourceTag] = None,
) -> Tuple[Mode, Verdict]:
    """Pick the highest-ranked verdict; ties go to the mode the row's source prefers."""
    if not per_mode:
        raise ValueError("arbitrate() needs at least one evaluated mode")
    preferred = preferred_mode(source_tag)
    return max(per_mode, key=lambda mv: (score_verdict(mv[1]), mv[0] == preferred))
