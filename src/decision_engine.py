"""
Verdict cascade for one row under one mode.

The rules run in order and the first one that returns a verdict wins, so
RULES is the single place that defines precedence. decide() is pure and
total: missing orders, activity or dates become verdicts, never exceptions.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

from normalizer import normalize_party, normalize_tracking
from recon_models import CanonicalPackage, Mode, Verdict, VerdictKind

DEFAULT_POLICY_WINDOW_DAYS = 5


@dataclass(frozen=True)
class DecisionInput:
    mode: Mode
    party_upload: Optional[str] = None
    tracking_upload: Optional[str] = None
    asserted_date: Optional[date] = None
    order_exists: bool = False
    packages: Sequence[CanonicalPackage] = field(default_factory=tuple)
    party_authoritative: Optional[str] = None
    policy_window_days: int = DEFAULT_POLICY_WINDOW_DAYS

    @property
    def tracking(self) -> str:
        return normalize_tracking(self.tracking_upload)

    @property
    def matched_package(self) -> Optional[CanonicalPackage]:
        t = self.tracking
        if not t:
            return None
        return next((p for p in self.packages if p.tracking == t), None)

    @property
    def comparison_date(self) -> Optional[date]:
        found = self.matched_package
        if found and found.date:
            return found.date
        return self.packages[0].date if self.packages else None


def day_delta(a: date, b: date) -> int:
    return abs((a - b).days)


def _matched_kind(ctx: DecisionInput) -> VerdictKind:
    return VerdictKind.MATCHED if ctx.tracking else VerdictKind.NO_TRACKING_PROVIDED


def _matched_reason(ctx: DecisionInput) -> str:
    if ctx.tracking:
        return f"Tracking {ctx.tracking} found on {ctx.mode.value}"
    return f"Order found on {ctx.mode.value}; no tracking number to compare"


def rule_order_exists(ctx: DecisionInput) -> Optional[Verdict]:
    if not ctx.order_exists:
        return Verdict(VerdictKind.NO_MATCH_ORDER, reason=f"Order not found on {ctx.mode.value}")
    return None


def rule_has_activity(ctx: DecisionInput) -> Optional[Verdict]:
    if not ctx.packages:
        return Verdict(VerdictKind.NO_ACTIVITY, reason=f"No {ctx.mode.value} packages recorded")
    return None


def rule_tracking_found(ctx: DecisionInput) -> Optional[Verdict]:
    if ctx.tracking and ctx.matched_package is None:
        seen = ", ".join(p.tracking for p in ctx.packages)
        return Verdict(VerdictKind.TRACKING_NOT_FOUND, reason=f"Seen: {seen}")
    return None


def rule_party_matches(ctx: DecisionInput) -> Optional[Verdict]:
    upload = normalize_party(ctx.party_upload)
    authoritative = normalize_party(ctx.party_authoritative)
    if upload and authoritative and upload != authoritative:
        return Verdict(VerdictKind.PARTY_MISMATCH, reason=f"Upload='{upload}' OT='{authoritative}'")
    return None


def rule_date_window(ctx: DecisionInput) -> Optional[Verdict]:
    other = ctx.comparison_date
    if ctx.asserted_date is None or other is None:
        return None
    delta = day_delta(ctx.asserted_date, other)
    if delta > ctx.policy_window_days:
        return Verdict(
            VerdictKind.DATE_OUT_OF_WINDOW,
            reason=f"Date off by {delta} day(s); window is {ctx.policy_window_days}",
            day_delta=delta,
        )
    found = ctx.matched_package
    return Verdict(
        _matched_kind(ctx),
        reason=_matched_reason(ctx),
        day_delta=delta,
        found_tracking=found.tracking if found else None,
    )


def rule_fallthrough(ctx: DecisionInput) -> Optional[Verdict]:
    found = ctx.matched_package
    return Verdict(
        _matched_kind(ctx),
        reason=_matched_reason(ctx),
        found_tracking=found.tracking if found else None,
    )


Rule = Callable[[DecisionInput], Optional[Verdict]]

RULES: List[Tuple[str, Rule]] = [
    ("order_exists", rule_order_exists),
    ("has_activity", rule_has_activity),
    ("tracking_found", rule_tracking_found),
    ("party_matches", rule_party_matches),
    ("date_window", rule_date_window),
    ("fallthrough", rule_fallthrough),
]


def evaluate(ctx: DecisionInput) -> Verdict:
    for _, rule in RULES:
        verdict = rule(ctx)
        if verdict is not None:
            return verdict
    raise AssertionError("fallthrough rule always returns a verdict")


def decide(
    mode: Mode,
    *,
    party_upload: Optional[str] = None,
    tracking_upload: Optional[str] = None,
    asserted_date: Optional[date] = None,
    order_exists: bool,
    packages: Sequence[CanonicalPackage] = (),
    party_authoritative: Optional[str] = None,
    policy_window_days: Optional[int] = None,
) -> Verdict:
    return evaluate(
        DecisionInput(
            mode=mode,
            party_upload=party_upload,
            tracking_upload=tracking_upload,
            asserted_date=asserted_date,
            order_exists=order_exists,
            packages=tuple(packages),
            party_authoritative=party_authoritative,
            policy_window_days=DEFAULT_POLICY_WINDOW_DAYS if policy_window_days is None else policy_window_days,
        )
    )
