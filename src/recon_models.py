from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


class Mode(str, Enum):
    """Order-type interpretation a row is checked against."""

    PRIMARY = "PO"  # receiving / purchase side
    SECONDARY = "SO"  # shipping / sales or ship-document side


class SourceTag(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"
    CARRIER = "CARRIER"


class VerdictKind(str, Enum):
    MATCHED = "MATCHED"
    NO_MATCH_ORDER = "NO_MATCH_ORDER"
    NO_ACTIVITY = "NO_ACTIVITY"
    TRACKING_NOT_FOUND = "TRACKING_NOT_FOUND"
    PARTY_MISMATCH = "PARTY_MISMATCH"
    DATE_OUT_OF_WINDOW = "DATE_OUT_OF_WINDOW"
    NO_TRACKING_PROVIDED = "NO_TRACKING_PROVIDED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class CanonicalRow:
    order_number: Optional[str] = None
    party_name: Optional[str] = None
    tracking_number: Optional[str] = None
    asserted_date: Optional[date] = None
    amount: Optional[Decimal] = None
    source_tag: Optional[SourceTag] = None
    raw: Dict = field(default_factory=dict, compare=False, repr=False)

    def is_actionable(self) -> bool:
        return bool(self.order_number or self.tracking_number)


@dataclass(frozen=True)
class CanonicalPackage:
    tracking: str
    date: Optional[date] = None


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    reason: str = ""
    day_delta: Optional[int] = None
    found_tracking: Optional[str] = None


@dataclass(frozen=True)
class ReconciliationResult:
    """Final outcome of one row: the chosen verdict plus every per-mode verdict."""

    row_number: int
    row: CanonicalRow
    mode: Mode
    verdict: Verdict
    per_mode: Tuple[Tuple[Mode, Verdict], ...] = ()

    @property
    def modes(self) -> List[Mode]:
        return [m for m, _ in self.per_mode] or [self.mode]


@dataclass(frozen=True)
class RowError:
    row_number: int
    row: CanonicalRow
    modes: Tuple[Mode, ...]
    message: str

    @property
    def verdict(self) -> Verdict:
        return Verdict(VerdictKind.ERROR, reason=self.message)


RowOutcome = Union[ReconciliationResult, RowError]


@dataclass
class UploadFile:
    name: str
    content: bytes
    source_tag: Optional[SourceTag] = None
    modes: Optional[Tuple[Mode, ...]] = None


@dataclass
class FileFailure:
    file_name: str
    message: str


@dataclass
class BatchResult:
    counts: Dict[str, int] = field(default_factory=dict)
    details: List[Dict] = field(default_factory=list)
    file_errors: List[FileFailure] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "summary": dict(self.counts),
            "details": list(self.details),
            "file_errors": [{"file": f.file_name, "error": f.message} for f in self.file_errors],
        }
