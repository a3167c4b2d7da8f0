"""
Order-management activity payload -> CanonicalPackage list.

Payload shape (every level optional):

    {"docs": [{"date" | "shipDate" | "receiptDate": ...,
               "partyName" | "vendorName" | "customerName": ...,
               "packages": [{"trackingNumber" | "tracking": ...}]}]}
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional

from normalizer import normalize_tracking
from recon_models import CanonicalPackage
from value_parsers import cell_text, parse_date_like

DOC_DATE_FIELDS = ("date", "shipDate", "receiptDate")
PACKAGE_TRACKING_FIELDS = ("trackingNumber", "tracking")
PARTY_FIELDS = ("partyName", "vendorName", "customerName")


def _first_present(record: dict, fields) -> Any:
    for f in fields:
        value = record.get(f)
        if value is not None:
            return value
    return None


@dataclass
class ActivityPackage:
    tracking: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Any) -> "ActivityPackage":
        if not isinstance(raw, dict):
            return cls()
        value = _first_present(raw, PACKAGE_TRACKING_FIELDS)
        return cls(tracking=cell_text(value) or None)


@dataclass
class ActivityDocument:
    date: Optional[date] = None
    party: Optional[str] = None
    packages: List[ActivityPackage] = field(default_factory=list)

    @classmethod
    def from_payload(cls, raw: Any) -> "ActivityDocument":
        if not isinstance(raw, dict):
            return cls()
        packages = raw.get("packages")
        party = _first_present(raw, PARTY_FIELDS)
        return cls(
            date=parse_date_like(_first_present(raw, DOC_DATE_FIELDS)),
            party=cell_text(party) or None,
            packages=[ActivityPackage.from_payload(p) for p in packages] if isinstance(packages, list) else [],
        )


def parse_documents(activity: Any) -> List[ActivityDocument]:
    if not isinstance(activity, dict):
        return []
    docs = activity.get("docs")
    if not isinstance(docs, list):
        return []
    return [ActivityDocument.from_payload(d) for d in docs]


def extract_packages(activity: Any) -> List[CanonicalPackage]:
    """One package per (document, package) pair, stamped with the document date."""
    packages: List[CanonicalPackage] = []
    for doc in parse_documents(activity):
        for p in doc.packages:
            tracking = normalize_tracking(p.tracking)
            if tracking:
                packages.append(CanonicalPackage(tracking=tracking, date=doc.date))
    return packages


def extract_party(activity: Any) -> Optional[str]:
    # only the first document is consulted; it stands for the whole order
    docs = parse_documents(activity)
    return docs[0].party if docs else None


def party_from_record(record: Any) -> Optional[str]:
    """Party on an order record, in partyName > vendorName > customerName order."""
    if not isinstance(record, dict):
        return None
    return cell_text(_first_present(record, PARTY_FIELDS)) or None
