"""
Upload reader: CSV / Excel exports -> CanonicalRow.

Each canonical field has an ordered list of header synonyms. Headers are
compared after lower-casing and collapsing whitespace/underscores, and for
every record the first synonym header holding a non-empty cell wins.
"""

import io
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from normalizer import normalize_tracking
from recon_errors import FileReadError, NoActionableRows, UnsupportedFormat
from recon_models import CanonicalRow, SourceTag
from value_parsers import cell_text, is_blank, parse_date_like, parse_money

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm"}
# Excel on Windows saves "CSV" in the ANSI code page
CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")

HEADER_SYNONYMS: Dict[str, List[str]] = {
    "order": [
        "po number", "po #", "po no", "po no.",
        "so number", "so #", "so no", "so no.",
        "order number", "order #", "order no", "order no.", "order",
        "no.", "no",
        "document number", "document no", "document no.",
        "vendor invoice/so", "associated so",
        "invoice number", "invoice #", "invoice no", "invoice no.",
        # ship documents
        "ship doc", "ship doc #", "ship doc no", "ship doc no.", "shipdoc",
        "shipment number", "shipment #", "shipment no", "shipment no.",
    ],
    "tracking": [
        "tracking", "tracking number", "tracking #", "tracking no", "tracking no.",
        "tracking id", "tracking code", "tracking details", "tracking status",
        "shipment tracking", "ups tracking", "carrier tracking",
    ],
    "party": [
        "vendor", "vendor name", "supplier", "supplier name",
        "customer", "customer name", "party", "sold to", "bill to", "account name",
    ],
    "date": [
        "date", "transaction date", "po promise date", "promise date",
        "ship date", "shipment date", "invoice date", "asserted date",
        "estimated delivery window", "delivery window",
    ],
    "amount": [
        "freight", "freight in", "freight-in", "freight out", "freight-out",
        "total freight", "freight amount", "shipping", "shipping cost",
        "shipping charge", "shipping charges", "total shipping", "delivery charge",
        "transportation", "postage", "carrier charge", "carrier charges",
        "ups charges", "ups charge", "shipment charge",
    ],
}

# Exact, case-sensitive header names seen in ERP exports that carry an order id
# when none of the synonyms produced one.
ORDER_FALLBACK_HEADERS = [
    "No.", "No", "Associated SO", "Vendor Invoice/SO",
    "Ship Doc No", "Ship Doc No.", "ShipDoc",
    "Shipment Number", "Shipment No", "Shipment No.",
]

_TRACKING_IN_TEXT = re.compile(r"[A-Z0-9]{10,}", re.IGNORECASE)


def header_key(header: Any) -> str:
    return re.sub(r"[\s_]+", " ", str(header).lower()).strip()


def pick_headers(headers: List[str], candidates: List[str]) -> List[str]:
    """Real header names matching the candidates, in candidate order."""
    by_key = {header_key(h): h for h in headers}
    return [by_key[c] for c in candidates if c in by_key]


def _read_csv(content: bytes, file_name: str) -> pd.DataFrame:
    *attempts, last = CSV_ENCODINGS
    for encoding in attempts:
        try:
            return pd.read_csv(io.BytesIO(content), dtype=str, na_filter=False, encoding=encoding)
        except UnicodeDecodeError:
            logger.debug("%s: not %s, retrying", file_name, encoding)
    # latin-1 decodes any byte sequence
    return pd.read_csv(io.BytesIO(content), dtype=str, na_filter=False, encoding=last)


def _read_records(content: bytes, file_name: str) -> pd.DataFrame:
    suffix = Path(file_name).suffix.lower()
    if suffix not in CSV_EXTENSIONS | SPREADSHEET_EXTENSIONS:
        raise UnsupportedFormat(file_name)

    try:
        if suffix in CSV_EXTENSIONS:
            df = _read_csv(content, file_name)
        else:
            df = pd.read_excel(
                io.BytesIO(content),
                sheet_name=0,
                dtype=object,
                engine="openpyxl",
            )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except Exception as e:
        raise FileReadError(file_name, e) from e

    df.columns = [str(c).strip() for c in df.columns]
    return df


def _first_text(raw: Dict[str, Any], headers: List[str]) -> Optional[str]:
    for h in headers:
        text = cell_text(raw.get(h))
        if text:
            return text
    return None


def extract_tracking_from_text(raw: Dict[str, Any]) -> Optional[str]:
    """Best-guess tracking code buried in any tracking-labelled cell (e.g. status text)."""
    pool = " ".join(
        cell_text(v) for k, v in raw.items() if "tracking" in header_key(k) and cell_text(v)
    )
    if not pool:
        return None
    m = _TRACKING_IN_TEXT.search(pool)
    return m.group(0).upper() if m else None


def row_from_record(
    raw: Dict[str, Any],
    header_map: Dict[str, List[str]],
    source_tag: Optional[SourceTag] = None,
) -> CanonicalRow:
    order_number = _first_text(raw, header_map["order"])
    if not order_number:
        order_number = _first_text(raw, [h for h in ORDER_FALLBACK_HEADERS if h in raw])
    if order_number:
        order_number = re.sub(r"\s+", " ", order_number).strip()

    tracking = _first_text(raw, header_map["tracking"]) or extract_tracking_from_text(raw)
    tracking = normalize_tracking(tracking) or None

    party = _first_text(raw, header_map["party"])

    asserted_date = None
    for h in header_map["date"]:
        asserted_date = parse_date_like(raw.get(h))
        if asserted_date:
            break

    amount = None
    for h in header_map["amount"]:
        amount = parse_money(raw.get(h))
        if amount is not None:
            break

    return CanonicalRow(
        order_number=order_number or None,
        party_name=party,
        tracking_number=tracking,
        asserted_date=asserted_date,
        amount=amount,
        source_tag=source_tag,
        raw=raw,
    )


def extract_rows(
    content: bytes,
    file_name: str,
    source_tag: Optional[SourceTag] = None,
) -> List[CanonicalRow]:
    """Read one uploaded file into actionable canonical rows.

    Raises:
        UnsupportedFormat: extension is neither CSV nor xlsx/xlsm
        FileReadError: the bytes cannot be parsed in that format
        NoActionableRows: no row has an order number or a tracking number
    """
    df = _read_records(content, file_name)
    headers = list(df.columns)
    header_map = {field: pick_headers(headers, synonyms) for field, synonyms in HEADER_SYNONYMS.items()}
    logger.debug("%s: header map %s", file_name, header_map)

    rows: List[CanonicalRow] = []
    skipped = 0
    for raw in df.to_dict(orient="records"):
        if all(is_blank(v) for v in raw.values()):
            continue
        row = row_from_record(raw, header_map, source_tag)
        if not row.is_actionable():
            skipped += 1
            continue
        rows.append(row)

    if not rows:
        raise NoActionableRows(file_name, headers)

    if skipped:
        logger.info("%s: skipped %d row(s) without order or tracking number", file_name, skipped)
    return rows
