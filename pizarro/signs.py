"""Sales document classification and signed revenue.

Every place that sums sales revenue goes through ``signed_total`` (or the
frame built by ``signed_sales_frame``): debit notes carry no revenue, credit
notes subtract their absolute total and everything else adds it.
"""

from __future__ import annotations

import unicodedata
from enum import Enum
from typing import Iterable

import pandas as pd

from pizarro.records import SaleRecord, records_frame


class DocumentKind(str, Enum):
    SALE = "sale"
    CREDIT_NOTE = "credit_note"
    DEBIT_NOTE = "debit_note"


CREDIT_NOTE_CODES = frozenset({"nc", "n/c", "nca", "ncb", "ncc", "nce", "ncm", "ncr"})
DEBIT_NOTE_CODES = frozenset({"nd", "n/d", "nda", "ndb", "ndc", "nde", "ndm", "ndr"})
CREDIT_NOTE_PHRASES = ("nota de credito", "nota credito", "credit note")
DEBIT_NOTE_PHRASES = ("nota de debito", "nota debito", "debit note")


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().replace(".", " ").split())


def classify_document(document_type: str) -> DocumentKind:
    folded = _fold(document_type)
    compact = folded.replace(" ", "")
    if compact in CREDIT_NOTE_CODES or folded.startswith(CREDIT_NOTE_PHRASES):
        return DocumentKind.CREDIT_NOTE
    if compact in DEBIT_NOTE_CODES or folded.startswith(DEBIT_NOTE_PHRASES):
        return DocumentKind.DEBIT_NOTE
    return DocumentKind.SALE


def is_credit_note(record: SaleRecord) -> bool:
    return classify_document(record.document_type) is DocumentKind.CREDIT_NOTE


def is_debit_note(record: SaleRecord) -> bool:
    return classify_document(record.document_type) is DocumentKind.DEBIT_NOTE


def counts_as_revenue(record: SaleRecord) -> bool:
    return not is_debit_note(record)


def signed_total(record: SaleRecord) -> float:
    kind = classify_document(record.document_type)
    if kind is DocumentKind.DEBIT_NOTE:
        return 0.0
    if kind is DocumentKind.CREDIT_NOTE:
        return -abs(float(record.total))
    return abs(float(record.total))


def signed_sales_frame(records: Iterable[SaleRecord], *, keep_debit_notes: bool = False) -> pd.DataFrame:
    """Sales frame with ``kind`` and ``signed_total`` columns.

    Debit notes are dropped unless ``keep_debit_notes`` is set (they are only
    ever counted, never summed).
    """
    records = tuple(records)
    df = records_frame(records, SaleRecord)
    df["kind"] = pd.Series([classify_document(r.document_type).value for r in records], dtype=object)
    df["signed_total"] = pd.Series([signed_total(r) for r in records], dtype=float)
    if not keep_debit_notes:
        df = df[df["kind"] != DocumentKind.DEBIT_NOTE.value].reset_index(drop=True)
    return df
