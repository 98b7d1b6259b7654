from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from ekokurikulum.core.models import STUDENT_FIELDS, Student


class Dimension(str, Enum):
    """The four categorical columns a teacher can filter on. Values are Student attributes."""

    KELAS = "kelas"
    UNIT_UNIFORM = "unit_uniform"
    SUKAN_PERMAINAN = "sukan_permainan"
    KELAB_PERSATUAN = "kelab_persatuan"


DIMENSION_LABELS: Dict[Dimension, str] = {
    Dimension.KELAS: "Kelas",
    Dimension.UNIT_UNIFORM: "Unit Beruniform",
    Dimension.SUKAN_PERMAINAN: "Sukan & Permainan",
    Dimension.KELAB_PERSATUAN: "Kelab & Persatuan",
}

# "no constraint" entry shown first in each dropdown
DIMENSION_ANY_LABELS: Dict[Dimension, str] = {
    Dimension.KELAS: "Semua Kelas",
    Dimension.UNIT_UNIFORM: "Semua Unit",
    Dimension.SUKAN_PERMAINAN: "Semua Sukan",
    Dimension.KELAB_PERSATUAN: "Semua Kelab",
}


@dataclass(frozen=True)
class FilterQuery:
    """
    Current search intent: free text plus at most one value per Dimension.

    An empty string always means "no constraint". `selections` holds only the
    constrained dimensions as (dimension, value) pairs in Dimension order, so
    equal queries compare and hash equal. Instances are immutable; use
    with_text() / with_selection() to derive a changed query.
    """
    text: str = ""
    selections: Tuple[Tuple[Dimension, str], ...] = ()

    def selection(self, dimension: Dimension) -> str:
        wanted = Dimension(dimension)
        for dim, value in self.selections:
            if dim == wanted:
                return value
        return ""

    def with_text(self, text: str) -> "FilterQuery":
        return replace(self, text=text or "")

    def with_selection(self, dimension: Dimension, value: str) -> "FilterQuery":
        current = dict(self.selections)
        current[Dimension(dimension)] = value or ""
        selections = tuple((d, current[d]) for d in Dimension if current.get(d))
        return replace(self, selections=selections)


@dataclass(frozen=True)
class Span:
    text: str
    is_match: bool


def _dimension_value(record: Student, dimension: Dimension) -> str:
    return getattr(record, Dimension(dimension).value, "") or ""


# ---------------------------------------------------------------------------
# Option derivation
# ---------------------------------------------------------------------------

def derive_options(records: Iterable[Student], dimension: Dimension) -> List[str]:
    """
    Distinct non-empty values of `dimension` across `records`, ascending.

    Students with an empty value still take part in filtering, they just
    never contribute a selectable option.
    """
    values = {_dimension_value(r, dimension) for r in records}
    values.discard("")
    return sorted(values)


def derive_all_options(records: Sequence[Student]) -> Dict[Dimension, List[str]]:
    return {d: derive_options(records, d) for d in Dimension}


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def _matches_text(record: Student, text: str) -> bool:
    # Only name and class are searched; activity labels are left to the dropdowns.
    if not text:
        return True
    needle = text.lower()
    return needle in record.nama.lower() or needle in record.kelas.lower()


def matches(record: Student, query: FilterQuery) -> bool:
    if not _matches_text(record, query.text):
        return False

    for dimension in Dimension:
        wanted = query.selection(dimension)
        if wanted and _dimension_value(record, dimension) != wanted:
            return False

    return True


def filtered_view(records: Iterable[Student], query: FilterQuery) -> List[Student]:
    """Records matching `query`, in their original order. A new list on every call."""
    return [r for r in records if matches(r, query)]


def clear() -> FilterQuery:
    return FilterQuery()


def has_active_filters(query: FilterQuery) -> bool:
    return bool(query.text) or any(query.selection(d) for d in Dimension)


# ---------------------------------------------------------------------------
# Highlighting
# ---------------------------------------------------------------------------

def highlight_spans(text: str, term: str) -> List[Span]:
    """
    Split `text` into alternating plain / matched spans for `term`.

    Matching is case-insensitive and `term` is taken literally, so input such
    as "5 (A" or "a+b" is safe. A blank term yields one plain span holding the
    whole text. Empty spans are dropped, so joining the span texts always
    gives back `text`.
    """
    text = text or ""
    if not term or not term.strip():
        return [Span(text=text, is_match=False)]

    # The capturing group keeps the matched pieces at odd indexes.
    parts = re.split(f"({re.escape(term)})", text, flags=re.IGNORECASE)

    spans: List[Span] = []
    for idx, part in enumerate(parts):
        if not part:
            continue
        spans.append(Span(text=part, is_match=idx % 2 == 1))
    return spans


# ---------------------------------------------------------------------------
# Tabular view
# ---------------------------------------------------------------------------

def to_frame(records: Sequence[Student]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=STUDENT_FIELDS)
    return pd.DataFrame.from_records([r.to_dict() for r in records], columns=STUDENT_FIELDS)
