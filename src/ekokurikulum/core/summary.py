from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd

from ekokurikulum.core.models import DashboardStats, StatPoint

# Attendance colour thresholds (percent)
GOOD_ATTENDANCE = 80
FAIR_ATTENDANCE = 50

# Cards the school has not wired to the sheet yet; shown as fixed figures
COMPLETED_ACTIVITIES = 12
CHAMPIONSHIPS = 3


@dataclass
class StatCard:
    title: str
    value: str
    trend: Optional[str] = None


def attendance_band(value: float) -> str:
    """
    Bucket an attendance percentage into 'good', 'fair' or 'poor'.
    """
    if value >= GOOD_ATTENDANCE:
        return "good"
    if value >= FAIR_ATTENDANCE:
        return "fair"
    return "poor"


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def build_stat_cards(stats: Optional[DashboardStats]) -> List[StatCard]:
    total = stats.total_pelajar if stats is not None else 0
    current = stats.pencapaian_terkini if stats is not None else 0

    return [
        StatCard(title="Jumlah Pelajar", value=_format_number(total)),
        StatCard(
            title="Purata Kehadiran",
            value=f"{_format_number(current)}%",
            trend="+2.5% dari bulan lepas",
        ),
        StatCard(title="Aktiviti Selesai", value=str(COMPLETED_ACTIVITIES)),
        StatCard(title="Pencapaian Johan", value=str(CHAMPIONSHIPS)),
    ]


def series_frame(points: Sequence[StatPoint]) -> pd.DataFrame:
    """Chart-ready frame with name, value and fill columns (fill may be None)."""
    return pd.DataFrame(
        [{"name": p.name, "value": p.value, "fill": p.fill} for p in points],
        columns=["name", "value", "fill"],
    )


def record_count_caption(count: int) -> str:
    return f"Menunjukkan {count} rekod"
