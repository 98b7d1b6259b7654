from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Roles the sheet backend may assign to a login
USER_ROLES = ("admin", "guru", "pk_ko")

# Wire keys of one student row, in the order the sheet columns are shown
STUDENT_FIELDS = [
    "id",
    "nama",
    "kelas",
    "unit_uniform",
    "kelab_persatuan",
    "sukan_permainan",
    "kehadiran_purata",
]


def _text(x: Any) -> str:
    if x is None:
        return ""
    return str(x).strip()


def _number(x: Any) -> float:
    try:
        value = float(x)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    # NaN and +/-inf (e.g. a JSON 1e400) carry no usable figure
    if not math.isfinite(value):
        return 0.0
    return value


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: str  # one of USER_ROLES
    email: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        if not isinstance(data, dict):
            raise ValueError(f"User payload must be an object, got {type(data)}")

        role = _text(data.get("role"))
        if role not in USER_ROLES:
            raise ValueError(f"Unknown user role: {role!r}")

        user_id = _text(data.get("id"))
        if not user_id:
            raise ValueError("User payload has no id")

        return cls(
            id=user_id,
            name=_text(data.get("name")),
            role=role,
            email=_text(data.get("email")),
        )


@dataclass(frozen=True)
class Student:
    """
    One student's co-curricular profile (one row of the sheet).

    The three activity labels may be empty when the student has not been
    placed in a unit, club or sport yet. Attendance is a percentage that the
    backend clamps to 0..100; nothing here re-validates it.

    Text cells are normalized on the way in by from_dict(): None becomes ""
    and surrounding whitespace is stripped, so "4 Cempaka " in the sheet is
    displayed, offered as a filter option and matched as "4 Cempaka".
    """
    id: str
    nama: str
    kelas: str
    unit_uniform: str = ""
    kelab_persatuan: str = ""
    sukan_permainan: str = ""
    kehadiran_purata: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Student":
        if not isinstance(data, dict):
            raise ValueError(f"Student row must be an object, got {type(data)}")
        return cls(
            id=_text(data.get("id")),
            nama=_text(data.get("nama")),
            kelas=_text(data.get("kelas")),
            unit_uniform=_text(data.get("unit_uniform")),
            kelab_persatuan=_text(data.get("kelab_persatuan")),
            sukan_permainan=_text(data.get("sukan_permainan")),
            kehadiran_purata=_number(data.get("kehadiran_purata")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in STUDENT_FIELDS}


@dataclass(frozen=True)
class StatPoint:
    name: str
    value: float
    fill: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatPoint":
        if not isinstance(data, dict):
            raise ValueError(f"Chart point must be an object, got {type(data)}")
        fill = _text(data.get("fill")) or None
        return cls(name=_text(data.get("name")), value=_number(data.get("value")), fill=fill)


@dataclass(frozen=True)
class DashboardStats:
    """
    Aggregate snapshot shown on the overview tab.

    kehadiran_bulanan: monthly attendance series (Jan, Feb, ...)
    pecahan_unit:      students per uniformed unit
    pencapaian_terkini: current attendance/achievement percentage
    total_pelajar:     total students under this teacher
    """
    kehadiran_bulanan: List[StatPoint] = field(default_factory=list)
    pecahan_unit: List[StatPoint] = field(default_factory=list)
    pencapaian_terkini: float = 0.0
    total_pelajar: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DashboardStats":
        if not isinstance(data, dict):
            raise ValueError(f"Statistics payload must be an object, got {type(data)}")

        monthly = data.get("kehadiran_bulanan") or []
        units = data.get("pecahan_unit") or []
        if not isinstance(monthly, list) or not isinstance(units, list):
            raise ValueError("Statistics series must be lists")

        return cls(
            kehadiran_bulanan=[StatPoint.from_dict(p) for p in monthly],
            pecahan_unit=[StatPoint.from_dict(p) for p in units],
            pencapaian_terkini=_number(data.get("pencapaian_terkini")),
            total_pelajar=int(_number(data.get("total_pelajar"))),
        )
