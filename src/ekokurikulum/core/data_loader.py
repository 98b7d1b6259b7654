from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ekokurikulum.config import API_MAX_RETRIES, API_URL, HTTP_TIMEOUT_SECONDS
from ekokurikulum.core.models import DashboardStats, Student, User

logger = logging.getLogger(__name__)


class DataSourceError(Exception):
    """Raised when the sheet backend cannot be reached or answers with an unexpected shape."""


class UserNotFoundError(DataSourceError):
    """Raised when a login identifier cannot be resolved to a user."""


# ---------------------------------------------------------------------------
# Offline data
#
# The backend is a spreadsheet script that is often unreachable from demo
# machines. Every read operation falls back to these fixed values so the
# dashboard always has something to show.
# ---------------------------------------------------------------------------

MOCK_USER_NAME = "Cikgu Azman Bin Ali"
MOCK_USER_ROLE = "guru"
MOCK_USER_EMAIL = "azman@sekolah.edu.my"
MIN_MOCK_IDENTIFIER_LENGTH = 3

FALLBACK_STUDENTS: List[Dict[str, Any]] = [
    {"id": "1", "nama": "Ahmad Albab", "kelas": "5 Anggerik", "unit_uniform": "KRS",
     "kelab_persatuan": "Bahasa Melayu", "sukan_permainan": "Bola Sepak", "kehadiran_purata": 85},
    {"id": "2", "nama": "Siti Sarah", "kelas": "5 Anggerik", "unit_uniform": "PBSM",
     "kelab_persatuan": "STEM", "sukan_permainan": "Bola Jaring", "kehadiran_purata": 92},
    {"id": "3", "nama": "Chong Wei", "kelas": "4 Bakawali", "unit_uniform": "Pengakap",
     "kelab_persatuan": "Robotik", "sukan_permainan": "Badminton", "kehadiran_purata": 78},
    {"id": "4", "nama": "Muthu Sami", "kelas": "4 Cempaka", "unit_uniform": "KRS",
     "kelab_persatuan": "Sejarah", "sukan_permainan": "Olahraga", "kehadiran_purata": 88},
    {"id": "5", "nama": "Jessica Tan", "kelas": "3 Dahlia", "unit_uniform": "Pandu Puteri",
     "kelab_persatuan": "Koir", "sukan_permainan": "Ping Pong", "kehadiran_purata": 95},
    {"id": "6", "nama": "Nurul Huda", "kelas": "3 Dahlia", "unit_uniform": "Puteri Islam",
     "kelab_persatuan": "Agama Islam", "sukan_permainan": "Bola Tampar", "kehadiran_purata": 90},
    {"id": "7", "nama": "Raju A/L Gopal", "kelas": "5 Bestari", "unit_uniform": "Pengakap",
     "kelab_persatuan": "Bahasa Inggeris", "sukan_permainan": "Catur", "kehadiran_purata": 82},
    {"id": "8", "nama": "Lim Mei Ling", "kelas": "4 Cempaka", "unit_uniform": "PBSM",
     "kelab_persatuan": "Matematik", "sukan_permainan": "Bola Keranjang", "kehadiran_purata": 96},
]

FALLBACK_STATS: Dict[str, Any] = {
    "kehadiran_bulanan": [
        {"name": "Jan", "value": 85},
        {"name": "Feb", "value": 88},
        {"name": "Mac", "value": 92},
        {"name": "Apr", "value": 80},
        {"name": "Mei", "value": 85},
        {"name": "Jun", "value": 90},
    ],
    "pecahan_unit": [
        {"name": "KRS", "value": 30, "fill": "#3b82f6"},
        {"name": "Pengakap", "value": 45, "fill": "#ef4444"},
        {"name": "PBSM", "value": 25, "fill": "#10b981"},
        {"name": "Pandu Puteri", "value": 35, "fill": "#f59e0b"},
        {"name": "Puteri Islam", "value": 20, "fill": "#8b5cf6"},
    ],
    "pencapaian_terkini": 88,
    "total_pelajar": 153,
}


def fallback_students() -> List[Student]:
    return [Student.from_dict(row) for row in FALLBACK_STUDENTS]


def fallback_stats() -> DashboardStats:
    return DashboardStats.from_dict(FALLBACK_STATS)


def mock_user(identifier: str) -> User:
    """
    Deterministic demo identity used when the login call fails.

    Identifiers shorter than MIN_MOCK_IDENTIFIER_LENGTH are rejected so that
    typos still produce a visible login error.
    """
    if len(identifier) < MIN_MOCK_IDENTIFIER_LENGTH:
        raise UserNotFoundError("Pengguna tidak dijumpai")

    return User(
        id=identifier.upper(),
        name=MOCK_USER_NAME,
        role=MOCK_USER_ROLE,
        email=identifier if "@" in identifier else MOCK_USER_EMAIL,
    )


# ---------------------------------------------------------------------------
# HTTP plumbing
# ---------------------------------------------------------------------------

def _build_session() -> requests.Session:
    """
    Build a requests Session for the Apps Script endpoint.

    Retries stay off by default: a failed call switches straight to the
    offline data instead of keeping the teacher waiting.
    """
    session = requests.Session()

    retry = Retry(
        total=API_MAX_RETRIES,
        connect=API_MAX_RETRIES,
        read=API_MAX_RETRIES,
        status=API_MAX_RETRIES,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


_SESSION: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = _build_session()
    return _SESSION


def _call_backend(params: Dict[str, str]) -> Dict[str, Any]:
    """
    GET the endpoint with the given query params and return the JSON envelope.

    The envelope is {status: 'success'|'error', message?, data?}. Any transport
    error, non-2xx status or non-JSON body raises DataSourceError.
    """
    try:
        resp = _get_session().get(API_URL, params=params, timeout=HTTP_TIMEOUT_SECONDS, allow_redirects=True)
    except requests.RequestException as exc:
        raise DataSourceError(f"HTTP error while calling action={params.get('action')}: {exc}") from exc

    if not resp.ok:
        raise DataSourceError(f"Ralat rangkaian: {resp.status_code}")

    try:
        data = resp.json()
    except ValueError as exc:
        preview = (resp.text or "")[:200]
        raise DataSourceError(f"Non-JSON response (status={resp.status_code}). Preview: {preview}") from exc

    if not isinstance(data, dict):
        raise DataSourceError(f"Unexpected response type: {type(data)}")

    return data


def _is_success(envelope: Dict[str, Any]) -> bool:
    return envelope.get("status") == "success" and envelope.get("data") is not None


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

def login(identifier: str) -> User:
    """
    Resolve a teacher's email or IC number to a User.

    Any backend failure falls back to mock_user(), which itself raises
    UserNotFoundError for identifiers that are too short.
    """
    try:
        envelope = _call_backend({"action": "login", "q": identifier})
        if not _is_success(envelope):
            raise DataSourceError(envelope.get("message") or "Log masuk gagal")
        try:
            return User.from_dict(envelope["data"])
        except ValueError as exc:
            raise DataSourceError(f"Bad login payload: {exc}") from exc
    except DataSourceError as exc:
        logger.warning("Login via backend failed (%s); using demo identity.", exc)
        return mock_user(identifier)


def get_records(user_id: str) -> List[Student]:
    """
    Fetch the student list visible to user_id.

    A well-formed reply without data means "no students" and yields an empty
    list; only an unreachable or garbled backend switches to the offline list.
    """
    try:
        envelope = _call_backend({"action": "data", "id": user_id})
        if not _is_success(envelope):
            return []
        rows = envelope["data"]
        if not isinstance(rows, list):
            raise DataSourceError(f"Student data is not a list: {type(rows)}")
        try:
            return [Student.from_dict(row) for row in rows]
        except ValueError as exc:
            raise DataSourceError(f"Bad student row: {exc}") from exc
    except DataSourceError as exc:
        logger.warning("Loading students for %s failed (%s); using offline list.", user_id, exc)
        return fallback_students()


def get_statistics(user_id: str) -> DashboardStats:
    try:
        envelope = _call_backend({"action": "statistik", "id": user_id})
        if not _is_success(envelope):
            raise DataSourceError("Gagal muat statistik")
        try:
            return DashboardStats.from_dict(envelope["data"])
        except (ValueError, TypeError, OverflowError) as exc:
            raise DataSourceError(f"Bad statistics payload: {exc}") from exc
    except DataSourceError as exc:
        logger.warning("Loading statistics for %s failed (%s); using offline snapshot.", user_id, exc)
        return fallback_stats()


def export_document_url(user_id: str) -> str:
    """URL of the PDF report for user_id. Built locally; nothing is fetched."""
    req = requests.Request("GET", API_URL, params={"action": "pdf", "id": user_id})
    return req.prepare().url
