from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from ekokurikulum.config import API_URL, HTTP_TIMEOUT_SECONDS
from ekokurikulum.core import data_loader
from ekokurikulum.core.data_loader import UserNotFoundError
from ekokurikulum.core.filter_engine import Dimension, FilterQuery, derive_options, filtered_view
from ekokurikulum.core.models import DashboardStats, Student, User
from ekokurikulum.core.record_store import RecordStore

from conftest import FakeResponse


# ---------------------------------------------------------------------------
# login
# ---------------------------------------------------------------------------

def test_login_success(fake_session):
    payload = {"id": "G123", "name": "Cikgu Rosnah", "role": "pk_ko", "email": "rosnah@moe.edu.my"}
    fake_session.on("login", lambda p: FakeResponse({"status": "success", "data": payload}))

    user = data_loader.login("rosnah@moe.edu.my")

    assert user == User(id="G123", name="Cikgu Rosnah", role="pk_ko", email="rosnah@moe.edu.my")
    assert fake_session.calls == [{"action": "login", "q": "rosnah@moe.edu.my"}]


def test_login_fallback_short_identifier_is_not_found(fake_session):
    with pytest.raises(UserNotFoundError):
        data_loader.login("ab")


def test_login_fallback_builds_mock_identity(fake_session):
    user = data_loader.login("abc")
    assert user.id == "ABC"
    assert user.role == "guru"
    assert user.name == data_loader.MOCK_USER_NAME
    assert user.email == data_loader.MOCK_USER_EMAIL


def test_login_fallback_keeps_email_identifier(fake_session):
    user = data_loader.login("g-1@moe-dl.edu.my")
    assert user.id == "G-1@MOE-DL.EDU.MY"
    assert user.email == "g-1@moe-dl.edu.my"


def test_login_error_envelope_falls_back(fake_session):
    fake_session.on("login", lambda p: FakeResponse({"status": "error", "message": "Tiada"}))
    assert data_loader.login("xyz").id == "XYZ"
    with pytest.raises(UserNotFoundError):
        data_loader.login("xy")


def test_login_unknown_role_falls_back(fake_session):
    payload = {"id": "1", "name": "X", "role": "pengetua", "email": ""}
    fake_session.on("login", lambda p: FakeResponse({"status": "success", "data": payload}))
    assert data_loader.login("teacher01").id == "TEACHER01"


# ---------------------------------------------------------------------------
# get_records
# ---------------------------------------------------------------------------

def test_get_records_success(fake_session):
    rows = [
        {"id": 10, "nama": "Ali", "kelas": "1 Alpha", "unit_uniform": None, "kehadiran_purata": "77"},
    ]
    fake_session.on("data", lambda p: FakeResponse({"status": "success", "data": rows}))

    records = data_loader.get_records("G1")

    assert records == [Student(id="10", nama="Ali", kelas="1 Alpha", kehadiran_purata=77.0)]
    assert fake_session.calls == [{"action": "data", "id": "G1"}]


def test_get_records_error_envelope_is_empty(fake_session):
    fake_session.on("data", lambda p: FakeResponse({"status": "error", "message": "no access"}))
    assert data_loader.get_records("G1") == []


def test_get_records_network_failure_uses_offline_list(fake_session):
    records = data_loader.get_records("G1")
    assert len(records) == 8
    assert [r.nama for r in records][:2] == ["Ahmad Albab", "Siti Sarah"]


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"status": "success"}, status_code=500),
        FakeResponse(None, status_code=200, text="<html>Sign in</html>"),
        FakeResponse({"status": "success", "data": {"not": "a list"}}),
        FakeResponse(["unexpected"]),
    ],
)
def test_get_records_bad_responses_use_offline_list(fake_session, response):
    fake_session.on("data", lambda p: response)
    assert len(data_loader.get_records("G1")) == 8


def test_fallback_ids_are_unique(students):
    ids = [s.id for s in students]
    assert len(ids) == len(set(ids))


# ---------------------------------------------------------------------------
# get_statistics
# ---------------------------------------------------------------------------

def test_get_statistics_success(fake_session):
    data = {
        "kehadiran_bulanan": [{"name": "Jan", "value": 70}],
        "pecahan_unit": [{"name": "KRS", "value": 3, "fill": "#000000"}],
        "pencapaian_terkini": 71.5,
        "total_pelajar": 40,
    }
    fake_session.on("statistik", lambda p: FakeResponse({"status": "success", "data": data}))

    stats = data_loader.get_statistics("G1")

    assert stats.total_pelajar == 40
    assert stats.pencapaian_terkini == 71.5
    assert stats.kehadiran_bulanan[0].name == "Jan"
    assert stats.pecahan_unit[0].fill == "#000000"


def test_get_statistics_error_envelope_uses_fallback(fake_session):
    fake_session.on("statistik", lambda p: FakeResponse({"status": "error"}))
    assert data_loader.get_statistics("G1") == data_loader.fallback_stats()


def test_get_statistics_network_failure_uses_fallback(fake_session):
    def boom(params):
        raise requests.Timeout("slow sheet")

    fake_session.on("statistik", boom)
    stats = data_loader.get_statistics("G1")
    assert isinstance(stats, DashboardStats)
    assert stats.total_pelajar == 153
    assert stats.pencapaian_terkini == 88
    assert [p.name for p in stats.kehadiran_bulanan] == ["Jan", "Feb", "Mac", "Apr", "Mei", "Jun"]


# ---------------------------------------------------------------------------
# export_document_url
# ---------------------------------------------------------------------------

def test_export_document_url_is_local(fake_session):
    url = data_loader.export_document_url("G-1@X")

    assert fake_session.calls == []
    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == API_URL
    assert parse_qs(parts.query) == {"action": ["pdf"], "id": ["G-1@X"]}


@pytest.mark.parametrize("total", [float("inf"), float("-inf"), float("nan"), "1e400"])
def test_get_statistics_non_finite_numbers_read_as_zero(fake_session, total):
    data = {"kehadiran_bulanan": [{"name": "Jan", "value": float("inf")}], "total_pelajar": total}
    fake_session.on("statistik", lambda p: FakeResponse({"status": "success", "data": data}))

    stats = data_loader.get_statistics("G1")

    assert stats.total_pelajar == 0
    assert stats.kehadiran_bulanan[0].value == 0.0


def test_record_store_survives_infinite_total(fake_session):
    data = {"total_pelajar": float("inf"), "pencapaian_terkini": 90}
    fake_session.on("statistik", lambda p: FakeResponse({"status": "success", "data": data}))

    records, stats = RecordStore().load("G1")

    assert len(records) == 8
    assert stats.total_pelajar == 0
    assert stats.pencapaian_terkini == 90


def test_get_records_strips_text_cells(fake_session):
    rows = [
        {"id": " 1 ", "nama": " Ali ", "kelas": "4 Cempaka ", "unit_uniform": " KRS", "kehadiran_purata": 90},
        {"id": "2", "nama": "Abu", "kelas": "4 Cempaka", "unit_uniform": "KRS", "kehadiran_purata": 80},
    ]
    fake_session.on("data", lambda p: FakeResponse({"status": "success", "data": rows}))

    records = data_loader.get_records("G1")

    assert records[0].id == "1"
    assert records[0].nama == "Ali"
    assert derive_options(records, Dimension.KELAS) == ["4 Cempaka"]
    query = FilterQuery().with_selection(Dimension.UNIT_UNIFORM, "KRS")
    assert [s.id for s in filtered_view(records, query)] == ["1", "2"]


def test_requests_use_configured_timeout(fake_session):
    data_loader.get_records("G1")
    data_loader.get_statistics("G1")
    assert fake_session.timeouts == [HTTP_TIMEOUT_SECONDS, HTTP_TIMEOUT_SECONDS]
