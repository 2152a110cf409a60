import csv
import io
from datetime import date, timedelta
from pathlib import Path

from hostelsync.config import get_settings
from hostelsync.models import RoleEnum
from services.mess import app as mess_service

TODAY = date.today()
ITEMS = [
    {"name": "Idli", "dietary_type": "VEG"},
    {"name": "Egg Curry", "dietary_type": "NON_VEG"},
]


def _menu(mess_client, headers, menu_date=TODAY, meal_type="LUNCH", items=ITEMS):
    return mess_client.post(
        "/mess/menu",
        json={"date": menu_date.isoformat(), "meal_type": meal_type, "serving_time": "13:00", "items": items},
        headers=headers,
    )


def test_weekly_recurring_series_lifecycle(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))
    created = mess_client.post(
        "/mess/menu/recurring",
        json={
            "start_date": "2025-11-09",
            "end_date": "2025-11-22",
            "meal_type": "BREAKFAST",
            "serving_time": "08:00",
            "items": ITEMS,
            "frequency": "WEEKLY",
            "days_of_week": [1, 3],
        },
        headers=staff,
    )
    assert created.status_code == 201
    body = created.json()
    assert body["count"] == 4
    assert body["dates"] == ["2025-11-10", "2025-11-12", "2025-11-17", "2025-11-19"]

    base_id = body["base_menu_id"]
    series = mess_client.get(f"/mess/menu/recurring/{base_id}", headers=staff).json()
    assert series["count"] == 4
    assert all(menu["is_recurring"] for menu in series["data"])
    assert all(menu["recurrence_ends_at"] == "2025-11-22" for menu in series["data"])
    assert [menu["base_menu_id"] for menu in series["data"]] == [None, base_id, base_id, base_id]

    single = mess_client.delete(f"/mess/menu/{base_id}", headers=staff)
    assert single.status_code == 400

    deleted = mess_client.delete(f"/mess/menu/recurring/{base_id}", headers=staff)
    assert deleted.status_code == 200
    assert deleted.json()["deleted"] == 4
    assert mess_client.get(f"/mess/menu/recurring/{base_id}", headers=staff).status_code == 404


def test_recurring_requires_days_for_weekly(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))
    response = mess_client.post(
        "/mess/menu/recurring",
        json={
            "start_date": "2025-11-09",
            "end_date": "2025-11-22",
            "meal_type": "DINNER",
            "items": ITEMS,
            "frequency": "WEEKLY",
        },
        headers=staff,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Validation failed"


def test_recurring_absorbs_existing_menu(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))
    existing = _menu(mess_client, staff, date(2025, 11, 11), "DINNER").json()
    created = mess_client.post(
        "/mess/menu/recurring",
        json={
            "start_date": "2025-11-10",
            "end_date": "2025-11-12",
            "meal_type": "DINNER",
            "items": [{"name": "Khichdi", "dietary_type": "JAIN"}],
            "frequency": "DAILY",
        },
        headers=staff,
    ).json()
    assert created["count"] == 3
    series = mess_client.get(f"/mess/menu/recurring/{created['base_menu_id']}", headers=staff).json()
    absorbed = next(menu for menu in series["data"] if menu["id"] == existing["id"])
    assert absorbed["items"] == [{"name": "Khichdi", "dietary_type": "JAIN"}]


def test_week_menu_is_cached_and_invalidated(mess_client, make_user, headers_for):
    empty = mess_client.get("/mess/menu/week")
    assert empty.status_code == 404
    assert empty.json()["detail"]["available_from"] is None

    staff = headers_for(make_user(RoleEnum.STAFF))
    assert _menu(mess_client, staff).status_code == 201
    assert len(mess_client.get("/mess/menu/week").json()) == 1

    assert _menu(mess_client, staff, meal_type="DINNER").status_code == 201
    week = mess_client.get("/mess/menu/week").json()
    assert {menu["meal_type"] for menu in week} == {"LUNCH", "DINNER"}
    assert week[0]["items"][0]["name"] == "Idli"


def test_menu_upsert_update_and_delete(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.ADMIN))
    first = _menu(mess_client, staff).json()
    replaced = _menu(mess_client, staff, items=[{"name": "Pulao", "dietary_type": "VEG"}]).json()
    assert replaced["id"] == first["id"]
    assert [item["name"] for item in replaced["items"]] == ["Pulao"]

    updated = mess_client.put(
        f"/mess/menu/{first['id']}",
        json={"serving_time": "12:30"},
        headers=staff,
    )
    assert updated.status_code == 200
    assert updated.json()["serving_time"] == "12:30"
    assert updated.json()["items"][0]["name"] == "Pulao"

    other = _menu(mess_client, staff, meal_type="DINNER").json()
    clash = mess_client.put(f"/mess/menu/{other['id']}", json={"meal_type": "LUNCH"}, headers=staff)
    assert clash.status_code == 400

    assert mess_client.delete(f"/mess/menu/{other['id']}", headers=staff).status_code == 200
    assert mess_client.delete(f"/mess/menu/{other['id']}", headers=staff).status_code == 404


def test_students_cannot_manage_menus(mess_client, make_user, headers_for):
    student = headers_for(make_user())
    assert _menu(mess_client, student).status_code == 403


def test_meal_feedback_rules(mess_client, make_user, headers_for):
    staff_user = make_user(RoleEnum.STAFF)
    staff = headers_for(staff_user)
    served = _menu(mess_client, staff).json()
    upcoming = _menu(mess_client, staff, TODAY + timedelta(days=2)).json()
    alice, bob = make_user(), make_user()

    ok = mess_client.post(
        "/mess/feedback",
        json={"menu_id": served["id"], "rating": 4, "comment": "Tasty"},
        headers=headers_for(alice),
    )
    assert ok.status_code == 201
    assert ok.json()["status"] == "PENDING"

    repeat = mess_client.post("/mess/feedback", json={"menu_id": served["id"], "rating": 2}, headers=headers_for(alice))
    assert repeat.status_code == 400

    early = mess_client.post("/mess/feedback", json={"menu_id": upcoming["id"], "rating": 5}, headers=headers_for(bob))
    assert early.status_code == 400

    mess_client.post("/mess/feedback", json={"menu_id": served["id"], "rating": 3}, headers=headers_for(bob))
    own = mess_client.get("/mess/feedback", headers=headers_for(alice)).json()
    assert [entry["user_id"] for entry in own] == [alice.id]
    assert len(mess_client.get("/mess/feedback", headers=staff).json()) == 2

    locked = mess_client.delete(f"/mess/menu/{served['id']}", headers=staff)
    assert locked.status_code == 400


def _csv_bytes(rows):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["date", "mealType", "servingTime", "items"])
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def test_csv_import_reports_row_numbers(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))
    rows = [
        [(date(2025, 12, 1) + timedelta(days=offset)).isoformat(), "LUNCH", "13:00", "Rice (VEG), Fish Fry (NON_VEG)"]
        for offset in range(10)
    ]
    rows[2][3] = ""
    response = mess_client.post(
        "/mess/menu/import",
        files={"file": ("menus.csv", _csv_bytes(rows), "text/csv")},
        headers=staff,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["imported"] == 9
    assert body["total"] == 10
    assert len(body["errors"]) == 1
    assert body["errors"][0]["row"] == 4
    assert body["errors"][0]["data"]["date"] == "2025-12-03"
    assert list(Path(get_settings().upload_dir).glob("*.csv")) == []


def test_csv_import_rejects_bad_files(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))
    no_columns = mess_client.post(
        "/mess/menu/import",
        files={"file": ("menus.csv", b"day,meal\n2025-12-01,LUNCH\n", "text/csv")},
        headers=staff,
    )
    assert no_columns.status_code == 400
    assert list(Path(get_settings().upload_dir).glob("*.csv")) == []

    header_only = mess_client.post(
        "/mess/menu/import",
        files={"file": ("menus.csv", _csv_bytes([]), "text/csv")},
        headers=staff,
    )
    assert header_only.status_code == 400
    assert list(Path(get_settings().upload_dir).glob("*.csv")) == []

    not_csv = mess_client.post(
        "/mess/menu/import",
        files={"file": ("menus.txt", b"hello", "text/plain")},
        headers=staff,
    )
    assert not_csv.status_code == 400

    latin1 = "date,mealType,items\n2025-12-01,LUNCH,Cr\u00e8me br\u00fbl\u00e9e (VEG)\n".encode("latin-1")
    not_utf8 = mess_client.post(
        "/mess/menu/import",
        files={"file": ("menus.csv", latin1, "text/csv")},
        headers=staff,
    )
    assert not_utf8.status_code == 400
    assert not_utf8.json()["detail"] == "CSV file must be UTF-8 encoded"
    assert list(Path(get_settings().upload_dir).glob("*.csv")) == []


def test_csv_import_enforces_size_limit(mess_client, make_user, headers_for, monkeypatch):
    monkeypatch.setattr(mess_service.settings, "max_import_bytes", 64)
    staff = headers_for(make_user(RoleEnum.STAFF))
    rows = [["2025-12-01", "LUNCH", "13:00", "Rice (VEG)"] for _ in range(10)]
    response = mess_client.post(
        "/mess/menu/import",
        files={"file": ("menus.csv", _csv_bytes(rows), "text/csv")},
        headers=staff,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "CSV file is too large"
    assert list(Path(mess_service.settings.upload_dir).glob("*.csv")) == []


def test_csv_export_and_template(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))
    assert mess_client.get("/mess/menu/export", headers=staff).status_code == 404

    _menu(mess_client, staff, date(2025, 12, 1))
    export = mess_client.get(
        "/mess/menu/export",
        params={"start_date": "2025-12-01", "end_date": "2025-12-31"},
        headers=staff,
    )
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(export.text)))
    assert rows[0] == ["date", "mealType", "servingTime", "isRecurring", "items"]
    assert rows[1] == ["2025-12-01", "LUNCH", "13:00", "No", "Idli (VEG), Egg Curry (NON_VEG)"]
    assert list(Path(get_settings().export_dir).glob("*.csv")) == []

    template = mess_client.get("/mess/menu/template", headers=staff)
    assert template.status_code == 200
    assert template.text.splitlines()[0] == "date,mealType,servingTime,items"
    assert "mess_menu_template.csv" in template.headers["content-disposition"]

    ranged = mess_client.get("/mess/menu/export", headers={**staff, "Range": "bytes=oops"})
    assert ranged.status_code == 200
    assert "attachment" in ranged.headers["content-disposition"]
    assert list(Path(get_settings().export_dir).glob("*.csv")) == []


def test_new_series_on_old_base_releases_leftover_rows(mess_client, make_user, headers_for):
    staff = headers_for(make_user(RoleEnum.STAFF))

    def _daily(start, end):
        return mess_client.post(
            "/mess/menu/recurring",
            json={
                "start_date": start,
                "end_date": end,
                "meal_type": "BREAKFAST",
                "items": ITEMS,
                "frequency": "DAILY",
            },
            headers=staff,
        ).json()

    first = _daily("2025-12-01", "2025-12-10")
    assert first["count"] == 10
    second = _daily("2025-12-01", "2025-12-03")
    assert second["count"] == 3
    assert second["base_menu_id"] == first["base_menu_id"]

    series = mess_client.get(f"/mess/menu/recurring/{second['base_menu_id']}", headers=staff).json()
    assert series["count"] == 3
    assert {menu["recurrence_ends_at"] for menu in series["data"]} == {"2025-12-03"}

    deleted = mess_client.delete(f"/mess/menu/recurring/{second['base_menu_id']}", headers=staff)
    assert deleted.json()["deleted"] == 3

    leftover = mess_client.get(
        "/mess/menu/export",
        params={"start_date": "2025-12-01", "end_date": "2025-12-31"},
        headers=staff,
    )
    rows = list(csv.reader(io.StringIO(leftover.text)))[1:]
    assert [row[0] for row in rows] == [f"2025-12-{day:02d}" for day in range(4, 11)]
    assert {row[3] for row in rows} == {"No"}
