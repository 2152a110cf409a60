from hostelsync.models import RoleEnum, WaterIssue

NEW_USER = {
    "name": "Ravi Plumber",
    "email": "ravi@example.com",
    "password": "Passw0rd!",
    "role": "PLUMBER",
    "room_number": "Staff-1",
}


def test_admin_user_crud(admin_client, auth_client, make_user, headers_for):
    admin = headers_for(make_user(RoleEnum.ADMIN))
    created = admin_client.post("/admin/users", json=NEW_USER, headers=admin)
    assert created.status_code == 201
    user_id = created.json()["id"]

    duplicate = admin_client.post("/admin/users", json=NEW_USER, headers=admin)
    assert duplicate.status_code == 400

    fetched = admin_client.get(f"/admin/users/{user_id}", headers=admin)
    assert fetched.json()["role"] == "PLUMBER"

    updated = admin_client.put(
        f"/admin/users/{user_id}",
        json={"role": "IT_STAFF", "password": "N3wPassw0rd!", "is_active": False},
        headers=admin,
    )
    assert updated.status_code == 200
    assert updated.json()["role"] == "IT_STAFF"
    assert updated.json()["is_active"] is False

    login = auth_client.post("/auth/login", json={"email": "ravi@example.com", "password": "N3wPassw0rd!"})
    assert login.status_code == 403

    deleted = admin_client.delete(f"/admin/users/{user_id}", headers=admin)
    assert deleted.status_code == 200
    assert admin_client.get(f"/admin/users/{user_id}", headers=admin).status_code == 404


def test_admin_list_paginates_and_searches(admin_client, make_user, headers_for):
    admin = headers_for(make_user(RoleEnum.ADMIN))
    for index in range(12):
        make_user(name=f"Student {index}", room_number=f"C-{100 + index}")
    make_user(RoleEnum.CLEANER, name="Meena")

    page = admin_client.get("/admin/users", params={"page": 2, "limit": 5}, headers=admin).json()
    assert page["pagination"] == {"total": 14, "page": 2, "limit": 5, "total_pages": 3}
    assert len(page["data"]) == 5

    by_role = admin_client.get("/admin/users", params={"role": "CLEANER"}, headers=admin).json()
    assert [user["name"] for user in by_role["data"]] == ["Meena"]

    by_room = admin_client.get("/admin/users", params={"search": "c-105"}, headers=admin).json()
    assert [user["room_number"] for user in by_room["data"]] == ["C-105"]

    too_many = admin_client.get("/admin/users", params={"limit": 500}, headers=admin)
    assert too_many.status_code == 400

    cleaners = admin_client.get("/admin/users/role/CLEANER", headers=admin).json()
    assert len(cleaners) == 1


def test_delete_refused_with_related_records(admin_client, make_user, headers_for, db_session):
    admin_user = make_user(RoleEnum.ADMIN)
    student = make_user()
    db_session.add(
        WaterIssue(
            reporter_id=student.id,
            title="Low pressure",
            description="Shower pressure is very low.",
            location="Block A",
        )
    )
    db_session.commit()

    response = admin_client.delete(f"/admin/users/{student.id}", headers=headers_for(admin_user))
    assert response.status_code == 400
    assert response.json()["detail"]["related"] == {"water_issues_reported": 1}

    itself = admin_client.delete(f"/admin/users/{admin_user.id}", headers=headers_for(admin_user))
    assert itself.status_code == 400


def test_non_admins_are_rejected(admin_client, make_user, headers_for):
    warden = headers_for(make_user(RoleEnum.WARDEN))
    response = admin_client.get("/admin/users", headers=warden)
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied"
