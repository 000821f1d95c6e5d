from conftest import bearer


def test_patch_rejects_null_for_required_columns(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)

    res = client.patch(f"/api/events/{event['id']}", json={"minTeamSize": None}, headers=admin)
    assert res.status_code == 400
    assert res.json()["message"] == "minTeamSize cannot be null"

    res = client.patch(f"/api/events/{event['id']}", json={"title": None}, headers=admin)
    assert res.status_code == 400
    assert res.json()["message"] == "title cannot be null"

    # nullable columns can still be cleared
    res = client.patch(f"/api/events/{event['id']}", json={"venue": None}, headers=admin)
    assert res.status_code == 200
    assert res.json()["data"]["venue"] is None


def test_patch_keeps_deadline_order(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    res = client.patch(
        f"/api/events/{event['id']}",
        json={"pptSubmissionDeadline": "2000-01-01T00:00:00+00:00"},
        headers=admin,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "pptSubmissionDeadline cannot be before registrationDeadline"

    res = client.get(f"/api/events/{event['id']}")
    assert res.json()["data"]["pptSubmissionDeadline"] == event["pptSubmissionDeadline"]


def test_patch_rejects_min_above_max(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin, maxTeamSize=3)
    res = client.patch(f"/api/events/{event['id']}", json={"minTeamSize": 4}, headers=admin)
    assert res.status_code == 400
    assert res.json()["message"] == "minTeamSize cannot be greater than maxTeamSize"


def test_event_judge_panel_open_to_admins_and_judges(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    client.post(
        "/api/judges/create",
        json={"firstName": "Panel", "lastName": "Judge", "email": "panel@endloop.com", "password": "judge-pass"},
        headers=admin,
    )
    judge = bearer(api.login("panel@endloop.com", "judge-pass").json()["data"]["token"])
    student = api.register_student()

    assert client.get(f"/api/judges/event/{event['id']}", headers=admin).status_code == 200
    assert client.get(f"/api/judges/event/{event['id']}", headers=judge).status_code == 200

    res = client.get(f"/api/judges/event/{event['id']}", headers=student["headers"])
    assert res.status_code == 403
    assert res.json()["message"] == "Access denied. Required: admin or judge"
