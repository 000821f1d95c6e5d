from conftest import PDF_BYTES, b64

from models import EntryQr, FoodQr


def _active_event(api, client, admin, team_size=2, shortlisted=1, total_teams=2):
    event = api.create_event(admin, teamsToShortlist=shortlisted, meals=["Breakfast", "Lunch"])
    teams = [api.confirmed_team(event["id"], size=team_size) for _ in range(total_teams)]
    api.set_status(admin, event["id"], "shortlisting")
    for index, team in enumerate(teams):
        api.score_ppt(admin, event["id"], team["id"], 9 - index)
    res = client.post(f"/api/shortlist/confirm/{event['id']}", headers=admin)
    assert res.status_code == 200, res.text
    return event, teams


def test_qr_generation_requires_active_hackathon(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    res = client.post(f"/api/qr/generate/{event['id']}", headers=admin)
    assert res.status_code == 400
    assert res.json()["message"] == "QRs can only be generated after shortlisting is confirmed"


def test_only_shortlisted_members_get_qrs(api, client, db_session, storage):
    admin = api.admin_headers()
    event, teams = _active_event(api, client, admin)

    res = client.post(f"/api/qr/generate/{event['id']}", headers=admin)
    assert res.status_code == 200
    assert res.json()["data"] == {"teams": 1, "entryCreated": 2, "foodCreated": 4}
    assert all(content_type == "image/png" for _, content_type in storage.objects.values())

    # second run creates nothing new
    res = client.post(f"/api/qr/generate/{event['id']}", headers=admin)
    assert res.json()["data"]["entryCreated"] == 0
    assert db_session.query(EntryQr).count() == 2
    assert db_session.query(FoodQr).count() == 4

    res = client.get(f"/api/qr/my-qr/{event['id']}", headers=teams[1]["leader"]["headers"])
    assert res.status_code == 404
    assert res.json()["message"] == "Entry QR not found. You may not be shortlisted yet."

    res = client.get(f"/api/qr/my-qr/{event['id']}", headers=teams[0]["leader"]["headers"])
    assert res.status_code == 200
    assert res.json()["data"]["isUsed"] is False


def test_shortlist_frozen_after_qr_generation(api, client):
    admin = api.admin_headers()
    event, _ = _active_event(api, client, admin)
    client.post(f"/api/qr/generate/{event['id']}", headers=admin)
    res = client.post(f"/api/shortlist/confirm/{event['id']}", headers=admin)
    assert res.status_code == 409


def test_entry_scan_marks_attendance(api, client):
    admin = api.admin_headers()
    event, teams = _active_event(api, client, admin)
    client.post(f"/api/qr/generate/{event['id']}", headers=admin)

    tokens = []
    for student in [teams[0]["leader"]] + teams[0]["members"]:
        res = client.get(f"/api/qr/my-qr/{event['id']}", headers=student["headers"])
        tokens.append(res.json()["data"]["qrToken"])

    res = client.post("/api/qr/scan", json={"qrToken": tokens[0]}, headers=admin)
    assert res.status_code == 200
    assert res.json()["data"]["teamReported"] is False

    res = client.post("/api/qr/scan", json={"qrToken": tokens[0]}, headers=admin)
    assert res.status_code == 409
    body = res.json()
    assert body["message"] == "QR already scanned!"
    assert body["data"]["email"] == teams[0]["leader"]["email"]

    res = client.post("/api/qr/scan", json={"token": f"  {tokens[1].upper()} "}, headers=admin)
    assert res.status_code == 200
    assert res.json()["data"]["teamReported"] is True

    res = client.post("/api/qr/scan", json={"qrToken": "f" * 64}, headers=admin)
    assert res.status_code == 404

    res = client.get(f"/api/qr/attendance/{event['id']}", headers=admin)
    summary = res.json()["summary"]
    assert summary["reportedTeams"] == 1
    assert summary["membersScanned"] == 2


def test_food_scan_by_prefix_and_report(api, client):
    admin = api.admin_headers()
    event, teams = _active_event(api, client, admin)
    client.post(f"/api/qr/generate/{event['id']}", headers=admin)

    res = client.get(f"/api/food-qr/my-meals/{event['id']}", headers=teams[0]["leader"]["headers"])
    meals = {row["mealType"]: row["qrToken"] for row in res.json()["data"]}
    assert set(meals) == {"Breakfast", "Lunch"}

    res = client.post("/api/food-qr/lookup", json={"qrToken": meals["Lunch"]}, headers=admin)
    assert res.json()["data"]["isUsed"] is False

    res = client.post("/api/food-qr/scan", json={"qrToken": meals["Lunch"][:40]}, headers=admin)
    assert res.status_code == 200
    assert res.json()["data"]["mealType"] == "Lunch"

    res = client.post("/api/food-qr/scan", json={"qrToken": meals["Lunch"]}, headers=admin)
    assert res.status_code == 409
    assert res.json()["message"] == "Lunch QR already used!"

    res = client.post("/api/food-qr/scan", json={"qrToken": meals["Breakfast"][:20]}, headers=admin)
    assert res.status_code == 404

    res = client.post("/api/food-qr/scan", json={}, headers=admin)
    assert res.status_code == 400
    assert res.json()["message"] == "QR token is required"

    res = client.get(f"/api/food-qr/report/{event['id']}", headers=admin)
    report = res.json()["data"]
    assert report["Lunch"] == {"total": 2, "consumed": 1, "pending": 1}
    assert report["Breakfast"] == {"total": 2, "consumed": 0, "pending": 2}


def test_hackathon_submission_flow(api, client):
    admin = api.admin_headers()
    event, teams = _active_event(api, client, admin)
    leader = teams[0]["leader"]
    member = teams[0]["members"][0]
    payload = {"eventId": event["id"], "teamId": teams[0]["id"], "pptBase64": b64(PDF_BYTES)}

    res = client.post("/api/hackathon-submissions", json=payload, headers=leader["headers"])
    assert res.status_code == 400
    assert res.json()["message"] == "GitHub link is required"

    payload["githubLink"] = "https://github.com/example/project"
    res = client.post("/api/hackathon-submissions", json=payload, headers=member["headers"])
    assert res.status_code == 403
    assert res.json()["message"] == "Only the team leader can submit the project"

    res = client.post("/api/hackathon-submissions", json=payload, headers=leader["headers"])
    assert res.status_code == 201
    assert res.json()["message"] == "Project submitted successfully!"

    res = client.post("/api/hackathon-submissions", json=payload, headers=leader["headers"])
    assert res.json()["message"] == "Submission updated successfully!"

    res = client.get(f"/api/hackathon-submissions/team/{teams[0]['id']}", headers=member["headers"])
    assert res.json()["data"]["githubLink"] == payload["githubLink"]

    client.patch(f"/api/hackathon-submissions/lock/{event['id']}", headers=admin)
    res = client.post("/api/hackathon-submissions", json=payload, headers=leader["headers"])
    assert res.status_code == 403
    assert res.json()["message"] == "Submission has been locked by admin"

    other = {**payload, "teamId": teams[1]["id"]}
    res = client.post("/api/hackathon-submissions", json=other, headers=teams[1]["leader"]["headers"])
    assert res.status_code == 403
