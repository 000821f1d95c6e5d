from models import Team, TeamMember


def test_min_team_size_rejected_before_any_rows(api, client, db_session):
    admin = api.admin_headers()
    event = api.create_event(admin, minTeamSize=3, maxTeamSize=4, allowIndividual=False)
    leader = api.register_student()
    member = api.register_student()

    res = api.create_team(leader, event["id"], team_name="Too Small", members=[member])
    assert res.status_code == 400
    assert res.json()["message"] == "Minimum team size is 3"
    assert db_session.query(Team).count() == 0
    assert db_session.query(TeamMember).count() == 0


def test_max_team_size_rejected(api):
    admin = api.admin_headers()
    event = api.create_event(admin, maxTeamSize=2)
    leader = api.register_student()
    members = [api.register_student() for _ in range(2)]
    res = api.create_team(leader, event["id"], members=members)
    assert res.status_code == 400
    assert res.json()["message"] == "Maximum team size is 2"


def test_solo_team_confirmed_immediately(api):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    res = api.create_team(leader, event["id"], team_name="Solo")
    assert res.status_code == 201
    assert res.json()["data"]["status"] == "confirmed"


def test_team_confirms_after_all_accept(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin, minTeamSize=3, allowIndividual=False)
    leader = api.register_student()
    first = api.register_student()
    second = api.register_student()

    res = api.create_team(leader, event["id"], team_name="Trio", members=[first, second])
    assert res.status_code == 201
    team = res.json()["data"]
    assert team["status"] == "pending"
    assert [m["status"] for m in team["members"]] == ["leader", "pending", "pending"]

    res = client.post(f"/api/teams/{team['id']}/accept", headers=first["headers"])
    assert res.json()["data"]["teamStatus"] == "pending"

    res = client.post(f"/api/teams/{team['id']}/accept", headers=second["headers"])
    assert res.json()["data"]["teamStatus"] == "confirmed"

    res = client.post(f"/api/teams/{team['id']}/accept", headers=second["headers"])
    assert res.status_code == 400
    assert res.json()["message"] == "Invitation already accepted"

    res = client.get("/api/notifications", headers=leader["headers"])
    titles = [n["title"] for n in res.json()["data"]]
    assert "Team Confirmed!" in titles


def test_decline_keeps_team_pending_when_below_minimum(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin, minTeamSize=2, allowIndividual=False)
    leader = api.register_student()
    invitee = api.register_student()
    team = api.create_team(leader, event["id"], members=[invitee]).json()["data"]

    res = client.post(f"/api/teams/{team['id']}/decline", headers=invitee["headers"])
    assert res.status_code == 200
    assert res.json()["data"]["teamStatus"] == "pending"

    res = client.get("/api/notifications", headers=leader["headers"])
    assert res.json()["data"][0]["title"] == "Invitation Declined"


def test_decline_with_individuals_allowed_confirms_leader(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    invitee = api.register_student()
    team = api.create_team(leader, event["id"], members=[invitee]).json()["data"]

    res = client.post(f"/api/teams/{team['id']}/decline", headers=invitee["headers"])
    assert res.json()["data"]["teamStatus"] == "confirmed"


def test_leader_cannot_decline(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    invitee = api.register_student()
    team = api.create_team(leader, event["id"], members=[invitee]).json()["data"]
    res = client.post(f"/api/teams/{team['id']}/decline", headers=leader["headers"])
    assert res.status_code == 400


def test_invitee_must_be_registered(api):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    res = api.create_team(leader, event["id"], members=[{"email": "ghost@college.com"}])
    assert res.status_code == 400
    assert res.json()["message"] == "No registered user found with email: ghost@college.com"


def test_student_in_one_team_per_event(api):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    other_leader = api.register_student()
    member = api.register_student()

    assert api.create_team(leader, event["id"], members=[member]).status_code == 201
    res = api.create_team(other_leader, event["id"], members=[member])
    assert res.status_code == 409
    assert res.json()["message"] == f"{member['email']} is already in a team for this event"

    res = api.create_team(leader, event["id"], team_name="Second")
    assert res.status_code == 409


def test_duplicate_team_name(api):
    admin = api.admin_headers()
    event = api.create_event(admin)
    first = api.register_student()
    second = api.register_student()
    assert api.create_team(first, event["id"], team_name="Dup").status_code == 201
    res = api.create_team(second, event["id"], team_name="Dup")
    assert res.status_code == 409
    assert res.json()["message"] == "Team name already taken for this event"


def test_registration_must_be_open(api):
    admin = api.admin_headers()
    event = api.create_event(admin, open_registration=False)
    leader = api.register_student()
    res = api.create_team(leader, event["id"])
    assert res.status_code == 400
    assert res.json()["message"] == "Event registration is not open"


def test_team_visibility_and_deletion(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    invitee = api.register_student()
    outsider = api.register_student()
    team = api.create_team(leader, event["id"], members=[invitee]).json()["data"]

    assert client.get(f"/api/teams/{team['id']}", headers=invitee["headers"]).status_code == 200
    assert client.get(f"/api/teams/{team['id']}", headers=outsider["headers"]).status_code == 403
    assert client.get(f"/api/teams/{team['id']}", headers=admin).status_code == 200

    res = client.get("/api/teams/my-teams", headers=invitee["headers"])
    assert res.json()["data"][0]["myStatus"] == "pending"

    assert client.delete(f"/api/teams/{team['id']}", headers=invitee["headers"]).status_code == 403
    res = client.delete(f"/api/teams/{team['id']}", headers=leader["headers"])
    assert res.status_code == 200
    res = client.get("/api/notifications", headers=invitee["headers"])
    assert res.json()["data"][0]["title"] == "Team Deleted"


def test_notifications_mark_read(api, client):
    admin = api.admin_headers()
    event = api.create_event(admin)
    leader = api.register_student()
    invitee = api.register_student()
    api.create_team(leader, event["id"], members=[invitee])

    res = client.get("/api/notifications", headers=invitee["headers"])
    body = res.json()
    assert body["unreadCount"] == 1
    notification = body["data"][0]
    assert notification["type"] == "team_invite"

    res = client.patch(f"/api/notifications/{notification['id']}/read", headers=invitee["headers"])
    assert res.json()["data"]["isRead"] is True
    assert client.get("/api/notifications", headers=invitee["headers"]).json()["unreadCount"] == 0

    res = client.patch(f"/api/notifications/{notification['id']}/read", headers=leader["headers"])
    assert res.status_code == 404

    res = client.patch("/api/notifications/mark-all-read", headers=leader["headers"])
    assert res.status_code == 200
