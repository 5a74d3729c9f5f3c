"""
HTTP API: registration, teams, flag submission, admin console and pages.
"""

from datetime import timedelta

from overdrive.event_clock import EventClock
from overdrive.phase import EventSettings, format_timestamp
from overdrive.web_handlers import WebHandlers

from conftest import NOW, FrozenClock, register, register_admin, registration_payload


def schedule(registration_end=None, start=None, end=None):
    return {
        "registration_end_time": format_timestamp(registration_end),
        "event_start_time": format_timestamp(start),
        "event_end_time": format_timestamp(end),
    }


RUNNING = schedule(NOW - timedelta(hours=2), NOW - timedelta(hours=1), NOW + timedelta(hours=1))
REGISTRATION_CLOSED = schedule(NOW - timedelta(hours=1), NOW + timedelta(hours=1), None)
ENDED = schedule(NOW - timedelta(hours=3), NOW - timedelta(hours=2), NOW - timedelta(hours=1))

CHALLENGE = {
    "title": "Baby RSA",
    "description": "Small exponent",
    "category": "Crypto",
    "difficulty": 2,
    "points": 150,
    "flag": "CTF{small_e}",
    "hints": "cube root, no padding",
}


async def set_schedule(client, admin_headers, body):
    response = await client.put("/api/admin/settings", json=body, headers=admin_headers)
    assert response.status == 200, await response.text()
    return await response.json()


async def create_visible_challenge(client, admin_headers, **overrides):
    response = await client.post(
        "/api/admin/challenges", json=dict(CHALLENGE, **overrides), headers=admin_headers
    )
    assert response.status == 201, await response.text()
    challenge = (await response.json())["challenge"]
    response = await client.post(
        f"/api/admin/challenges/{challenge['id']}/visibility",
        json={"is_visible": True},
        headers=admin_headers,
    )
    assert response.status == 200
    return challenge


async def create_team(client, headers, name="Rooters"):
    response = await client.post("/api/teams", json={"name": name}, headers=headers)
    assert response.status == 201, await response.text()
    return (await response.json())["team"]


class TestEventStatus:
    async def test_unconfigured_event(self, client, system):
        await system.db.update_event_settings(EventSettings())
        await system.clock.refresh()

        response = await client.get("/api/event/status")
        assert response.status == 200

        status = await response.json()
        assert status["phase"] == "NotStarted"
        assert status["primary"] is None
        assert status["message"] == "The event has no schedule configured"
        assert status["gates"] == {"can_manage_team": True, "can_submit_flag": False}
        assert status["registration_open"] is False

        response = await client.post("/api/register", json=registration_payload())
        assert response.status == 403

    async def test_registration_countdown(self, client):
        status = await (await client.get("/api/event/status")).json()

        assert status["registration_open"] is True
        assert status["secondary"] == {"days": 1, "hours": 0, "minutes": 0, "seconds": 0}

    def test_fields_share_one_instant(self, config):
        start = NOW + timedelta(seconds=1)
        ticks = FrozenClock()

        def stepping_now():
            current = ticks()
            ticks.advance(seconds=1)
            return current

        clock = EventClock(None, now_func=stepping_now)
        clock.settings = EventSettings(event_start_time=start)
        handlers = WebHandlers(None, config, clock, None)

        status = handlers.event_status()

        # The first reading is just before the start
        assert status["phase"] == "NotStarted"
        assert status["gates"]["can_submit_flag"] is False
        assert status["primary"] == {"days": 0, "hours": 0, "minutes": 0, "seconds": 1}

    async def test_countdown_follows_clock(self, client, system, frozen_clock):
        _, admin = await register_admin(client, system)
        await set_schedule(client, admin, schedule(None, NOW + timedelta(seconds=90), None))

        status = await (await client.get("/api/event/status")).json()
        assert status["message"] == "The CTF starts in:"
        assert status["primary"] == {"days": 0, "hours": 0, "minutes": 1, "seconds": 30}

        frozen_clock.advance(seconds=90)
        status = await (await client.get("/api/event/status")).json()
        assert status["phase"] == "Running"
        assert status["gates"]["can_submit_flag"] is True


class TestRegistration:
    async def test_register_and_login(self, client):
        profile, headers = await register(client)

        assert profile["student_id"] == "L001000000"
        assert "password_hash" not in profile
        assert "api_token" not in profile

        response = await client.post(
            "/api/login", json={"email": "USER0@espe.edu.ec", "password": "secret123"}
        )
        assert response.status == 200
        token = (await response.json())["token"]

        me = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert (await me.json())["profile"]["id"] == profile["id"]

        # Logging in again replaces the previous token
        stale = await client.get("/api/me", headers=headers)
        assert stale.status == 401

    async def test_bad_password(self, client):
        await register(client)
        response = await client.post(
            "/api/login", json={"email": "user0@espe.edu.ec", "password": "wrong"}
        )
        assert response.status == 401
        assert (await response.json())["code"] == 401

    async def test_invalid_fields(self, client):
        response = await client.post(
            "/api/register", json=registration_payload(national_id="1710034066")
        )
        assert response.status == 422
        assert set((await response.json())["fields"]) == {"national_id"}

    async def test_duplicate_national_id(self, client):
        await register(client, 0)
        response = await client.post(
            "/api/register",
            json=registration_payload(1, national_id=registration_payload(0)["national_id"]),
        )
        assert response.status == 409
        assert "national_id" in (await response.json())["fields"]

    async def test_closed_after_deadline(self, client, system):
        _, admin = await register_admin(client, system)
        await set_schedule(client, admin, REGISTRATION_CLOSED)

        response = await client.post("/api/register", json=registration_payload(1))
        assert response.status == 403

    async def test_requires_privacy_consent(self, client):
        payload = registration_payload()
        del payload["accepted_privacy"]

        response = await client.post("/api/register", json=payload)
        assert response.status == 422
        assert set((await response.json())["fields"]) == {"accepted_privacy"}

    async def test_records_privacy_consent(self, system, client):
        profile, _ = await register(client)
        stored = await system.db.get_profile(profile["id"])
        assert stored["privacy_accepted_at"] == "2025-11-09T12:00:00.000000Z"

    async def test_malformed_body(self, client):
        response = await client.post(
            "/api/register", data="[1, 2]", headers={"Content-Type": "application/json"}
        )
        assert response.status == 400

    async def test_requires_login(self, client):
        assert (await client.get("/api/me")).status == 401
        response = await client.get("/api/me", headers={"Authorization": "Bearer nope"})
        assert response.status == 401


class TestTeams:
    async def test_create_join_leave(self, client, system):
        system.config.config["teams"]["max_members"] = 2
        _, alice = await register(client, 0)
        _, bob = await register(client, 1)
        _, carol = await register(client, 2)

        team = await create_team(client, alice)
        response = await client.post(f"/api/teams/{team['id']}/join", headers=bob)
        assert response.status == 200

        response = await client.post(f"/api/teams/{team['id']}/join", headers=carol)
        assert response.status == 409

        teams = (await (await client.get("/api/teams", headers=carol)).json())["teams"]
        assert teams[0]["member_count"] == 2
        assert teams[0]["is_full"] is True

        response = await client.post("/api/team/leave", headers=bob)
        assert response.status == 200
        response = await client.post(f"/api/teams/{team['id']}/join", headers=carol)
        assert response.status == 200

    async def test_dashboard(self, client):
        _, alice = await register(client, 0)
        team = await create_team(client, alice)

        dashboard = await (await client.get("/api/me", headers=alice)).json()

        assert dashboard["team"]["id"] == team["id"]
        assert len(dashboard["members"]) == 1
        assert dashboard["rank"] == 1
        assert dashboard["gates"]["can_manage_team"] is True

    async def test_second_team_is_refused(self, client):
        _, alice = await register(client, 0)
        await create_team(client, alice)

        response = await client.post("/api/teams", json={"name": "Other"}, headers=alice)
        assert response.status == 409

    async def test_duplicate_team_name(self, client):
        _, alice = await register(client, 0)
        _, bob = await register(client, 1)
        await create_team(client, alice)

        response = await client.post("/api/teams", json={"name": "Rooters"}, headers=bob)
        assert response.status == 409

    async def test_empty_team_name(self, client):
        _, alice = await register(client, 0)
        response = await client.post("/api/teams", json={"name": "  "}, headers=alice)
        assert response.status == 422

    async def test_team_changes_close_with_registration(self, client, system):
        _, alice = await register(client, 0)
        team = await create_team(client, alice)
        _, bob = await register(client, 1)
        _, admin = await register_admin(client, system)
        await set_schedule(client, admin, REGISTRATION_CLOSED)

        response = await client.post(f"/api/teams/{team['id']}/join", headers=bob)
        assert response.status == 403
        assert (await client.post("/api/team/leave", headers=alice)).status == 403
        response = await client.post("/api/teams", json={"name": "Late"}, headers=bob)
        assert response.status == 403

    async def test_leave_without_team(self, client):
        _, alice = await register(client, 0)
        assert (await client.post("/api/team/leave", headers=alice)).status == 404


class TestFlagSubmission:
    async def setup_event(self, client, system):
        _, alice = await register(client, 0)
        await create_team(client, alice)
        _, admin = await register_admin(client, system)
        challenge = await create_visible_challenge(client, admin)
        return alice, admin, challenge

    async def test_correct_flag_scores(self, client, system):
        alice, admin, challenge = await self.setup_event(client, system)
        await set_schedule(client, admin, RUNNING)

        response = await client.post(
            f"/api/challenges/{challenge['id']}/submit",
            json={"flag": "CTF{small_e}"},
            headers=alice,
        )
        assert response.status == 200
        assert (await response.json())["correct"] is True

        board = (await (await client.get("/api/scoreboard")).json())["scoreboard"]
        assert board[0]["team_name"] == "Rooters"
        assert board[0]["score"] == 150

        challenges = (await (await client.get("/api/challenges", headers=alice)).json())[
            "challenges"
        ]
        assert challenges[0]["solved"] is True
        assert "flag" not in challenges[0]
        assert challenges[0]["hints"] == ["cube root", "no padding"]

        response = await client.post(
            f"/api/challenges/{challenge['id']}/submit",
            json={"flag": "CTF{small_e}"},
            headers=alice,
        )
        assert response.status == 409

    async def test_incorrect_flag(self, client, system):
        alice, admin, challenge = await self.setup_event(client, system)
        await set_schedule(client, admin, RUNNING)

        response = await client.post(
            f"/api/challenges/{challenge['id']}/submit",
            json={"flag": "CTF{guess}"},
            headers=alice,
        )
        assert response.status == 200
        assert (await response.json())["correct"] is False
        board = (await (await client.get("/api/scoreboard")).json())["scoreboard"]
        assert board[0]["score"] == 0

    async def test_refused_before_start_and_after_end(self, client, system):
        alice, admin, challenge = await self.setup_event(client, system)
        url = f"/api/challenges/{challenge['id']}/submit"

        response = await client.post(url, json={"flag": "CTF{small_e}"}, headers=alice)
        assert response.status == 403

        await set_schedule(client, admin, ENDED)
        response = await client.post(url, json={"flag": "CTF{small_e}"}, headers=alice)
        assert response.status == 403

    async def test_requires_team(self, client, system):
        _, admin, challenge = await self.setup_event(client, system)
        _, bob = await register(client, 1)
        await set_schedule(client, admin, RUNNING)

        response = await client.post(
            f"/api/challenges/{challenge['id']}/submit",
            json={"flag": "CTF{small_e}"},
            headers=bob,
        )
        assert response.status == 403
        assert (await client.get("/api/challenges", headers=bob)).status == 403

    async def test_hidden_challenge(self, client, system):
        alice, admin, challenge = await self.setup_event(client, system)
        await client.post(
            f"/api/admin/challenges/{challenge['id']}/visibility", headers=admin
        )
        await set_schedule(client, admin, RUNNING)

        response = await client.post(
            f"/api/challenges/{challenge['id']}/submit",
            json={"flag": "CTF{small_e}"},
            headers=alice,
        )
        assert response.status == 404

    async def test_flag_is_compared_exactly(self, client, system):
        alice, admin, challenge = await self.setup_event(client, system)
        await set_schedule(client, admin, RUNNING)
        url = f"/api/challenges/{challenge['id']}/submit"

        for attempt in (" CTF{small_e}", "CTF{small_e}\n", "ctf{small_e}"):
            response = await client.post(url, json={"flag": attempt}, headers=alice)
            assert (await response.json())["correct"] is False

        response = await client.post(url, json={"flag": "CTF{small_e}"}, headers=alice)
        assert (await response.json())["correct"] is True

    async def test_padded_flag_is_stored_as_given(self, client, system):
        _, alice = await register(client, 0)
        await create_team(client, alice)
        _, admin = await register_admin(client, system)
        challenge = await create_visible_challenge(client, admin, flag=" padded ")
        await set_schedule(client, admin, RUNNING)
        url = f"/api/challenges/{challenge['id']}/submit"

        response = await client.post(url, json={"flag": "padded"}, headers=alice)
        assert (await response.json())["correct"] is False
        response = await client.post(url, json={"flag": " padded "}, headers=alice)
        assert (await response.json())["correct"] is True

    async def test_empty_flag(self, client, system):
        alice, admin, challenge = await self.setup_event(client, system)
        await set_schedule(client, admin, RUNNING)

        response = await client.post(
            f"/api/challenges/{challenge['id']}/submit", json={"flag": ""}, headers=alice
        )
        assert response.status == 422


class TestAdmin:
    async def test_non_admin_is_refused(self, client):
        _, alice = await register(client, 0)

        assert (await client.get("/api/admin/users", headers=alice)).status == 403
        assert (await client.get("/api/admin/users")).status == 401

    async def test_challenge_crud(self, client, system):
        _, admin = await register_admin(client, system)

        response = await client.post(
            "/api/admin/challenges", json=dict(CHALLENGE, difficulty=9), headers=admin
        )
        assert response.status == 422
        assert "difficulty" in (await response.json())["fields"]

        response = await client.post("/api/admin/challenges", json=CHALLENGE, headers=admin)
        challenge = (await response.json())["challenge"]
        assert challenge["is_visible"] is False
        assert challenge["flag"] == "CTF{small_e}"

        url = f"/api/admin/challenges/{challenge['id']}"
        toggled = await client.post(f"{url}/visibility", headers=admin)
        assert (await toggled.json())["is_visible"] is True

        assert (await client.delete(url, headers=admin)).status == 200
        assert (await client.delete(url, headers=admin)).status == 404
        listed = await (await client.get("/api/admin/challenges", headers=admin)).json()
        assert listed["challenges"] == []

    async def test_team_and_user_management(self, client, system):
        alice_profile, alice = await register(client, 0)
        bob_profile, _ = await register(client, 1)
        team = await create_team(client, alice)
        _, admin = await register_admin(client, system)

        response = await client.post("/api/admin/teams", json={"name": "Staff"}, headers=admin)
        assert response.status == 201
        staff = (await response.json())["team"]

        response = await client.post(
            f"/api/admin/users/{bob_profile['id']}/team",
            json={"team_id": staff["id"]},
            headers=admin,
        )
        assert response.status == 200

        without = await client.get("/api/admin/users?filter=without-team", headers=admin)
        names = [u["full_name"] for u in (await without.json())["users"]]
        assert alice_profile["full_name"] not in names
        assert bob_profile["full_name"] not in names
        assert (await client.get("/api/admin/users?filter=bogus", headers=admin)).status == 400

        response = await client.get(f"/api/admin/teams?expand={team['id']}", headers=admin)
        teams = {t["name"]: t for t in (await response.json())["teams"]}
        assert [m["user_id"] for m in teams["Rooters"]["members"]] == [alice_profile["id"]]
        assert "members" not in teams["Staff"]

        response = await client.delete(
            f"/api/admin/teams/{team['id']}/members/{alice_profile['id']}", headers=admin
        )
        assert response.status == 200
        assert (await client.delete(f"/api/admin/teams/{staff['id']}", headers=admin)).status == 200

        users = await client.get("/api/admin/users?filter=with-team", headers=admin)
        assert (await users.json())["users"] == []

    async def test_admin_ignores_phase_gates(self, client, system):
        bob_profile, _ = await register(client, 1)
        _, admin = await register_admin(client, system)
        await set_schedule(client, admin, ENDED)

        response = await client.post("/api/admin/teams", json={"name": "Late"}, headers=admin)
        team = (await response.json())["team"]
        response = await client.post(
            f"/api/admin/users/{bob_profile['id']}/team",
            json={"team_id": team["id"]},
            headers=admin,
        )
        assert response.status == 200

    async def test_settings(self, client, system):
        _, admin = await register_admin(client, system)

        body = await set_schedule(client, admin, RUNNING)
        assert body["phase"] == "Running"
        assert body["settings"] == RUNNING

        stored = await (await client.get("/api/admin/settings", headers=admin)).json()
        assert stored["settings"] == RUNNING

        response = await client.put(
            "/api/admin/settings", json={"event_start_time": "tomorrow"}, headers=admin
        )
        assert response.status == 422

        for out_of_range in ("0001-01-01T00:00:00+01:00", "9999-12-31T23:59:59-01:00"):
            response = await client.put(
                "/api/admin/settings", json={"event_end_time": out_of_range}, headers=admin
            )
            assert response.status == 422
            assert set((await response.json())["fields"]) == {"event_end_time"}

        body = await set_schedule(client, admin, schedule())
        assert body["phase"] == "NotStarted"


class TestCertificate:
    async def test_unavailable_without_base_url(self, client):
        _, alice = await register(client, 0)
        assert (await client.get("/api/certificate", headers=alice)).status == 404

    async def test_link(self, client, system):
        system.config.config["certificates"]["base_url"] = "https://certs.example.org/ctf/"
        _, alice = await register(client, 0)

        response = await client.get("/api/certificate", headers=alice)
        assert response.status == 200
        data = await response.json()
        assert data["url"] == "https://certs.example.org/ctf/1710034065"


class TestPages:
    async def test_index_renders_scoreboard(self, client):
        _, alice = await register(client, 0)
        await create_team(client, alice, name="<b>Rooters</b>")

        response = await client.get("/")
        assert response.status == 200
        html = await response.text()
        assert "PROJECT OVERDRIVE" in html
        assert "&lt;b&gt;Rooters&lt;/b&gt;" in html
        assert "The CTF start time has not been announced" in html
        assert "Registration closes in:" in html
        assert "1d 00:00:00" in html
