"""
API tests for chat: channels, direct messages, search and the general lock.

Testing philosophy:
- Channel visibility depends on role, so each role lists channels
- Direct channels are addressed by id and only their members may post
"""

from afsp.core.models import Role, direct_channel_id


def post_message(client, account, content="Hello", **extra):
    return client.post(
        "/api/v1/chat/messages",
        headers=account.headers,
        json={"content": content, **extra},
    )


# ---------------------------------------------------------------------------
# Channel Listing Tests
# ---------------------------------------------------------------------------

class TestChannels:
    """Tests for GET /chat/channels."""

    def test_general_channel_first(self, client, athlete):
        channels = client.get("/api/v1/chat/channels", headers=athlete.headers).json()["channels"]

        assert channels[0]["id"] == "general"
        assert channels[0]["type"] == "group"
        assert channels[0]["locked"] is False

    def test_athlete_sees_assigned_coach(self, client, make_account, coach):
        athlete = make_account(Role.ATHLETE, "Coached Athlete", coach=coach)

        channels = client.get("/api/v1/chat/channels", headers=athlete.headers).json()["channels"]

        coach_channel = channels[1]
        assert coach_channel["id"] == direct_channel_id(athlete.id, coach.id)
        assert coach_channel["name"] == "Coach: Casey Coach"
        assert sorted(coach_channel["participants"]) == sorted([athlete.id, coach.id])

    def test_admin_sees_one_channel_per_athlete(self, client, admin, athlete, coach):
        channels = client.get("/api/v1/chat/channels", headers=admin.headers).json()["channels"]

        ids = [c["id"] for c in channels]
        assert ids == ["general", direct_channel_id(admin.id, athlete.id)]
        assert channels[1]["name"] == "Avery Athlete"

    def test_existing_direct_channels_listed_once(self, client, athlete, coach):
        client.post("/api/v1/chat/dm-channel", headers=athlete.headers, json={"userId": coach.id})
        post_message(client, athlete, recipientId=coach.id)

        channels = client.get("/api/v1/chat/channels", headers=coach.headers).json()["channels"]

        assert [c["id"] for c in channels] == ["general", direct_channel_id(athlete.id, coach.id)]
        assert channels[1]["name"] == "Avery Athlete"


class TestDirectChannel:
    """Tests for POST /chat/dm-channel."""

    def test_opens_channel(self, client, athlete, coach):
        response = client.post(
            "/api/v1/chat/dm-channel", headers=athlete.headers, json={"userId": coach.id}
        )

        assert response.status_code == 200
        channel = response.json()["channel"]
        assert channel["id"] == direct_channel_id(athlete.id, coach.id)
        assert channel["name"] == "Casey Coach"
        assert channel["type"] == "direct"

    def test_same_channel_from_either_side(self, client, athlete, coach):
        first = client.post(
            "/api/v1/chat/dm-channel", headers=athlete.headers, json={"userId": coach.id}
        ).json()["channel"]
        second = client.post(
            "/api/v1/chat/dm-channel", headers=coach.headers, json={"userId": athlete.id}
        ).json()["channel"]

        assert first["id"] == second["id"]

    def test_cannot_message_self(self, client, athlete):
        response = client.post(
            "/api/v1/chat/dm-channel", headers=athlete.headers, json={"userId": athlete.id}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Cannot start a conversation with yourself"}

    def test_unknown_user(self, client, athlete):
        response = client.post(
            "/api/v1/chat/dm-channel", headers=athlete.headers, json={"userId": "ghost"}
        )

        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}


class TestSearchUsers:
    """Tests for GET /chat/search-users."""

    def test_search_matches_and_excludes_caller(self, client, make_account):
        caller = make_account(Role.ATHLETE, "Sam Caller")
        make_account(Role.COACH, "Sam Coach", username="samc")
        make_account(Role.ATHLETE, "Pat Other")

        response = client.get(
            "/api/v1/chat/search-users", headers=caller.headers, params={"q": "sam"}
        )

        users = response.json()["users"]
        assert [u["fullName"] for u in users] == ["Sam Coach"]
        assert users[0]["role"] == "coach"
        assert users[0]["username"] == "samc"

    def test_empty_query(self, client, athlete):
        response = client.get("/api/v1/chat/search-users", headers=athlete.headers)

        assert response.json() == {"users": []}


# ---------------------------------------------------------------------------
# Message Tests
# ---------------------------------------------------------------------------

class TestMessages:
    """Tests for posting and reading messages."""

    def test_post_to_general_by_default(self, client, athlete):
        response = post_message(client, athlete, content="  Morning all ")

        assert response.status_code == 200
        message = response.json()["message"]
        assert message["channelId"] == "general"
        assert message["content"] == "Morning all"
        assert message["senderName"] == "Avery Athlete"

    def test_empty_message_rejected(self, client, athlete):
        response = post_message(client, athlete, content="   ")

        assert response.status_code == 400
        assert response.json() == {"error": "Message content required"}

    def test_general_messages_oldest_first_with_names(self, client, athlete, coach):
        post_message(client, athlete, content="first")
        post_message(client, coach, content="second")

        messages = client.get(
            "/api/v1/chat/messages/general", headers=athlete.headers
        ).json()["messages"]

        assert [m["content"] for m in messages] == ["first", "second"]
        assert [m["senderName"] for m in messages] == ["Avery Athlete", "Casey Coach"]

    def test_recipient_routes_to_direct_channel(self, client, athlete, coach):
        response = post_message(client, athlete, content="Question", recipientId=coach.id)

        message = response.json()["message"]
        channel_id = direct_channel_id(athlete.id, coach.id)
        assert message["channelId"] == channel_id
        assert message["recipientId"] == coach.id

        messages = client.get(
            f"/api/v1/chat/messages/{channel_id}", headers=coach.headers
        ).json()["messages"]
        assert [m["content"] for m in messages] == ["Question"]

    def test_outsider_cannot_read_direct_channel(self, client, athlete, coach, make_account):
        outsider = make_account(full_name="Outsider")
        channel_id = direct_channel_id(athlete.id, coach.id)

        response = client.get(f"/api/v1/chat/messages/{channel_id}", headers=outsider.headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized to access this channel"}

    def test_outsider_cannot_post_to_direct_channel(self, client, athlete, coach, make_account):
        outsider = make_account(full_name="Outsider")

        response = post_message(
            client, outsider, channelId=direct_channel_id(athlete.id, coach.id)
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized to post in this channel"}

    def test_admin_can_read_but_not_post_in_others_channel(self, client, admin, athlete, coach):
        channel_id = direct_channel_id(athlete.id, coach.id)
        post_message(client, athlete, channelId=channel_id)

        read = client.get(f"/api/v1/chat/messages/{channel_id}", headers=admin.headers)
        write = post_message(client, admin, channelId=channel_id)

        assert read.status_code == 200
        assert len(read.json()["messages"]) == 1
        assert write.status_code == 403

    def test_unknown_channel(self, client, athlete):
        response = client.get("/api/v1/chat/messages/coach:someone", headers=athlete.headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Channel not found"}


# ---------------------------------------------------------------------------
# General Channel Lock Tests
# ---------------------------------------------------------------------------

class TestGeneralLock:
    """Tests for locking and unlocking the general channel."""

    def test_status_defaults_unlocked(self, client, athlete):
        response = client.get("/api/v1/chat/general/status", headers=athlete.headers)

        assert response.json() == {"locked": False, "lockedBy": None, "lockedAt": None}

    def test_lock_blocks_non_admins(self, client, admin, athlete):
        assert client.post("/api/v1/chat/general/lock", headers=admin.headers).json() == {
            "success": True, "locked": True
        }

        blocked = post_message(client, athlete)
        allowed = post_message(client, admin, content="Announcement")

        assert blocked.status_code == 403
        assert blocked.json() == {
            "error": "This channel is locked. Only admins can post messages."
        }
        assert allowed.status_code == 200

        status = client.get("/api/v1/chat/general/status", headers=athlete.headers).json()
        assert status["locked"] is True
        assert status["lockedBy"] == admin.id

    def test_lock_does_not_affect_direct_messages(self, client, admin, athlete, coach):
        client.post("/api/v1/chat/general/lock", headers=admin.headers)

        response = post_message(client, athlete, recipientId=coach.id)

        assert response.status_code == 200

    def test_unlock(self, client, admin, athlete):
        client.post("/api/v1/chat/general/lock", headers=admin.headers)

        client.post("/api/v1/chat/general/unlock", headers=admin.headers)

        assert post_message(client, athlete).status_code == 200

    def test_only_admins_can_lock(self, client, coach):
        response = client.post("/api/v1/chat/general/lock", headers=coach.headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}
