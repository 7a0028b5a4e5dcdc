"""Tests for hush chats.

Tests cover:
- Chat creation (owner + invited rows, display name snapshots)
- Membership state machine: invite, join request, resolve, respond, leave, remove
- Re-entry from declined / left / removed
- Owner-leave closure threshold
- Labels and listings
- Messages (membership gating, trimming, limits, sender names)
- HTTP routes
"""

from uuid import uuid4

import pytest
from sqlalchemy import select, update

from tether.db.models import HushChat, HushMembership, HushMemberStatus, User
from tether.errors import ApiError, ApiErrorCode
from tether.services import hush
from tests.factories import create_hush_chat, create_test_user
from tests.helpers import auth_headers, error_code


def _member(db_session, chat_id, user_id):
    return db_session.execute(
        select(HushMembership.role, HushMembership.status, HushMembership.display_name).where(
            HushMembership.chat_id == chat_id, HushMembership.user_id == user_id
        )
    ).first()


def _chat_status(db_session, chat_id):
    return db_session.scalar(select(HushChat.status).where(HushChat.id == chat_id))


@pytest.fixture
def owner(db_session):
    return create_test_user(db_session, username="olive")


@pytest.fixture
def member(db_session):
    return create_test_user(db_session, username="mona")


@pytest.fixture
def chat_id(db_session, owner, member):
    return hush.create_hush_with(db_session, owner, member).chat_id


# =============================================================================
# create
# =============================================================================


class TestCreateHush:
    def test_creates_owner_and_invited_rows(self, db_session, owner, member):
        result = hush.create_hush_with(db_session, owner, member)

        assert result.owner_user_id == owner
        assert result.invited_user_id == member
        assert _chat_status(db_session, result.chat_id) == "open"
        assert tuple(_member(db_session, result.chat_id, owner)) == ("owner", "accepted", "olive")
        assert tuple(_member(db_session, result.chat_id, member)) == ("member", "invited", "mona")

    def test_self_target(self, db_session, owner):
        with pytest.raises(ApiError) as exc:
            hush.create_hush_with(db_session, owner, owner)
        assert exc.value.code == ApiErrorCode.E_INVALID_TARGET

    def test_unknown_target(self, db_session, owner):
        with pytest.raises(ApiError) as exc:
            hush.create_hush_with(db_session, owner, uuid4())
        assert exc.value.code == ApiErrorCode.E_USER_NOT_FOUND


# =============================================================================
# invite / respond
# =============================================================================


class TestInvite:
    def test_owner_invites_new_user(self, db_session, owner, chat_id):
        guest = create_test_user(db_session, username="gus")

        result = hush.invite_to_hush(db_session, owner, chat_id, guest)

        assert (result.role, result.status) == ("member", "invited")
        assert _member(db_session, chat_id, guest).display_name == "gus"

    def test_non_owner_cannot_invite(self, db_session, member, chat_id):
        guest = create_test_user(db_session)
        with pytest.raises(ApiError) as exc:
            hush.invite_to_hush(db_session, member, chat_id, guest)
        assert exc.value.code == ApiErrorCode.E_NOT_CHAT_OWNER

    def test_owner_who_left_cannot_invite(self, db_session, owner, chat_id):
        guest = create_test_user(db_session)
        hush.leave_hush(db_session, owner, chat_id)
        with pytest.raises(ApiError) as exc:
            hush.invite_to_hush(db_session, owner, chat_id, guest)
        assert exc.value.status_code == 403

    @pytest.mark.parametrize(
        "status", [HushMemberStatus.invited, HushMemberStatus.accepted, HushMemberStatus.requested]
    )
    def test_live_membership_cannot_be_invited(self, db_session, owner, status):
        guest = create_test_user(db_session)
        chat_id = create_hush_chat(db_session, owner, {guest: status})
        with pytest.raises(ApiError) as exc:
            hush.invite_to_hush(db_session, owner, chat_id, guest)
        assert exc.value.code == ApiErrorCode.E_CANNOT_INVITE

    @pytest.mark.parametrize(
        "status", [HushMemberStatus.declined, HushMemberStatus.left, HushMemberStatus.removed]
    )
    def test_inactive_membership_can_be_reinvited(self, db_session, owner, status):
        guest = create_test_user(db_session, username="gus")
        chat_id = create_hush_chat(db_session, owner, {guest: status})

        result = hush.invite_to_hush(db_session, owner, chat_id, guest)

        assert result.status == "invited"
        row = _member(db_session, chat_id, guest)
        assert (row.role, row.status, row.display_name) == ("member", "invited", "gus")

    def test_unknown_target(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.invite_to_hush(db_session, owner, chat_id, uuid4())
        assert exc.value.code == ApiErrorCode.E_USER_NOT_FOUND

    def test_self_invite(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.invite_to_hush(db_session, owner, chat_id, owner)
        assert exc.value.code == ApiErrorCode.E_INVALID_TARGET


class TestRespondInvite:
    def test_accept(self, db_session, member, chat_id):
        assert hush.respond_hush_invite(db_session, member, chat_id, True).status == "accepted"
        assert _member(db_session, chat_id, member).status == "accepted"

    def test_decline(self, db_session, member, chat_id):
        assert hush.respond_hush_invite(db_session, member, chat_id, False).status == "declined"

    def test_not_pending(self, db_session, member, chat_id):
        hush.respond_hush_invite(db_session, member, chat_id, True)
        with pytest.raises(ApiError) as exc:
            hush.respond_hush_invite(db_session, member, chat_id, True)
        assert exc.value.code == ApiErrorCode.E_INVITE_NOT_PENDING

    def test_no_row(self, db_session, chat_id):
        stranger = create_test_user(db_session)
        with pytest.raises(ApiError) as exc:
            hush.respond_hush_invite(db_session, stranger, chat_id, True)
        assert exc.value.code == ApiErrorCode.E_MEMBERSHIP_NOT_FOUND


# =============================================================================
# join requests
# =============================================================================


class TestJoinRequests:
    def test_stranger_requests_and_owner_accepts(self, db_session, owner, chat_id):
        guest = create_test_user(db_session)

        assert hush.request_join_hush(db_session, guest, chat_id).status == "requested"
        result = hush.resolve_join_request(db_session, owner, chat_id, guest, True)

        assert result.status == "accepted"
        assert _member(db_session, chat_id, guest).role == "member"

    def test_owner_declines(self, db_session, owner, chat_id):
        guest = create_test_user(db_session)
        hush.request_join_hush(db_session, guest, chat_id)

        result = hush.resolve_join_request(db_session, owner, chat_id, guest, False)
        assert result.status == "declined"

    @pytest.mark.parametrize(
        "status", [HushMemberStatus.declined, HushMemberStatus.left, HushMemberStatus.removed]
    )
    def test_rejoin_from_inactive(self, db_session, owner, status):
        guest = create_test_user(db_session)
        chat_id = create_hush_chat(db_session, owner, {guest: status})
        assert hush.request_join_hush(db_session, guest, chat_id).status == "requested"

    @pytest.mark.parametrize(
        "status", [HushMemberStatus.invited, HushMemberStatus.accepted, HushMemberStatus.requested]
    )
    def test_cannot_request_from_live_status(self, db_session, owner, status):
        guest = create_test_user(db_session)
        chat_id = create_hush_chat(db_session, owner, {guest: status})
        with pytest.raises(ApiError) as exc:
            hush.request_join_hush(db_session, guest, chat_id)
        assert exc.value.code == ApiErrorCode.E_CANNOT_REQUEST_JOIN

    def test_owner_cannot_request_join(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.request_join_hush(db_session, owner, chat_id)
        assert exc.value.code == ApiErrorCode.E_CANNOT_REQUEST_JOIN

    def test_missing_chat(self, db_session, member):
        with pytest.raises(ApiError) as exc:
            hush.request_join_hush(db_session, member, uuid4())
        assert exc.value.code == ApiErrorCode.E_CHAT_NOT_FOUND

    def test_owner_who_left_cannot_request_join(self, db_session, owner):
        a = create_test_user(db_session)
        b = create_test_user(db_session)
        chat_id = create_hush_chat(
            db_session, owner, {a: HushMemberStatus.accepted, b: HushMemberStatus.accepted}
        )
        hush.leave_hush(db_session, owner, chat_id)

        with pytest.raises(ApiError) as exc:
            hush.request_join_hush(db_session, owner, chat_id)
        assert exc.value.code == ApiErrorCode.E_CANNOT_REQUEST_JOIN

        assert tuple(_member(db_session, chat_id, owner))[:2] == ("owner", "left")
        view = hush.list_hush(db_session, owner)
        assert view.chats[0].can_request_join is False
        assert view.requests_for_me == []

    def test_resolve_requires_owner(self, db_session, member, chat_id):
        guest = create_test_user(db_session)
        hush.request_join_hush(db_session, guest, chat_id)
        with pytest.raises(ApiError) as exc:
            hush.resolve_join_request(db_session, member, chat_id, guest, True)
        assert exc.value.code == ApiErrorCode.E_NOT_CHAT_OWNER

    def test_resolve_missing_row(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.resolve_join_request(db_session, owner, chat_id, uuid4(), True)
        assert exc.value.code == ApiErrorCode.E_MEMBERSHIP_NOT_FOUND

    def test_resolve_not_pending(self, db_session, owner, member, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.resolve_join_request(db_session, owner, chat_id, member, True)
        assert exc.value.code == ApiErrorCode.E_REQUEST_NOT_PENDING


# =============================================================================
# leave / remove
# =============================================================================


class TestLeaveAndRemove:
    def test_member_leave_keeps_chat_open(self, db_session, member, chat_id):
        hush.respond_hush_invite(db_session, member, chat_id, True)

        result = hush.leave_hush(db_session, member, chat_id)

        assert result.chat_closed is False
        assert _member(db_session, chat_id, member).status == "left"
        assert _chat_status(db_session, chat_id) == "open"

    def test_owner_leave_with_two_active_closes(self, db_session, owner, member, chat_id):
        hush.respond_hush_invite(db_session, member, chat_id, True)

        result = hush.leave_hush(db_session, owner, chat_id)

        assert result.chat_closed is True
        assert _chat_status(db_session, chat_id) == "closed"

    def test_owner_leave_counts_invited_as_active(self, db_session, owner):
        a = create_test_user(db_session)
        b = create_test_user(db_session)
        chat_id = create_hush_chat(
            db_session, owner, {a: HushMemberStatus.accepted, b: HushMemberStatus.invited}
        )

        assert hush.leave_hush(db_session, owner, chat_id).chat_closed is False
        assert _chat_status(db_session, chat_id) == "open"

    def test_owner_leave_ignores_inactive_rows(self, db_session, owner):
        a = create_test_user(db_session)
        gone = create_test_user(db_session)
        chat_id = create_hush_chat(
            db_session, owner, {a: HushMemberStatus.accepted, gone: HushMemberStatus.left}
        )

        assert hush.leave_hush(db_session, owner, chat_id).chat_closed is True

    def test_leave_without_row(self, db_session, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.leave_hush(db_session, create_test_user(db_session), chat_id)
        assert exc.value.code == ApiErrorCode.E_MEMBERSHIP_NOT_FOUND

    def test_owner_removes_member(self, db_session, owner, member, chat_id):
        result = hush.remove_hush_member(db_session, owner, chat_id, member)
        assert result.status == "removed"
        assert _member(db_session, chat_id, member).status == "removed"

    def test_member_cannot_remove(self, db_session, owner, member, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.remove_hush_member(db_session, member, chat_id, owner)
        assert exc.value.code == ApiErrorCode.E_NOT_CHAT_OWNER

    def test_remove_self(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.remove_hush_member(db_session, owner, chat_id, owner)
        assert exc.value.code == ApiErrorCode.E_INVALID_TARGET

    def test_remove_missing(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.remove_hush_member(db_session, owner, chat_id, uuid4())
        assert exc.value.code == ApiErrorCode.E_MEMBERSHIP_NOT_FOUND


# =============================================================================
# list / labels
# =============================================================================


class TestListHush:
    def test_label_joins_visible_names(self, db_session, owner, member, chat_id):
        guest = create_test_user(db_session, username="gus")
        hush.request_join_hush(db_session, guest, chat_id)

        labels = hush.build_chat_labels(db_session, [chat_id])
        assert labels[chat_id] == "olive + mona"

    def test_label_falls_back(self, db_session, owner, chat_id, member):
        hush.respond_hush_invite(db_session, member, chat_id, False)
        hush.leave_hush(db_session, owner, chat_id)
        assert hush.build_chat_labels(db_session, [chat_id])[chat_id] == "hush"

    def test_listing_for_each_party(self, db_session, owner, member, chat_id):
        guest = create_test_user(db_session, username="gus")
        hush.request_join_hush(db_session, guest, chat_id)

        owner_view = hush.list_hush(db_session, owner)
        assert owner_view.chats[0].my_role == "owner"
        assert owner_view.chats[0].can_request_join is False
        assert [r.username for r in owner_view.requests_for_me] == ["gus"]
        assert owner_view.invites_for_me == []

        member_view = hush.list_hush(db_session, member)
        assert member_view.chats[0].my_status == "invited"
        assert [i.chat_id for i in member_view.invites_for_me] == [chat_id]
        assert member_view.invites_for_me[0].label == "olive + mona"

        stranger_view = hush.list_hush(db_session, create_test_user(db_session))
        assert stranger_view.chats[0].my_status is None
        assert stranger_view.chats[0].can_request_join is True

    def test_closed_chats_hidden(self, db_session, owner, member, chat_id):
        hush.leave_hush(db_session, owner, chat_id)
        view = hush.list_hush(db_session, member)
        assert view.chats == []
        assert view.invites_for_me == []


# =============================================================================
# messages
# =============================================================================


class TestHushMessages:
    def test_members_send_and_list(self, db_session, owner, member, chat_id):
        hush.respond_hush_invite(db_session, member, chat_id, True)

        hush.send_hush_message(db_session, owner, chat_id, "  hello  ")
        hush.send_hush_message(db_session, member, chat_id, "hi")

        messages = hush.list_hush_messages(db_session, member, chat_id)
        assert [(m.username, m.content) for m in messages] == [("olive", "hello"), ("mona", "hi")]

    def test_invited_cannot_send_or_read(self, db_session, member, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.send_hush_message(db_session, member, chat_id, "hi")
        assert exc.value.code == ApiErrorCode.E_NOT_CHAT_MEMBER

        with pytest.raises(ApiError) as exc:
            hush.list_hush_messages(db_session, member, chat_id)
        assert exc.value.code == ApiErrorCode.E_NOT_CHAT_MEMBER

    def test_blank_content(self, db_session, owner, chat_id):
        with pytest.raises(ApiError) as exc:
            hush.send_hush_message(db_session, owner, chat_id, "   ")
        assert exc.value.code == ApiErrorCode.E_CONTENT_REQUIRED

    def test_long_content_truncated(self, db_session, owner, chat_id):
        message = hush.send_hush_message(db_session, owner, chat_id, "x" * 2500)
        assert len(message.content) == 2000

    def test_limit(self, db_session, owner, chat_id):
        for i in range(5):
            hush.send_hush_message(db_session, owner, chat_id, f"m{i}")

        messages = hush.list_hush_messages(db_session, owner, chat_id, limit=2)
        assert [m.content for m in messages] == ["m0", "m1"]

    def test_sender_name_falls_back_to_username(self, db_session, owner, chat_id):
        db_session.execute(
            update(HushMembership)
            .where(HushMembership.chat_id == chat_id, HushMembership.user_id == owner)
            .values(display_name=None)
        )
        db_session.commit()
        db_session.get(User, owner).username = "olivia"
        db_session.commit()

        hush.send_hush_message(db_session, owner, chat_id, "hi")
        assert hush.list_hush_messages(db_session, owner, chat_id)[0].username == "olivia"


# =============================================================================
# Routes
# =============================================================================


class TestHushRoutes:
    def test_create_invite_accept_and_chat(self, auth_client, db_session, owner, member):
        response = auth_client.post(
            "/hush", json={"target_user_id": str(member)}, headers=auth_headers(owner)
        )
        assert response.status_code == 201
        chat_id = response.json()["data"]["chat_id"]

        response = auth_client.post(
            f"/hush/{chat_id}/invite/respond", json={"accept": True}, headers=auth_headers(member)
        )
        assert response.json()["data"]["status"] == "accepted"

        response = auth_client.post(
            f"/hush/{chat_id}/messages", json={"content": "hey"}, headers=auth_headers(member)
        )
        assert response.status_code == 201

        response = auth_client.get(
            f"/hush/{chat_id}/messages", params={"limit": 10}, headers=auth_headers(owner)
        )
        assert [m["content"] for m in response.json()["data"]] == ["hey"]

    def test_join_request_routes(self, auth_client, db_session, owner, chat_id):
        guest = create_test_user(db_session)

        response = auth_client.post(f"/hush/{chat_id}/join-requests", headers=auth_headers(guest))
        assert response.json()["data"]["status"] == "requested"

        response = auth_client.post(
            f"/hush/{chat_id}/join-requests/{guest}/resolve",
            json={"accept": True},
            headers=auth_headers(owner),
        )
        assert response.json()["data"]["status"] == "accepted"

        response = auth_client.delete(
            f"/hush/{chat_id}/members/{guest}", headers=auth_headers(owner)
        )
        assert response.json()["data"]["status"] == "removed"

    def test_forbidden_envelope(self, auth_client, db_session, member, chat_id):
        guest = create_test_user(db_session)
        response = auth_client.post(
            f"/hush/{chat_id}/invites",
            json={"target_user_id": str(guest)},
            headers=auth_headers(member),
        )
        assert response.status_code == 403
        assert error_code(response) == "E_NOT_CHAT_OWNER"
        assert response.json()["error"]["kind"] == "forbidden"

    def test_leave_route(self, auth_client, owner, chat_id):
        response = auth_client.post(f"/hush/{chat_id}/leave", headers=auth_headers(owner))
        assert response.json()["data"] == {"chat_id": str(chat_id), "chat_closed": True}

    def test_list_route(self, auth_client, member, chat_id):
        data = auth_client.get("/hush", headers=auth_headers(member)).json()["data"]
        assert data["invites_for_me"][0]["chat_id"] == str(chat_id)
