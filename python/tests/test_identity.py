"""Tests for identity lookup."""

from uuid import uuid4

from tether.services import identity
from tests.factories import create_test_user


class TestFindUserIdByUsername:
    def test_exact_match(self, db_session):
        user_id = create_test_user(db_session, username="Ada")
        assert identity.find_user_id_by_username(db_session, "Ada") == user_id

    def test_case_insensitive_fallback(self, db_session):
        user_id = create_test_user(db_session, username="Ada")
        assert identity.find_user_id_by_username(db_session, "aDA") == user_id

    def test_exact_match_preferred_over_case_variant(self, db_session):
        create_test_user(db_session, username="ada")
        upper = create_test_user(db_session, username="ADA")
        assert identity.find_user_id_by_username(db_session, "ADA") == upper

    def test_unknown_or_empty(self, db_session):
        create_test_user(db_session, username="ada")
        assert identity.find_user_id_by_username(db_session, "grace") is None
        assert identity.find_user_id_by_username(db_session, "") is None


class TestProfiles:
    def test_get_profile(self, db_session):
        user_id = create_test_user(db_session, username="ada", avatar_url="https://a/ada.png")
        profile = identity.get_profile(db_session, user_id)
        assert profile.username == "ada"
        assert profile.avatar_url == "https://a/ada.png"

    def test_get_profile_missing(self, db_session):
        assert identity.get_profile(db_session, uuid4()) is None

    def test_get_profiles_omits_unknown(self, db_session):
        a = create_test_user(db_session, username="ada")
        b = create_test_user(db_session, username="grace")
        profiles = identity.get_profiles(db_session, [a, b, uuid4(), a])
        assert set(profiles) == {a, b}
        assert identity.get_profiles(db_session, []) == {}

    def test_reads_reflect_renames(self, db_session):
        from tether.db.models import User

        user_id = create_test_user(db_session, username="ada")
        assert identity.get_profile(db_session, user_id).username == "ada"

        db_session.get(User, user_id).username = "countess"
        db_session.commit()

        assert identity.get_profile(db_session, user_id).username == "countess"
        assert identity.find_user_id_by_username(db_session, "ada") is None

    def test_resolve_actor(self, db_session):
        user_id = create_test_user(db_session, username="ada")
        actor = identity.resolve_actor(db_session, user_id)
        assert actor.user_id == user_id
        assert actor.username == "ada"
        assert identity.resolve_actor(db_session, uuid4()) is None
