"""Tests for the owner profile cache."""

from datetime import timedelta

from favely.utils.utils import utcnow


def test_owner_profiles_are_cached(user_service, identity, connection):
    profiles = user_service.owner_profiles(["user_alice", "user_bob", "user_alice"])
    assert profiles["user_alice"]["displayName"] == "Alice Anders"
    assert connection.user_cache.count_documents({}) == 2

    identity.fail = True
    assert user_service.owner_profiles(["user_bob"])["user_bob"]["username"] == "bob"


def test_stale_cache_is_refreshed(user_service, identity, connection):
    user_service.owner_profiles(["user_alice"])
    connection.user_cache.update_one({"clerkId": "user_alice"}, {"$set": {"lastSynced": utcnow() - timedelta(hours=2)}})
    identity.users["user_alice"].username = "alice_renamed"

    assert user_service.owner_profiles(["user_alice"])["user_alice"]["username"] == "alice_renamed"


def test_provider_outage_falls_back_to_local_users(user_service, identity):
    user_service.resolve_user("user_carol")
    identity.fail = True
    profiles = user_service.owner_profiles(["user_carol", "user_unknown"])
    assert profiles["user_carol"]["username"] == "carol"
    assert "user_unknown" not in profiles
