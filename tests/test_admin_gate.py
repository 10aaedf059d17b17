"""Admin request gate tests: stage ordering and metadata extraction."""

import pytest

from directory_backend.core.exceptions import Forbidden, RateLimited, Unauthorized
from directory_backend.core.permissions import Permission
from directory_backend.services.admin_gate import extract_request_metadata, get_client_ip

from conftest import auth_headers, grant_role


class TestRequestMetadata:

    def test_forwarded_for_first_entry_wins(self):
        headers = {
            "x-forwarded-for": " 203.0.113.7 , 10.0.0.1",
            "x-real-ip": "198.51.100.2",
            "cf-connecting-ip": "192.0.2.9",
        }
        assert get_client_ip(headers) == "203.0.113.7"

    def test_fallback_order(self):
        assert get_client_ip({"x-real-ip": "198.51.100.2", "cf-connecting-ip": "192.0.2.9"}) == "198.51.100.2"
        assert get_client_ip({"cf-connecting-ip": "192.0.2.9"}) == "192.0.2.9"
        assert get_client_ip({}) is None

    def test_ip_is_truncated_to_45_chars(self):
        long_ip = "a" * 60
        assert get_client_ip({"x-real-ip": long_ip}) == "a" * 45

    def test_user_agent_is_verbatim(self):
        metadata = extract_request_metadata({"user-agent": "Mozilla/5.0 (X11)  "})
        assert metadata.user_agent == "Mozilla/5.0 (X11)  "
        assert metadata.ip_address is None


def test_no_session_is_unauthorized(gate, seeded_db):
    with pytest.raises(Unauthorized):
        gate.require({}, seeded_db, Permission.USERS_VIEW)


def test_unauthenticated_request_fails_before_limiter(gate, rate_limiter, seeded_db):
    ip = "203.0.113.7"
    for _ in range(120):
        rate_limiter.hit(f"admin-ip:{ip}")

    with pytest.raises(Unauthorized):
        gate.require({"x-forwarded-for": ip}, seeded_db)
    assert rate_limiter.get(f"admin-ip:{ip}").count == 120


def test_session_only_check_needs_no_permission(gate, seeded_db):
    ctx = gate.require(auth_headers("u1", user_agent="pytest"), seeded_db)
    assert ctx.user.id == "u1"
    assert ctx.metadata.user_agent == "pytest"


def test_missing_permission_is_forbidden(gate, seeded_db):
    grant_role(seeded_db, "mod", "moderator")
    with pytest.raises(Forbidden):
        gate.require(auth_headers("mod"), seeded_db, Permission.USERS_SUSPEND)


def test_granted_permission_returns_context(gate, seeded_db):
    grant_role(seeded_db, "adm", "admin")
    ctx = gate.require(
        auth_headers("adm", x_forwarded_for="198.51.100.4"), seeded_db, Permission.USERS_SUSPEND
    )
    assert ctx.user.id == "adm"
    assert ctx.metadata.ip_address == "198.51.100.4"


def test_user_key_exhaustion_is_rate_limited(gate, seeded_db):
    grant_role(seeded_db, "adm", "admin")
    for _ in range(120):
        gate.require(auth_headers("adm"), seeded_db, Permission.USERS_VIEW)
    with pytest.raises(RateLimited):
        gate.require(auth_headers("adm"), seeded_db, Permission.USERS_VIEW)


def test_ip_key_exhaustion_limits_user_with_headroom(gate, seeded_db):
    ip = "198.51.100.4"
    for i in range(120):
        gate.require(auth_headers(f"user-{i % 3}", x_real_ip=ip), seeded_db)

    with pytest.raises(RateLimited):
        gate.require(auth_headers("fresh-user", x_real_ip=ip), seeded_db)


def test_rate_limit_applies_before_permission_check(gate, rate_limiter, seeded_db):
    for _ in range(120):
        rate_limiter.hit("admin:nobody")
    # Lacks the permission too, but the limiter answers first.
    with pytest.raises(RateLimited):
        gate.require(auth_headers("nobody"), seeded_db, Permission.SYSTEM_SETTINGS)


def test_forbidden_attempts_still_consume_budget(gate, rate_limiter, seeded_db):
    for _ in range(3):
        with pytest.raises(Forbidden):
            gate.require(auth_headers("nobody"), seeded_db, Permission.SYSTEM_SETTINGS)
    assert rate_limiter.get("admin:nobody").count == 3


def test_window_reset_restores_access(gate, clock, seeded_db):
    for _ in range(120):
        gate.require(auth_headers("u1"), seeded_db)
    with pytest.raises(RateLimited):
        gate.require(auth_headers("u1"), seeded_db)
    clock.advance(60)
    assert gate.require(auth_headers("u1"), seeded_db).user.id == "u1"
