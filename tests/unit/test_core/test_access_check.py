"""Tests for ACL pattern matching."""

import pytest

from modular_api.core.acl import AccessCheck, ReservedWord, get_cached_access_check


class TestAccessCheck:
    """Tests for AccessCheck."""

    @pytest.mark.parametrize(
        ("grant", "required", "expected"),
        [
            ("connections.read", "connections.read", True),
            ("connections.read", "connections.write", False),
            ("connections.*.read", "connections.pg.read", True),
            ("connections.*.read", "connections.pg.tables.read", False),
            ("connections.#", "connections.pg.tables.read", True),
            ("#", "anything.at.all", True),
        ],
    )
    def test_wildcards(self, grant: str, required: str, expected: bool) -> None:
        assert AccessCheck("u1", "s1", [grant]).matches_required_access(required) is expected

    def test_negation_wins_over_grant(self) -> None:
        checker = AccessCheck("u1", "s1", ["connections.#", "!connections.admin.#"])
        assert checker.matches_required_access("connections.pg.read")
        assert not checker.matches_required_access("connections.admin.drop")

    def test_reserved_words_match_caller(self) -> None:
        checker = AccessCheck("alice", "s-9", ["users.me.#", "sessions.my_session.read"])
        assert checker.matches_required_access("users.alice.profile")
        assert not checker.matches_required_access("users.bob.profile")
        assert checker.matches_required_access("sessions.s-9.read")
        assert not checker.matches_required_access("sessions.s-1.read")

    def test_none_is_always_granted(self) -> None:
        assert AccessCheck(None, None, []).matches_required_access(None)

    def test_matches_all_and_any(self) -> None:
        checker = AccessCheck("u1", "s1", ["a.read"])
        assert checker.matches_any("a.write", "a.read")
        assert not checker.matches_all("a.write", "a.read")


def test_reserved_word_ignores_other_segments() -> None:
    word = ReservedWord("me", "alice")
    assert word.replace("users") == "users"
    assert word.replace("me") == "(me|alice)"


def test_cached_access_check_is_order_insensitive() -> None:
    first = get_cached_access_check("u1", "s1", ["b", "a"])
    second = get_cached_access_check("u1", "s1", ("a", "b"))
    assert first is second
