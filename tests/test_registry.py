"""
Tests for registry.py - pair-keyed match creation across channels.
"""

from sqlalchemy import func, select

from campusmatch.database import MatchRow, transaction
from campusmatch.models import CHANNEL_CRUSH, CHANNEL_DIRECT
from campusmatch.normalize import compute_pair_key
from campusmatch.registry import MatchRegistry


def match_count(session_factory):
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(MatchRow))


class TestPairKey:
    def test_order_independent(self):
        assert compute_pair_key("alice", "bob") == compute_pair_key("bob", "alice")

    def test_sorted_form(self):
        assert compute_pair_key("bob", "alice") == "alice|bob"


class TestCreateIfAbsent:
    def test_first_call_creates(self, session_factory):
        registry = MatchRegistry(session_factory)
        with transaction(session_factory) as session:
            match, created = registry.create_if_absent(session, "bob", "alice", CHANNEL_DIRECT, ["1", "2"])

        assert created
        assert match.pair_key == "alice|bob"
        assert match.users == ("alice", "bob")
        assert match.source_ids == ("1", "2")

    def test_second_call_returns_existing(self, session_factory):
        registry = MatchRegistry(session_factory)
        with transaction(session_factory) as session:
            first, _ = registry.create_if_absent(session, "alice", "bob", CHANNEL_DIRECT, ["1", "2"])
        with transaction(session_factory) as session:
            second, created = registry.create_if_absent(session, "bob", "alice", CHANNEL_CRUSH, ["x", "y"])

        assert not created
        assert second == first
        assert second.channel == CHANNEL_DIRECT
        assert match_count(session_factory) == 1

    def test_matches_for_lists_both_sides(self, session_factory):
        registry = MatchRegistry(session_factory)
        with transaction(session_factory) as session:
            ab, _ = registry.create_if_absent(session, "alice", "bob", CHANNEL_DIRECT)
            ca, _ = registry.create_if_absent(session, "carol", "alice", CHANNEL_CRUSH)

        assert registry.matches_for("alice") == {ab, ca}
        assert registry.matches_for("bob") == {ab}
        assert registry.matches_for("dave") == set()
        assert registry.get("bob", "alice") == ab
        assert ab.partner_of("bob") == "alice"


class TestCrossChannel:
    def test_crush_after_direct_match_creates_no_second_match(self, engine, students, session_factory):
        engine.record_like("alice", "bob")
        direct = engine.record_like("bob", "alice").match

        assert engine.send_crush("alice", "bob").status == "sent"
        result = engine.send_crush("bob", "alice")

        assert result.status == "matched"
        assert result.match == direct
        assert result.match.channel == CHANNEL_DIRECT
        assert match_count(session_factory) == 1

    def test_like_after_crush_match_reports_crush_match(self, engine, students, session_factory):
        engine.send_crush("alice", "bob")
        crush_match = engine.send_crush("bob", "alice").match

        engine.record_like("alice", "bob")
        result = engine.record_like("bob", "alice")

        assert result.match == crush_match
        assert match_count(session_factory) == 1
        assert engine.matches_for("alice") == {crush_match}
