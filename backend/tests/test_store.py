"""
Store transactions: atomic commit, optimistic tournament lock, retries and deadlines.
"""

import time

import pytest
from sqlalchemy import text
from sqlmodel import Session

from tourney.exceptions import ConflictError, DeadlineExceededError, InvalidError, NotFoundError
from tourney.models.match import Match, MatchStatus
from tourney.store import Deadline, Store


def _bump_behind_the_stores_back(store: Store, tournament_id: int):
    store.session.execute(
        text("UPDATE tournament SET version = version + 1 WHERE id = :tournament_id"),
        {"tournament_id": tournament_id},
    )


def test_committed_mutation_bumps_version(store: Store, make_tournament):
    tournament = make_tournament(team_count=0)
    before = tournament.version

    def _rename():
        t = store.lock_tournament(store.get_tournament(tournament.id))
        t.description = "Indoor courts"
        return store.save_tournament(t)

    store.with_transaction(_rename)

    refreshed = store.get_tournament(tournament.id)
    assert refreshed.version == before + 1
    assert refreshed.description == "Indoor courts"


def test_error_rolls_back_every_write(store: Store, make_tournament):
    tournament = make_tournament(team_count=0)
    before = tournament.version

    def _half_done():
        t = store.lock_tournament(store.get_tournament(tournament.id))
        t.description = "should not persist"
        store.save_tournament(t)
        store.save_match(Match(tournament_id=t.id, round=1, match_number=1))
        raise InvalidError("boom")

    with pytest.raises(InvalidError):
        store.with_transaction(_half_done)

    refreshed = store.get_tournament(tournament.id)
    assert refreshed.description is None
    assert refreshed.version == before
    assert store.count_matches(tournament.id) == 0


def test_stale_version_is_retried(store: Store, make_tournament):
    tournament = make_tournament(team_count=0)
    seen_versions = []

    def _mutate():
        t = store.lock_tournament(store.get_tournament(tournament.id))
        seen_versions.append(t.version)
        if len(seen_versions) == 1:
            _bump_behind_the_stores_back(store, t.id)
        t.description = "second try"
        return store.save_tournament(t)

    store.with_transaction(_mutate)

    assert len(seen_versions) == 2
    assert store.get_tournament(tournament.id).description == "second try"


def test_persistent_conflict_gives_up(session: Session, make_tournament):
    tournament = make_tournament(team_count=0)
    store = Store(session, max_retries=1)
    attempts = []

    def _always_stale():
        t = store.lock_tournament(store.get_tournament(tournament.id))
        attempts.append(1)
        _bump_behind_the_stores_back(store, t.id)
        return t

    with pytest.raises(ConflictError) as exc_info:
        store.with_transaction(_always_stale)

    assert len(attempts) == 2
    assert exc_info.value.status_code == 409
    assert exc_info.value.details["attempts"] == 2


def test_nested_transactions_join_the_outer_one(store: Store, make_tournament):
    tournament = make_tournament(team_count=0)
    before = tournament.version

    def _inner():
        t = store.lock_tournament(store.get_tournament(tournament.id))
        t.description = "inner"
        return store.save_tournament(t)

    def _outer():
        store.lock_tournament(store.get_tournament(tournament.id))
        store.with_transaction(_inner)
        raise InvalidError("outer fails after inner")

    with pytest.raises(InvalidError):
        store.with_transaction(_outer)

    refreshed = store.get_tournament(tournament.id)
    assert refreshed.description is None
    assert refreshed.version == before


def test_expired_deadline_times_out(session: Session):
    store = Store(session, deadline=Deadline(0))
    with pytest.raises(DeadlineExceededError) as exc_info:
        store.get_tournament(1)
    assert exc_info.value.status_code == 408
    assert exc_info.value.code == "TIMEOUT"


def test_deadline_mid_transaction_rolls_back(session: Session, make_tournament):
    tournament = make_tournament(team_count=0)
    store = Store(session, deadline=Deadline(60))

    def _slow():
        t = store.lock_tournament(store.get_tournament(tournament.id))
        t.description = "too late"
        store.save_tournament(t)
        store.deadline.expires_at = time.monotonic() - 1
        store.save_match(Match(tournament_id=t.id, round=1, match_number=1))

    with pytest.raises(DeadlineExceededError):
        store.with_transaction(_slow)

    fresh = Store(session)
    assert fresh.get_tournament(tournament.id).description is None
    assert fresh.count_matches(tournament.id) == 0


def test_missing_rows_raise_not_found(store: Store):
    with pytest.raises(NotFoundError):
        store.get_tournament(999)
    with pytest.raises(NotFoundError):
        store.get_match(999)
    with pytest.raises(NotFoundError):
        store.get_team(999)
    assert store.find_match(999) is None


def test_match_filters(store: Store, make_tournament):
    tournament = make_tournament(team_count=0)

    def _seed():
        store.save_match(Match(tournament_id=tournament.id, round=1, match_number=2, team1_id=1, team2_id=2))
        store.save_match(Match(tournament_id=tournament.id, round=1, match_number=1, team1_id=3, team2_id=4))
        store.save_match(
            Match(tournament_id=tournament.id, round=2, match_number=1, team1_id=1, status=MatchStatus.bye.value)
        )

    store.with_transaction(_seed)

    assert [m.match_number for m in store.list_matches(tournament.id, round=1)] == [1, 2]
    assert len(store.list_matches(tournament.id, team_ids=[1])) == 2
    assert store.list_matches(tournament.id, team_ids=[]) == []
    assert len(store.list_matches(tournament.id, status=[MatchStatus.bye.value])) == 1
    assert store.count_matches(tournament.id, scheduled=False) == 3
