"""
Two writers racing on the same counsel request: exactly one wins, the other
sees the committed state on retry.
"""

import threading

import pytest

from counsel_request.logic import repository as repo
from counsel_request.logic.constants import CounselRequestStatus
from counsel_request.logic.errors import InvalidTransition, ConcurrentModification
from counsel_request.logic.unit_of_work import run_serialized
from db import session_scope

S = CounselRequestStatus


@pytest.fixture
def lockstep_loads(monkeypatch):
    """
    Both threads load the same version, then the second one holds back until
    the first has finished its write.
    """
    barrier = threading.Barrier(2, timeout=10)
    first_done = threading.Event()
    state = threading.local()
    original = repo.load_or_raise

    def load(db, counsel_request_id):
        snapshot = original(db, counsel_request_id)
        if threading.current_thread() is threading.main_thread():
            return snapshot
        if not getattr(state, "loaded", False):
            state.loaded = True
            if barrier.wait() != 0:
                first_done.wait(timeout=10)
        return snapshot

    monkeypatch.setattr(repo, "load_or_raise", load)
    return first_done


def test_concurrent_selection_single_winner(lifecycle, recommended, session_factory, lockstep_loads):
    outcomes = {}

    def select(institution_id):
        try:
            outcomes[institution_id] = lifecycle.select_institution(recommended.id, institution_id)
        except Exception as e:
            outcomes[institution_id] = e
        finally:
            lockstep_loads.set()

    threads = [threading.Thread(target=select, args=(i,)) for i in ("inst-a", "inst-b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    winners = [i for i, o in outcomes.items() if not isinstance(o, Exception)]
    losers = [o for o in outcomes.values() if isinstance(o, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidTransition)

    final = lifecycle.get(recommended.id)
    assert final.status == S.MATCHED
    assert final.matched_institution_id == winners[0]
    assert final.version == recommended.version + 1

    selected = [r.institution_id for r in lifecycle.get_recommendations(recommended.id) if r.selected]
    assert selected == winners

    with session_scope(session_factory) as db:
        history = repo.list_history(db, recommended.id)
    assert [h.to_status for h in history] == [S.RECOMMENDED, S.MATCHED]


def test_persistent_conflict_surfaces(session_factory, pending):
    attempts = []

    def work(db):
        attempts.append(1)
        raise repo.StaleVersionError(pending.id, pending.version)

    with pytest.raises(ConcurrentModification):
        run_serialized(session_factory, pending.id, work, retries=1)
    assert len(attempts) == 2
