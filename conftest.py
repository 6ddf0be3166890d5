import os

# db.py refuses to import without a URL; tests build their own engines
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from db import make_engine, init_db
from counsel_request.logic.clock import FrozenClock
from counsel_request.logic.contracts import CounselRequestForm, NewCounselRequest, OracleCandidate
from counsel_request.logic.lifecycle import LifecycleService
from counsel_request.logic.admin_override import AdminOverrideService
from counsel_request.logic.statistics import StatisticsService
from counsel_request.logic.errors import OracleUnavailable


class FakeOracle:
    """Stands in for OracleClient; records the texts it was asked to score."""

    def __init__(self, candidates=None, error=None, healthy=True):
        self.candidates = candidates if candidates is not None else [
            OracleCandidate(institution_id="inst-a", score=0.92, reasoning="Specialises in school anxiety"),
            OracleCandidate(institution_id="inst-b", score=0.81, reasoning="Close to the child's home"),
            OracleCandidate(institution_id="inst-c", score=0.64, reasoning="Offers play therapy"),
        ]
        self.error = error
        self.healthy = healthy
        self.calls = []

    def score(self, counsel_request_text):
        self.calls.append(counsel_request_text)
        if self.error:
            raise self.error
        return list(self.candidates)

    def health_check(self):
        return self.healthy


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'counsel.db'}")
    init_db(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def failing_oracle():
    return FakeOracle(error=OracleUnavailable("Recommendation service timed out after 8s"))


@pytest.fixture
def lifecycle(session_factory, oracle, clock):
    return LifecycleService(session_factory=session_factory, oracle=oracle, clock=clock)


@pytest.fixture
def admin_service(session_factory, clock):
    return AdminOverrideService(session_factory=session_factory, clock=clock)


@pytest.fixture
def statistics_service(session_factory, clock):
    return StatisticsService(session_factory=session_factory, clock=clock)


@pytest.fixture
def form_data():
    return {
        "coverInfo": {
            "centerName": "Sunflower Community Center",
            "counselorName": "Park Jiyoung",
            "requestDate": {"year": 2026, "month": 3, "day": 2},
        },
        "basicInfo": {
            "careType": "GENERAL",
            "childInfo": {"name": "Kim Minji", "gender": "FEMALE", "age": 9, "grade": "3"},
        },
        "psychologicalInfo": {
            "concerns": "Anxiety before school, trouble sleeping",
            "history": "No previous counseling",
        },
        "requestMotivation": {"motivation": "Teacher noticed withdrawal in class"},
        "consent": "AGREED",
    }


@pytest.fixture
def form(form_data):
    return CounselRequestForm.model_validate(form_data)


@pytest.fixture
def new_request(form):
    def build(child_id="child-1", guardian_id="guardian-1", **overrides):
        return NewCounselRequest(child_id=child_id, guardian_id=guardian_id, form=form, **overrides)
    return build


@pytest.fixture
def pending(lifecycle, new_request):
    return lifecycle.create(new_request())


@pytest.fixture
def recommended(lifecycle, pending):
    lifecycle.request_recommendation(pending.id, "guardian-1")
    return lifecycle.get(pending.id)


@pytest.fixture
def in_progress(lifecycle, recommended):
    lifecycle.select_institution(recommended.id, "inst-a", "guardian-1")
    return lifecycle.start(recommended.id, "guardian-1")
