"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real one, plus an in-memory payment gateway and a notifier that
records what it was asked to send.
"""

import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from tuition_settlement.api.deps import get_gateway, get_notifier
from tuition_settlement.errors import ExternalGatewayError, InvalidSignature
from tuition_settlement.gateway.base import (
    CHARGE_PENDING,
    CHARGE_SUCCEEDED,
    ChargeSnapshot,
    GatewayEvent,
    GatewayIntent,
)
from tuition_settlement.main import app
from tuition_settlement.models.base import Base, get_db
from tuition_settlement.models.enums import Role, ModerationDecision
from tuition_settlement.schemas.application import ApplicationTerms
from tuition_settlement.schemas.requester import Requester
from tuition_settlement.schemas.tuition import TuitionPostCreate
from tuition_settlement.services.application_ledger import ApplicationLedger
from tuition_settlement.services.tuition_registry import TuitionPostRegistry


# SQLite keeps the suite free of database infrastructure.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)


# pysqlite defers BEGIN on its own, which breaks SAVEPOINT nesting.
# Hand transaction control to SQLAlchemy instead.
@event.listens_for(engine, "connect")
def _disable_driver_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

WEBHOOK_SECRET = "whsec_test"

STUDENT = Requester(user_id=1, role=Role.STUDENT)
TUTOR_A = Requester(user_id=10, role=Role.TUTOR)
ADMIN = Requester(user_id=99, role=Role.ADMIN)


class FakeGateway:
    """
    In-memory gateway. Intents start pending; tests move them on
    with succeed(). Signatures are valid when they equal
    the webhook secret.
    """

    def __init__(self, webhook_secret: str | None = WEBHOOK_SECRET):
        self.webhook_secret = webhook_secret
        self.charges: dict[str, ChargeSnapshot] = {}
        self.retrieved: list[str] = []

    def create_intent(self, amount, currency, metadata, description=""):
        intent_id = f"pi_test_{len(self.charges) + 1}"
        self.charges[intent_id] = ChargeSnapshot(
            id=intent_id,
            status=CHARGE_PENDING,
            amount=amount,
            currency=currency,
            metadata=dict(metadata),
        )
        return GatewayIntent(id=intent_id, client_secret=f"{intent_id}_secret")

    def succeed(self, charge_id: str) -> None:
        self.charges[charge_id].status = CHARGE_SUCCEEDED

    def retrieve_charge(self, charge_id: str) -> ChargeSnapshot:
        self.retrieved.append(charge_id)
        if charge_id not in self.charges:
            raise ExternalGatewayError(f"No such charge: {charge_id}")
        return self.charges[charge_id].model_copy(deep=True)

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        if self.webhook_secret and signature != self.webhook_secret:
            raise InvalidSignature("Invalid webhook signature")
        event = json.loads(payload)
        return GatewayEvent(
            event_type=event["type"],
            charge=ChargeSnapshot(**event["data"]["object"]),
            verified=self.webhook_secret is not None,
        )

    def event_payload(
        self, charge_id: str, event_type: str = "payment_intent.succeeded", **overrides
    ) -> bytes:
        """A callback body describing the charge as the gateway knows it."""
        charge = self.charges[charge_id].model_dump()
        charge.update(overrides)
        return json.dumps({"type": event_type, "data": {"object": charge}}).encode()


class RecordingNotifier:

    def __init__(self):
        self.sent = []

    def emit(self, recipient_id, type, title, body, related_entity_id=None):
        self.sent.append((recipient_id, title))

    def titles_for(self, recipient_id):
        return [title for recipient, title in self.sent if recipient == recipient_id]


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def unverified_gateway():
    """A gateway with no webhook secret configured."""
    return FakeGateway(webhook_secret=None)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db_session, gateway, notifier):
    """
    Provide a test client wired to the test database, the fake
    gateway and the recording notifier.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Data helpers ---

def post_details(**overrides) -> TuitionPostCreate:
    fields = dict(
        title="Math tutor needed",
        subject="Mathematics",
        class_level="Class 8",
        location="Dhanmondi",
        budget_min=Decimal("4000"),
        budget_max=Decimal("6000"),
        schedule="Sun/Tue/Thu evenings",
        description="Algebra and geometry support before exams.",
    )
    fields.update(overrides)
    return TuitionPostCreate(**fields)


def application_terms(**overrides) -> ApplicationTerms:
    fields = dict(
        qualifications="BSc in Mathematics",
        experience="3 years of home tutoring",
        expected_price=Decimal("5500"),
        availability="Evenings",
    )
    fields.update(overrides)
    return ApplicationTerms(**fields)


@pytest.fixture
def open_post(db_session):
    """Factory: a committed post, moderated open."""
    def _open_post(owner: Requester = STUDENT, **overrides):
        registry = TuitionPostRegistry(db_session)
        post = registry.create(owner, post_details(**overrides))
        registry.moderate(post.id, ModerationDecision.APPROVE, ADMIN)
        db_session.commit()
        return post
    return _open_post


@pytest.fixture
def apply(db_session, notifier):
    """Factory: a committed application by `tutor` on `post`."""
    def _apply(post, tutor: Requester = TUTOR_A, **overrides):
        ledger = ApplicationLedger(db_session, notifier)
        application = ledger.submit(post.id, tutor, application_terms(**overrides))
        db_session.commit()
        return application
    return _apply
