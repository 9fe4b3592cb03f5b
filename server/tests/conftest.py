from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"

from collections.abc import Generator
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import gymledger.models  # noqa: F401
from gymledger.core.db import Base, build_engine, get_db
from gymledger.main import app
from gymledger.models.member import Member
from gymledger.schemas.member import MemberCreate
from gymledger.services import members as members_service

engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    # One shared session: the in-memory database lives on a single connection.
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_member(db_session: Session):
    def _make(**overrides) -> Member:
        payload = {
            "name": "Ravi Kumar",
            "mobile_no": "9876543210",
            "registration_fee": Decimal("500"),
            "package_fee": Decimal("1500"),
            "discount": Decimal("0"),
            "plan_type": "monthly",
            "payment_mode": "cash",
            "subscription_start_date": date.today(),
        }
        payload.update(overrides)
        return members_service.create_member(db_session, MemberCreate(**payload))

    return _make


@pytest.fixture()
def sample_member(make_member) -> Member:
    return make_member(paid_amount=Decimal("1000"))


@pytest.fixture()
def dated_member(db_session: Session):
    """Insert a member with a fixed end date and no receipts."""

    def _make(end_date: date, status: str = "active", **fields) -> Member:
        member = Member(
            name=fields.pop("name", f"Member {end_date.isoformat()}"),
            member_number=fields.pop("member_number", None),
            registration_fee=Decimal("0"),
            discount=Decimal("0"),
            subscription_start_date=end_date - timedelta(days=30),
            subscription_end_date=end_date,
            subscription_status=status,
            **fields,
        )
        db_session.add(member)
        db_session.commit()
        return member

    return _make
