import os
from datetime import datetime, timedelta
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courtside.auth import create_access_token
from courtside.database import Base, get_db
from courtside.main import app
from courtside.models import ClassOccurrence, Court, GymClass, Instructor, Plan, User, UserRole

# Monday morning, far from any DST edge
BASE_TIME = datetime(2026, 5, 4, 10, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def at(hours: float = 0, minutes: int = 0) -> datetime:
    """BASE_TIME shifted by a number of hours/minutes"""
    return BASE_TIME + timedelta(hours=hours, minutes=minutes)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role=UserRole.STUDENT, status="active", name=None):
        counter["n"] += 1
        user = User(
            name=name or f"User {counter['n']}",
            email=f"user{counter['n']}@example.com",
            role=role,
            status=status,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def student(make_user):
    return make_user(name="Ana Student")


@pytest.fixture
def other_student(make_user):
    return make_user(name="Bruno Student")


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN, name="Carla Admin")


@pytest.fixture
def court(db):
    court = Court(name="Center Court", sport="tennis", hourly_rate=Decimal("80.00"))
    db.add(court)
    db.commit()
    db.refresh(court)
    return court


@pytest.fixture
def second_court(db):
    court = Court(name="Court 2", sport="tennis", hourly_rate=Decimal("60.00"))
    db.add(court)
    db.commit()
    db.refresh(court)
    return court


@pytest.fixture
def instructor(db):
    instructor = Instructor(name="Diego Coach", hourly_rate=Decimal("120.00"), specialties=["tennis"])
    db.add(instructor)
    db.commit()
    db.refresh(instructor)
    return instructor


@pytest.fixture
def make_occurrence(db, instructor, court):
    def _make_occurrence(unit_price=Decimal("35.00"), capacity=2, start=None, duration_hours=1, status="scheduled"):
        gym_class = GymClass(
            name="Beginner Tennis",
            sport="tennis",
            level="beginner",
            duration_minutes=int(duration_hours * 60),
            capacity=capacity,
            unit_price=unit_price,
        )
        db.add(gym_class)
        db.flush()
        start = start or at(24)
        occurrence = ClassOccurrence(
            class_id=gym_class.id,
            instructor_id=instructor.id,
            court_id=court.id,
            starts_at=start,
            ends_at=start + timedelta(hours=duration_hours),
            status=status,
        )
        db.add(occurrence)
        db.commit()
        db.refresh(occurrence)
        return occurrence

    return _make_occurrence


@pytest.fixture
def make_plan(db):
    def _make_plan(price=Decimal("199.90"), billing_cycle="monthly", name="Monthly Unlimited"):
        plan = Plan(name=name, price=price, billing_cycle=billing_cycle, max_future_bookings=4)
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan

    return _make_plan
