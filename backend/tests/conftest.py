import os
import tempfile
from datetime import date

# Configuration is read at import time, so it must be in place before the app is imported
_tmp_dir = tempfile.mkdtemp(prefix="sales_tracker_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-0123"
os.environ["EMPLOYEES"] = "Ingrid,Marta"
os.environ["MONTHLY_GOAL"] = "0"
os.environ["LOCALE"] = "es_ES"
os.environ["API_RATE_LIMIT"] = "100000"
os.environ["LOGIN_RATE_LIMIT"] = "5"

import pytest
from fastapi.testclient import TestClient

from sales_tracker.database import Base, SessionLocal, engine
from sales_tracker.main import app
from sales_tracker.models.user import User
from sales_tracker.routes.auth import hash_password
from sales_tracker.schemas import SaleEntryCreate
from sales_tracker.services.sales_service import SalesService
from sales_tracker.utils.jwt_auth import create_access_token
from sales_tracker.utils.rate_limiter import api_limiter, login_limiter


@pytest.fixture(autouse=True)
def reset_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    login_limiter.reset()
    api_limiter.reset()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def staff_user(db):
    user = User(
        username="ingrid",
        password_hash=hash_password("ventas2024"),
        display_name="Ingrid",
        employee_id="Ingrid",
        role="user",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    user = User(
        username="boss",
        password_hash=hash_password("admin2024"),
        display_name="Encargada",
        role="admin",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(db):
    """Token for a user that never logs in through the API (skips bcrypt)"""
    user = User(username="tablet", password_hash="!", display_name="Tablet", employee_id=None, role="user")
    db.add(user)
    db.commit()
    token = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    token = create_access_token(admin_user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def add_sale(db):
    """Factory storing an entry through the service"""
    def _add(day=date(2024, 3, 1), employee_id="Ingrid", visitors=10, transactions=5, units=10, revenue=500, hours_worked=4):
        return SalesService.add_sale(db, SaleEntryCreate(
            date=day,
            employee_id=employee_id,
            visitors=visitors,
            transactions=transactions,
            units=units,
            revenue=revenue,
            hours_worked=hours_worked,
        ))
    return _add
