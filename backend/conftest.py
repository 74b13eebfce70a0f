"""
Pytest configuration file for backend testing.
"""
import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Point the application at an in-memory database before anything imports core.database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.auth import create_access_token, get_password_hash
from core.config import settings
from core.database import Base, get_db
import modules.models_registry  # noqa: F401
from modules.revenue.models.source_models import (
    CompanyReferralMapping,
    CompanyUpchargeFee,
    Disbursement,
    DisbursementPayee,
    DisbursementTransaction,
    EmployeeCommission,
    InsuranceCompany,
    PaymentType,
    ReferralPartner,
    VendorCost,
)
from modules.users.models.user_models import User, UserRole, UserStatus

TEST_PASSWORD = "Secret123!"


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
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
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    """Test client sharing the test session with the app."""
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def export_dir(tmp_path, monkeypatch):
    """Keep export files inside the test's temp directory."""
    path = tmp_path / "exports"
    monkeypatch.setattr(settings, "export_dir", str(path))
    return path


@pytest.fixture
def make_user(db_session):
    def _make_user(username, role=UserRole.USER.value, status=UserStatus.ACTIVE.value, password=TEST_PASSWORD):
        user = User(
            username=username,
            password_hash=get_password_hash(password),
            role=role,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user("admin", role=UserRole.ADMIN.value)


@pytest.fixture
def regular_user(make_user):
    return make_user("analyst")


def token_for(user) -> str:
    return create_access_token({"userId": user.id, "username": user.username, "role": user.role})


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {token_for(admin_user)}"}


@pytest.fixture
def user_headers(regular_user):
    return {"Authorization": f"Bearer {token_for(regular_user)}"}


@pytest.fixture
def auth_headers():
    """Build bearer headers for any user."""

    def _auth_headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _auth_headers


@pytest.fixture
def seeded_sources(db_session):
    """
    Source rows with known revenue figures.

    Transaction 1 (Acme Insurance, ACH, payee fee 10.00 on a 1000.00 payee):
    vendor cost 6.00, upcharge 0.50, employee commission 1.40, referral
    commission 0.13, net profit 2.47.

    Transaction 2 (Beta Mutual, Direct, payee 4.00 + payor 1.00 on 500.00):
    no vendor, upcharge, employee or referral terms, net profit 5.00.
    """
    db_session.add_all(
        [
            InsuranceCompany(id=1, company="Acme Insurance"),
            InsuranceCompany(id=2, company="Beta Mutual"),
            PaymentType(id=1, description="ACH"),
            PaymentType(id=2, description="Check"),
            PaymentType(id=5, description="Direct"),
            VendorCost(id=1, payment_method_id=1, vendor_name="VendorA",
                       cost_amount=Decimal("1.00"), cost_percentage=Decimal("0.5")),
            # Later rows for the same payment method are ignored
            VendorCost(id=2, payment_method_id=1, vendor_name="VendorB",
                       cost_amount=Decimal("9.99"), cost_percentage=Decimal("0")),
            Disbursement(id=100, company_id=1, updated_at=datetime(2024, 3, 1, 12, 0)),
            Disbursement(id=200, company_id=2, updated_at=datetime(2024, 3, 5, 12, 0)),
            DisbursementPayee(id=1, disbursement_id=100, amount=Decimal("1000.00"),
                              disbursement_status_id=3),
            DisbursementPayee(id=2, disbursement_id=200, amount=Decimal("500.00"),
                              disbursement_status_id=3),
            DisbursementTransaction(
                id=1,
                disbursement_id=100,
                payment_method_id=1,
                payment_method_payee_fee=Decimal("10.00"),
                payment_method_payor_fee=Decimal("0.00"),
                api_transaction_status="completed",
                created_at=datetime(2024, 3, 1, 10, 0),
                updated_at=datetime(2024, 3, 1, 10, 0),
            ),
            DisbursementTransaction(
                id=2,
                disbursement_id=200,
                payment_method_id=5,
                payment_method_payee_fee=Decimal("4.00"),
                payment_method_payor_fee=Decimal("1.00"),
                api_transaction_status="completed",
                created_at=datetime(2024, 3, 5, 10, 0),
                updated_at=datetime(2024, 3, 5, 10, 0),
            ),
            EmployeeCommission(
                id=1,
                employee_name="Jane Doe",
                employee_id=7,
                payment_method_id=None,
                company_id=1,
                commission_amount="$1.00",
                commission_percentage=Decimal("10"),
                active="Yes",
            ),
            EmployeeCommission(
                id=2,
                employee_name="Retired Rep",
                employee_id=8,
                company_id=1,
                commission_amount="$50.00",
                commission_percentage=Decimal("50"),
                active="No",
            ),
            ReferralPartner(id=1, partner_name="Partner P", partner_type="Broker",
                            commission_percentage=Decimal("5"), active="Yes"),
            CompanyReferralMapping(id=1, company_id=1, referral_partner_id=1,
                                   commission_percentage=None, active="TRUE"),
            CompanyUpchargeFee(id=1, company_id=1, payment_method_id=1,
                               base_fee_upcharge=Decimal("0.50"),
                               multiplier_upcharge=Decimal("0"),
                               max_fee_upcharge=None, active="TRUE"),
        ]
    )
    db_session.commit()
    return db_session
