"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import sys
import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Minimal configuration required by config.py, set before anything imports it
os.environ.setdefault("RUNTIME_ENVIRONMENT", "TEST")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CURRENCY", "SAR")
os.environ.setdefault("HOME_COUNTRY", "Saudi Arabia")
os.environ.setdefault("PAYMENT_GATEWAY_URL", "https://gateway.test")
os.environ.setdefault("PAYMENT_GATEWAY_API_KEY", "sk_test_key")
os.environ.setdefault("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "2")

from db import build_engine, create_db_and_tables
from enums.membership_tier import MembershipTier
from models.address import Address
from models.brand import Brand
from models.merchandise import Merchandise
from models.part import Part
from models.user import User, PrincipalDTO
from services.payment import PaymentService


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine; StaticPool keeps the single connection alive."""
    engine = build_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    await create_db_and_tables(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine):
    """Create test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_payment_strategies():
    """Strategies cache a gateway client; every test starts with a fresh registry."""
    PaymentService._strategies = None
    yield
    PaymentService._strategies = None


# ============================================================================
# Catalog / User Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def shop(test_session):
    """
    Seeded store:
    - customer (silver) with a UAE address, a second customer, an admin
    - exhaust (part, 100.00, 3 kg, stock 10), brake pads (part, 50.00, 1 kg, stock 5)
    - riding jacket (merch, 25.00, 0.5 kg, stock 20)
    """
    brand = Brand(name="Akrapovic")
    test_session.add(brand)
    await test_session.flush()

    customer = User(email="rider@example.com", full_name="Test Rider", email_verified=True,
                    membership_tier=MembershipTier.SILVER, membership_points=0)
    other = User(email="other@example.com", full_name="Other Rider", email_verified=True)
    admin = User(email="admin@example.com", full_name="Shop Admin", email_verified=True, is_admin=True)
    exhaust = Part(brand_id=brand.id, name="Slip-On Exhaust", part_number="S-Y10SO",
                   original_price=120.0, selling_price=100.0, quantity=10, weight=3.0,
                   images='["exhaust.jpg"]')
    brake_pads = Part(name="Brake Pads", part_number="BP-01", original_price=60.0, selling_price=50.0,
                      quantity=5, weight=1.0)
    jacket = Merchandise(name="Riding Jacket", price=25.0, quantity=20, weight=0.5)
    test_session.add_all([customer, other, admin, exhaust, brake_pads, jacket])
    await test_session.flush()

    address = Address(user_id=customer.id, label="Home", full_name="Test Rider", country="UAE",
                      city="Dubai", street="Sheikh Zayed Rd 1", postal_code="00000", is_default=True)
    home_address = Address(user_id=customer.id, label="Riyadh", country="Saudi Arabia", city="Riyadh",
                           street="King Fahd Rd 5")
    other_address = Address(user_id=other.id, label="Home", country="Kuwait", city="Kuwait City",
                            street="Gulf Rd 7", is_default=True)
    test_session.add_all([address, home_address, other_address])
    await test_session.commit()

    class Shop:
        pass

    seeded = Shop()
    seeded.customer = PrincipalDTO(id=customer.id, membership_tier=MembershipTier.SILVER)
    seeded.other = PrincipalDTO(id=other.id)
    seeded.admin = PrincipalDTO(id=admin.id, is_admin=True)
    seeded.address_id = address.id
    seeded.home_address_id = home_address.id
    seeded.other_address_id = other_address.id
    seeded.exhaust_id = exhaust.id
    seeded.brake_pads_id = brake_pads.id
    seeded.jacket_id = jacket.id
    return seeded
