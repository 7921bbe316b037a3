"""Pytest fixtures: in-memory database, seeded users/catalog, API client."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.database import Base, get_db, init_db
from storefront.main import app
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.users import User
from storefront.services.orders import Customer
from storefront.utils.hashing import get_password_hash
from storefront.utils.tokenJWT import create_access_token


@pytest.fixture
def engine():
    """One shared in-memory SQLite connection per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, email, role, first_name, last_name):
    user = User(
        email=email,
        password_hash=get_password_hash("secret123"),
        role=role,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer_user(db):
    return _make_user(db, "alice@storefront.dev", "customer", "Alice", "Smith")


@pytest.fixture
def other_user(db):
    return _make_user(db, "bob@storefront.dev", "customer", "Bob", "Jones")


@pytest.fixture
def admin_user(db):
    return _make_user(db, "admin@storefront.dev", "admin", "Ada", "Admin")


def _headers(user):
    token = create_access_token({"sub": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer_user):
    return _headers(customer_user)


@pytest.fixture
def other_headers(other_user):
    return _headers(other_user)


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def customer(customer_user):
    return Customer(
        user_id=customer_user.id,
        firstname="Alice",
        lastname="Smith",
        phone="555-0100",
    )


@pytest.fixture
def category(db):
    cat = Category(name="Books", description="Printed matter")
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return cat


@pytest.fixture
def product(db, category):
    """Product P from the order example: price 20.00."""
    prod = Product(
        name="Field Guide",
        description="Birds of the north",
        price=20.00,
        category=category.name,
        stock_quantity=10,
        rating=4.5,
    )
    db.add(prod)
    db.commit()
    db.refresh(prod)
    return prod


@pytest.fixture
def second_product(db, category):
    prod = Product(
        name="Atlas",
        description="World maps",
        price=12.50,
        category=category.name,
        stock_quantity=5,
        rating=4.0,
    )
    db.add(prod)
    db.commit()
    db.refresh(prod)
    return prod
