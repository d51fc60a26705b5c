from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from rentaldesk import create_app
from rentaldesk.clock import FixedClock
from rentaldesk.config import TestingConfig
from rentaldesk.extensions import db
from rentaldesk.models import Contact, Property, Tenant
from rentaldesk.services.contracts import create_contract


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock(app):
    clock = FixedClock(date(2024, 1, 1))
    app.extensions["billing_clock"] = clock
    return clock


@pytest.fixture
def client(app, clock):
    return app.test_client()


@pytest.fixture
def tenant(app):
    tenant = Tenant(name="Acme Rentals")
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def other_tenant(app):
    tenant = Tenant(name="Other Org")
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def owner(tenant):
    contact = Contact(tenant_id=tenant.id, full_name="Olga Owner", email="owner@example.com", roles="owner")
    db.session.add(contact)
    db.session.commit()
    return contact


@pytest.fixture
def occupant(tenant):
    contact = Contact(tenant_id=tenant.id, full_name="Tom Tenant", email="tom@example.com", roles="tenant")
    db.session.add(contact)
    db.session.commit()
    return contact


@pytest.fixture
def prop(tenant, owner):
    prop = Property(tenant_id=tenant.id, code="APT-101", name="Apartment 101", owner_contact_id=owner.id)
    db.session.add(prop)
    db.session.commit()
    return prop


@pytest.fixture
def contract_terms(tenant, owner, occupant, prop):
    """Keyword arguments for a Jan-Mar 2024 contract at 1,500,000 due on the 5th."""
    return dict(
        number="C-2024-001",
        property_id=prop.id,
        owner_contact_id=owner.id,
        tenant_contact_id=occupant.id,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 3, 31),
        rent_amount=Decimal("1500000"),
        payment_day=5,
    )


@pytest.fixture
def contract_id(tenant, contract_terms, clock):
    return create_contract(tenant.id, **contract_terms)


@pytest.fixture
def auth_headers(app, tenant):
    token = create_access_token(identity="tester", additional_claims={"tenant_id": tenant.id})
    return {"Authorization": f"Bearer {token}"}
