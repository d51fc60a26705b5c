from datetime import date
from decimal import Decimal

import pytest

from rentaldesk.errors import DuplicateRecordError, InvalidPolicyError, OverlappingContractError, ValidationError
from rentaldesk.extensions import db
from rentaldesk.models import Contract, Insurer, Policy
from rentaldesk.services.contracts import create_contract, find_overlapping, update_contract
from rentaldesk.services.invoice_engine import generate_schedule


def test_create_contract_normalizes_terms(contract_id):
    contract = db.session.get(Contract, contract_id)
    assert contract.status == "draft"
    assert contract.rent_amount == Decimal("1500000.00")
    assert contract.late_fee_type == "none"


def test_signed_contract_blocks_overlapping_dates(tenant, contract_terms):
    create_contract(tenant.id, **dict(contract_terms, status="signed"))
    with pytest.raises(OverlappingContractError):
        create_contract(tenant.id, **dict(contract_terms, number="C-2", start_date=date(2024, 3, 31), end_date=date(2024, 6, 30)))


def test_adjacent_contract_is_allowed(tenant, contract_terms):
    create_contract(tenant.id, **dict(contract_terms, status="signed"))
    create_contract(tenant.id, **dict(contract_terms, number="C-2", start_date=date(2024, 4, 1), end_date=date(2024, 6, 30), status="signed"))
    assert Contract.query.count() == 2


def test_overlap_is_per_property(tenant, contract_terms, prop):
    create_contract(tenant.id, **dict(contract_terms, status="signed"))
    assert find_overlapping(prop.id + 1, date(2024, 1, 1), date(2024, 12, 31), tenant.id) is None
    assert find_overlapping(prop.id, date(2024, 2, 1), date(2024, 2, 2), tenant.id) is not None


def test_new_contract_cannot_start_active(tenant, contract_terms):
    with pytest.raises(ValidationError):
        create_contract(tenant.id, **dict(contract_terms, status="active"))


def test_contract_requires_existing_contacts(tenant, contract_terms):
    with pytest.raises(ValidationError):
        create_contract(tenant.id, **dict(contract_terms, tenant_contact_id=424242))


def test_invalid_late_fee_policy_rejected(tenant, contract_terms):
    with pytest.raises(InvalidPolicyError):
        create_contract(tenant.id, **dict(contract_terms, late_fee_type="fixed"))


def test_duplicate_number_rejected(tenant, contract_terms):
    create_contract(tenant.id, **contract_terms)
    with pytest.raises(DuplicateRecordError):
        create_contract(tenant.id, **dict(contract_terms, start_date=date(2025, 1, 1), end_date=date(2025, 3, 31)))


def test_financial_terms_frozen_after_activation(contract_id, clock):
    update_contract(contract_id, rent_amount="1600000")
    assert db.session.get(Contract, contract_id).rent_amount == Decimal("1600000.00")

    generate_schedule(contract_id)
    with pytest.raises(ValidationError):
        update_contract(contract_id, rent_amount="1700000")

    # unchanged values and non-financial fields are fine
    update_contract(contract_id, rent_amount="1600000", notes="Keys handed over")
    assert db.session.get(Contract, contract_id).notes == "Keys handed over"


def test_activation_only_through_schedule(contract_id):
    with pytest.raises(ValidationError):
        update_contract(contract_id, status="active")


def test_active_contract_cannot_go_back_to_draft(contract_id, clock):
    ids = generate_schedule(contract_id)
    for status in ("draft", "signed", "expired"):
        with pytest.raises(ValidationError):
            update_contract(contract_id, status=status)

    contract = db.session.get(Contract, contract_id)
    assert contract.status == "active"
    with pytest.raises(ValidationError):
        update_contract(contract_id, rent_amount="999")
    assert contract.rent_amount == Decimal("1500000.00")
    assert len(ids) == 3


@pytest.mark.parametrize("path", [
    ("signed", "draft", "closed"),
    ("closed",),
])
def test_pre_active_status_moves(contract_id, path):
    for status in path:
        update_contract(contract_id, status=status)
    assert db.session.get(Contract, contract_id).status == path[-1]


def test_closed_contract_stays_closed(contract_id):
    update_contract(contract_id, status="closed")
    for status in ("draft", "signed", "expiring"):
        with pytest.raises(ValidationError):
            update_contract(contract_id, status=status)


def test_closing_active_contract_frees_property(contract_id, clock):
    generate_schedule(contract_id)
    update_contract(contract_id, status="expiring")
    update_contract(contract_id, status="closed")
    contract = db.session.get(Contract, contract_id)
    assert contract.status == "closed"
    assert contract.property.status == "available"


def _policy_for(tenant_id, number):
    insurer = Insurer(tenant_id=tenant_id, name=f"Insurer {number}")
    db.session.add(insurer)
    db.session.flush()
    policy = Policy(tenant_id=tenant_id, policy_number=number, insurer_id=insurer.id,
                    start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
    db.session.add(policy)
    db.session.commit()
    return policy.id


def test_policy_must_belong_to_contract_tenant(tenant, other_tenant, contract_id):
    foreign = _policy_for(other_tenant.id, "X-1")
    with pytest.raises(ValidationError):
        update_contract(contract_id, policy_id=foreign)
    assert db.session.get(Contract, contract_id).policy_id is None

    own = _policy_for(tenant.id, "P-1")
    update_contract(contract_id, policy_id=own)
    assert db.session.get(Contract, contract_id).policy_id == own
    update_contract(contract_id, policy_id=None)
    assert db.session.get(Contract, contract_id).policy_id is None
