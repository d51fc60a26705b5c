from datetime import date
from decimal import Decimal

import pytest

from rentaldesk.extensions import db
from rentaldesk.models import AuditLog, Contract, Invoice, InvoiceCharge, Payment
from rentaldesk.services import invoice_engine
from rentaldesk.services.contracts import create_contract
from rentaldesk.errors import (
    ContractAlreadyActiveError,
    ContractNotFoundError,
    InvalidAmountError,
    InvalidChargeError,
    InvoiceNotFoundError,
    OverlappingContractError,
    OverpaymentError,
    ValidationError,
)


def _invoices(contract_id):
    return Invoice.query.filter_by(contract_id=contract_id).order_by(Invoice.due_date).all()


def test_activation_creates_one_invoice_per_month(contract_id, clock):
    ids = invoice_engine.generate_schedule(contract_id)

    invoices = _invoices(contract_id)
    assert [i.id for i in invoices] == ids
    assert [i.due_date for i in invoices] == [date(2024, 1, 5), date(2024, 2, 5), date(2024, 3, 5)]
    assert [i.number for i in invoices] == ["C-2024-001-001", "C-2024-001-002", "C-2024-001-003"]
    for invoice in invoices:
        assert invoice.subtotal == Decimal("1500000.00")
        assert invoice.total_amount == Decimal("1500000.00")
        assert invoice.status == "issued"
        assert len(invoice.charges) == 1

    contract = db.session.get(Contract, contract_id)
    assert contract.status == "active"
    assert contract.activated_at is not None
    assert contract.property.status == "rented"
    assert AuditLog.query.filter_by(action="contract.activated").count() == 1


def test_activation_runs_once(contract_id, clock):
    invoice_engine.generate_schedule(contract_id)
    with pytest.raises(ContractAlreadyActiveError):
        invoice_engine.generate_schedule(contract_id)
    assert len(_invoices(contract_id)) == 3


def test_activation_is_scoped_to_tenant(contract_id, other_tenant, clock):
    with pytest.raises(ContractNotFoundError):
        invoice_engine.generate_schedule(contract_id, tenant_id=other_tenant.id)


def test_activation_rechecks_overlap(tenant, contract_terms, contract_id, clock):
    # a draft does not hold the property, so a second draft can be created...
    other_id = create_contract(tenant.id, **dict(contract_terms, number="C-2024-002"))
    invoice_engine.generate_schedule(contract_id)

    # ...but it can no longer be activated once the first one is active
    with pytest.raises(OverlappingContractError):
        invoice_engine.generate_schedule(other_id)
    assert db.session.get(Contract, other_id).status == "draft"
    assert _invoices(other_id) == []


def test_failed_activation_saves_nothing(contract_id, clock):
    contract = db.session.get(Contract, contract_id)
    # bypass the service to store a policy that activation must reject
    contract.late_fee_type = "percent"
    contract.late_fee_value = None
    db.session.commit()

    with pytest.raises(ValidationError):
        invoice_engine.generate_schedule(contract_id)
    assert _invoices(contract_id) == []
    assert db.session.get(Contract, contract_id).status == "draft"


@pytest.fixture
def invoice_id(contract_id, clock):
    return invoice_engine.generate_schedule(contract_id)[0]


def test_payments_move_invoice_to_partial_then_paid(invoice_id, clock):
    invoice_engine.record_payment(invoice_id, "900000")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("900000.00")
    assert invoice.status == "partial"

    second = invoice_engine.record_payment(invoice_id, "600000", method="cash")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("1500000.00")
    assert invoice.status == "paid"

    with pytest.raises(OverpaymentError):
        invoice_engine.record_payment(invoice_id, "1")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("1500000.00")
    assert Payment.query.filter_by(invoice_id=invoice_id).count() == 2

    invoice_engine.reverse_payment(second)
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("900000.00")
    assert invoice.status == "partial"
    assert db.session.get(Payment, second) is None


def test_reversal_after_due_date_reopens_as_overdue(invoice_id, clock):
    first = invoice_engine.record_payment(invoice_id, "1500000")
    clock.set(date(2024, 1, 10))
    invoice_engine.reverse_payment(first)
    assert db.session.get(Invoice, invoice_id).status == "overdue"


def test_payment_validation(invoice_id, clock):
    with pytest.raises(ValidationError):
        invoice_engine.record_payment(invoice_id, "0")
    with pytest.raises(ValidationError):
        invoice_engine.record_payment(invoice_id, "100", method="bitcoin")
    with pytest.raises(InvoiceNotFoundError):
        invoice_engine.record_payment(999999, "100")


def test_sub_cent_payment_is_not_recorded(invoice_id, clock):
    with pytest.raises(InvalidAmountError):
        invoice_engine.record_payment(invoice_id, "0.004")
    assert Payment.query.filter_by(invoice_id=invoice_id).count() == 0
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("0.00")
    assert invoice.status == "issued"


def test_revise_payment_rechecks_balance(invoice_id, clock):
    payment_id = invoice_engine.record_payment(invoice_id, "1000000")
    invoice_engine.revise_payment(payment_id, amount="1500000")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("1500000.00")
    assert invoice.status == "paid"

    with pytest.raises(OverpaymentError):
        invoice_engine.revise_payment(payment_id, amount="1500001")
    assert db.session.get(Payment, payment_id).amount == Decimal("1500000.00")

    invoice_engine.revise_payment(payment_id, amount="200000", method="card")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.amount_paid == Decimal("200000.00")
    assert invoice.status == "partial"


def test_recalculate_is_idempotent(invoice_id, clock):
    first = invoice_engine.recalculate_invoice(invoice_id)
    second = invoice_engine.recalculate_invoice(invoice_id)
    assert first == second
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.total_amount == invoice.subtotal + invoice.tax + invoice.other_charges + invoice.late_fee


def test_added_charge_reopens_paid_invoice(invoice_id, clock):
    invoice_engine.record_payment(invoice_id, "1500000")
    invoice_engine.add_charge(invoice_id, "Water bill", "35000.50")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.total_amount == Decimal("1535000.50")
    assert invoice.status == "partial"


def test_charge_removal_cannot_drop_total_below_paid(invoice_id, clock):
    charge_id = invoice_engine.add_charge(invoice_id, "Parking", "100000")
    invoice_engine.record_payment(invoice_id, "1600000")
    with pytest.raises(InvalidChargeError):
        invoice_engine.remove_charge(invoice_id, charge_id)
    assert db.session.get(InvoiceCharge, charge_id) is not None


def test_status_dry_run_does_not_persist(invoice_id, clock):
    status = invoice_engine.resolve_invoice_status(invoice_id, as_of=date(2024, 2, 1))
    assert status.value == "overdue"
    assert db.session.get(Invoice, invoice_id).status == "issued"

    invoice_engine.resolve_invoice_status(invoice_id, as_of=date(2024, 2, 1), persist=True)
    assert db.session.get(Invoice, invoice_id).status == "overdue"


def test_late_fee_applied_once(tenant, contract_terms, clock):
    contract_id = create_contract(tenant.id, **dict(contract_terms, late_fee_type="percent", late_fee_value="5"))
    invoice_id = invoice_engine.generate_schedule(contract_id)[0]

    assert invoice_engine.apply_late_fee(invoice_id) == Decimal("0.00")

    clock.set(date(2024, 1, 6))
    assert invoice_engine.apply_late_fee(invoice_id) == Decimal("75000.00")
    assert invoice_engine.apply_late_fee(invoice_id) == Decimal("0.00")

    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.late_fee == Decimal("75000.00")
    assert invoice.total_amount == Decimal("1575000.00")
    assert invoice.late_fee_applied is True
    assert invoice.late_fee_applied_on == date(2024, 1, 6)
    assert invoice.status == "overdue"


def test_manual_invoice_starts_as_draft(contract_id, clock):
    invoice_id = invoice_engine.create_invoice(
        contract_id, date(2024, 1, 1), date(2024, 1, 15),
        charges=[{"description": "Repairs", "amount": "250000", "kind": "other"}],
        tax="47500",
    )
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.status == "draft"
    assert invoice.number == "C-2024-001-M001"
    assert invoice.total_amount == Decimal("297500.00")

    with pytest.raises(ValidationError):
        invoice_engine.record_payment(invoice_id, "100")

    assert invoice_engine.issue_invoice(invoice_id).value == "issued"
    invoice_engine.record_payment(invoice_id, "297500")
    assert db.session.get(Invoice, invoice_id).status == "paid"


def test_manual_invoice_needs_a_charge(contract_id, clock):
    with pytest.raises(ValidationError):
        invoice_engine.create_invoice(contract_id, date(2024, 1, 1), date(2024, 1, 15))
    with pytest.raises(ValidationError):
        invoice_engine.create_invoice(contract_id, date(2024, 1, 15), date(2024, 1, 1), subtotal="10")


def test_update_invoice_terms_rederives_status(invoice_id, clock):
    clock.set(date(2024, 1, 10))
    invoice_engine.update_invoice(invoice_id, due_date=date(2024, 1, 20), tax="1000")
    invoice = db.session.get(Invoice, invoice_id)
    assert invoice.total_amount == Decimal("1501000.00")
    assert invoice.status == "issued"
