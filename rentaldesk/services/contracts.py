"""Contract validation and persistence outside of activation."""
import logging
from decimal import Decimal

from ..billing.late_fees import LateFeePolicy
from ..billing.money import to_decimal
from ..billing.schedule import validate_terms
from ..errors import ContractNotFoundError, OverlappingContractError, ValidationError
from ..extensions import db
from ..models import Contact, Contract, Policy, Property, CONTRACT_STATUSES, OCCUPYING_STATUSES, PRE_ACTIVE_STATUSES
from .transaction import atomic, locked

logger = logging.getLogger(__name__)

# terms that feed the invoice schedule and cannot change once it exists
FINANCIAL_FIELDS = ('start_date', 'end_date', 'rent_amount', 'payment_day', 'late_fee_type', 'late_fee_value', 'property_id')
EDITABLE_FIELDS = FINANCIAL_FIELDS + ('number', 'owner_contact_id', 'tenant_contact_id', 'policy_id', 'notes', 'status')
OPTIONAL_REFERENCES = ('policy_id',)
# status moves allowed through update_contract; activation and expiry have their own paths
STATUS_TRANSITIONS = {
    'draft': ('signed', 'closed'),
    'signed': ('draft', 'closed'),
    'active': ('expiring', 'closed'),
    'expiring': ('expired', 'closed'),
    'expired': ('closed',),
    'closed': (),
}


def load_contract(contract_id, tenant_id=None, lock=False):
    query = Contract.query.filter(Contract.id == contract_id)
    if tenant_id is not None:
        query = query.filter(Contract.tenant_id == tenant_id)
    contract = (locked(query) if lock else query).one_or_none()
    if contract is None:
        raise ContractNotFoundError(contract_id=contract_id)
    return contract


def find_overlapping(property_id, start_date, end_date, tenant_id, exclude_id=None, lock=False):
    """First occupying contract on ``property_id`` whose dates intersect the range."""
    query = Contract.query.filter(
        Contract.tenant_id == tenant_id,
        Contract.property_id == property_id,
        Contract.status.in_(OCCUPYING_STATUSES),
        Contract.start_date <= end_date,
        Contract.end_date >= start_date,
    )
    if exclude_id is not None:
        query = query.filter(Contract.id != exclude_id)
    if lock:
        query = locked(query)
    return query.order_by(Contract.start_date).first()


def ensure_no_overlap(property_id, start_date, end_date, tenant_id, exclude_id=None, lock=False):
    existing = find_overlapping(property_id, start_date, end_date, tenant_id, exclude_id, lock)
    if existing is not None:
        logger.warning(
            "Property %s already held by contract %s (%s..%s)",
            property_id, existing.number, existing.start_date, existing.end_date,
        )
        raise OverlappingContractError(
            f"Property already has an active contract ({existing.number}) overlapping the selected dates",
            contract=existing.number,
        )


def _check_references(contract):
    scoped = {
        'property_id': Property,
        'owner_contact_id': Contact,
        'tenant_contact_id': Contact,
        'policy_id': Policy,
    }
    for field, model in scoped.items():
        value = getattr(contract, field)
        if value is None:
            if field in OPTIONAL_REFERENCES:
                continue
            raise ValidationError(f"{field} is required", field=field)
        found = model.query.filter(model.id == value, model.tenant_id == contract.tenant_id).first()
        if found is None:
            raise ValidationError(f"{field} does not exist", field=field, value=value)


def _check_transition(current, target):
    if target == current:
        return
    if target == 'active':
        raise ValidationError("Use the activate operation to start billing a contract")
    if target not in STATUS_TRANSITIONS.get(current, ()):
        raise ValidationError(
            f"Contract cannot move from {current} to {target}", status=current, target=target
        )


def _changed(current, value):
    if isinstance(current, Decimal) and value not in (None, ''):
        return to_decimal(value) != current
    return value != current


def check_contract(contract):
    """Validate terms, late fee policy, references and the overlap rule."""
    if not contract.number:
        raise ValidationError("number is required", field='number')
    if contract.status not in CONTRACT_STATUSES:
        raise ValidationError(f"Unknown contract status: {contract.status}", status=contract.status)
    contract.rent_amount = validate_terms(
        contract.start_date, contract.end_date, contract.rent_amount, contract.payment_day
    )
    policy = LateFeePolicy.build(contract.late_fee_type, contract.late_fee_value)
    contract.late_fee_type = policy.kind.value
    contract.late_fee_value = policy.value
    _check_references(contract)
    ensure_no_overlap(
        contract.property_id, contract.start_date, contract.end_date,
        contract.tenant_id, exclude_id=contract.id,
    )


def create_contract(tenant_id, **fields):
    with atomic():
        contract = Contract(tenant_id=tenant_id, status='draft')
        for field in EDITABLE_FIELDS:
            if field in fields:
                setattr(contract, field, fields[field])
        if contract.status not in PRE_ACTIVE_STATUSES:
            raise ValidationError("New contracts start as draft or signed; activate them to bill", status=contract.status)
        check_contract(contract)
        db.session.add(contract)
        db.session.flush()
        contract_id = contract.id
    logger.info("Created contract %s (%s) for tenant %s", contract_id, contract.number, tenant_id)
    return contract_id


def update_contract(contract_id, tenant_id=None, **changes):
    with atomic():
        contract = load_contract(contract_id, tenant_id, lock=True)
        touched = [f for f in FINANCIAL_FIELDS if f in changes and _changed(getattr(contract, f), changes[f])]
        if touched and contract.status not in PRE_ACTIVE_STATUSES:
            raise ValidationError(
                "Financial terms cannot change after activation", fields=','.join(touched), status=contract.status
            )
        previous = contract.status
        _check_transition(previous, changes.get('status', previous))
        for field, value in changes.items():
            if field in EDITABLE_FIELDS:
                setattr(contract, field, value)
        check_contract(contract)
        if previous in ('active', 'expiring') and contract.status in ('expired', 'closed'):
            if contract.property and contract.property.status == 'rented':
                contract.property.status = 'available'
            logger.info("Contract %s moved from %s to %s", contract.number, previous, contract.status)
    return contract
