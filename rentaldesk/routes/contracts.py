from flask import Blueprint, g, jsonify, request

from ..clock import get_clock
from ..errors import ValidationError
from ..models import Contract, Invoice
from ..services import contracts as contract_service
from ..services.invoice_engine import generate_schedule
from ..services.transaction import atomic
from ..utils.auth_utils import tenant_required
from ..utils.parsing import get_payload, pagination, parse_date, parse_int, require_fields

bp = Blueprint("contracts", __name__)


def _contract_fields(data):
    """Request payload -> keyword arguments for the contract service."""
    fields = {}
    for key in ('number', 'late_fee_type', 'notes', 'status'):
        if key in data:
            fields[key] = data[key]
    for key in ('start_date', 'end_date'):
        if key in data:
            fields[key] = parse_date(data[key], key)
    for key in ('property_id', 'owner_contact_id', 'tenant_contact_id', 'payment_day', 'policy_id'):
        if key in data:
            fields[key] = parse_int(data[key], key)
    for key in ('rent_amount', 'late_fee_value'):
        if key in data:
            fields[key] = data[key]
    return fields


@bp.get("/contracts")
@tenant_required
def list_contracts():
    query = Contract.query.filter(Contract.tenant_id == g.tenant_id)
    status = request.args.get("status")
    if status:
        query = query.filter(Contract.status == status)
    property_id = request.args.get("property_id", type=int)
    if property_id:
        query = query.filter(Contract.property_id == property_id)
    limit, offset = pagination()
    total = query.count()
    contracts = query.order_by(Contract.start_date.desc()).limit(limit).offset(offset).all()
    return jsonify({"total": total, "contracts": [c.serialize() for c in contracts]}), 200


@bp.post("/contracts")
@tenant_required
def create_contract():
    data = get_payload()
    require_fields(
        data, 'number', 'property_id', 'owner_contact_id', 'tenant_contact_id',
        'start_date', 'end_date', 'rent_amount', 'payment_day',
    )
    contract_id = contract_service.create_contract(g.tenant_id, **_contract_fields(data))
    return jsonify(contract_service.load_contract(contract_id, g.tenant_id).serialize()), 201


@bp.get("/contracts/<int:contract_id>")
@tenant_required
def get_contract(contract_id):
    contract = contract_service.load_contract(contract_id, g.tenant_id)
    data = contract.serialize()
    data['days_until_expiration'] = contract.days_until_expiration(get_clock().today())
    data['invoice_count'] = Invoice.query.filter(Invoice.contract_id == contract.id).count()
    return jsonify(data), 200


@bp.patch("/contracts/<int:contract_id>")
@tenant_required
def update_contract(contract_id):
    contract = contract_service.update_contract(contract_id, g.tenant_id, **_contract_fields(get_payload()))
    return jsonify(contract.serialize()), 200


@bp.delete("/contracts/<int:contract_id>")
@tenant_required
def delete_contract(contract_id):
    with atomic() as session:
        contract = contract_service.load_contract(contract_id, g.tenant_id, lock=True)
        if contract.status not in ('draft', 'signed', 'closed'):
            raise ValidationError("Only draft, signed or closed contracts can be deleted", status=contract.status)
        session.delete(contract)
    return "", 204


@bp.post("/contracts/<int:contract_id>/activate")
@tenant_required
def activate_contract(contract_id):
    invoice_ids = generate_schedule(contract_id, tenant_id=g.tenant_id, actor=g.actor)
    invoices = Invoice.query.filter(Invoice.id.in_(invoice_ids)).order_by(Invoice.due_date).all()
    return jsonify({
        "contract": contract_service.load_contract(contract_id, g.tenant_id).serialize(),
        "invoices": [invoice.serialize() for invoice in invoices],
    }), 201


@bp.get("/contracts/<int:contract_id>/invoices")
@tenant_required
def contract_invoices(contract_id):
    contract = contract_service.load_contract(contract_id, g.tenant_id)
    return jsonify({"invoices": [invoice.serialize() for invoice in contract.invoices]}), 200
