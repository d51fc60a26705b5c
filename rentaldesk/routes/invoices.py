from flask import Blueprint, g, jsonify, request

from ..billing.status import InvoiceStatus
from ..clock import get_clock
from ..errors import ValidationError
from ..models import Invoice
from ..services import invoice_engine
from ..utils.auth_utils import tenant_required
from ..utils.parsing import get_payload, pagination, parse_date, parse_int, require_fields

bp = Blueprint("invoices", __name__)


def _invoice_response(invoice_id, status=200):
    invoice = invoice_engine.load_invoice(invoice_id, g.tenant_id, lock=False)
    return jsonify(invoice.serialize(include_lines=True)), status


@bp.get("/invoices")
@tenant_required
def list_invoices():
    """Invoices with optional status, contract and month filters"""
    query = Invoice.query.filter(Invoice.tenant_id == g.tenant_id)

    status = request.args.get("status")
    if status:
        if status not in {s.value for s in InvoiceStatus}:
            raise ValidationError(f"Unknown invoice status: {status}", status=status)
        query = query.filter(Invoice.status == status)

    contract_id = request.args.get("contract_id", type=int)
    if contract_id:
        query = query.filter(Invoice.contract_id == contract_id)

    # Filter by due month, format YYYY-MM
    month = request.args.get("month")
    if month:
        start = parse_date(f"{month}-01", "month")
        end = start.replace(year=start.year + 1, month=1) if start.month == 12 else start.replace(month=start.month + 1)
        query = query.filter(Invoice.due_date >= start, Invoice.due_date < end)

    limit, offset = pagination()
    total = query.count()
    invoices = query.order_by(Invoice.due_date.desc(), Invoice.id.desc()).limit(limit).offset(offset).all()
    return jsonify({"total": total, "invoices": [invoice.serialize() for invoice in invoices]}), 200


@bp.post("/invoices")
@tenant_required
def create_invoice():
    data = get_payload()
    require_fields(data, 'contract_id', 'issue_date', 'due_date')
    charges = data.get('charges')
    if charges is not None and not isinstance(charges, list):
        raise ValidationError("charges must be a list", field='charges')
    invoice_id = invoice_engine.create_invoice(
        parse_int(data['contract_id'], 'contract_id'),
        parse_date(data['issue_date'], 'issue_date'),
        parse_date(data['due_date'], 'due_date'),
        charges=charges,
        subtotal=data.get('subtotal'),
        tax=data.get('tax') or 0,
        other_charges=data.get('other_charges') or 0,
        number=data.get('number'),
        issue=bool(data.get('issue')),
        tenant_id=g.tenant_id,
        actor=g.actor,
    )
    return _invoice_response(invoice_id, 201)


@bp.get("/invoices/<int:invoice_id>")
@tenant_required
def get_invoice(invoice_id):
    invoice = invoice_engine.load_invoice(invoice_id, g.tenant_id, lock=False)
    data = invoice.serialize(include_lines=True)
    data['days_overdue'] = invoice.days_overdue(get_clock().today())
    return jsonify(data), 200


@bp.patch("/invoices/<int:invoice_id>")
@tenant_required
def update_invoice(invoice_id):
    data = get_payload()
    changes = {}
    for key in ('issue_date', 'due_date'):
        if key in data:
            changes[key] = parse_date(data[key], key)
            if changes[key] is None:
                raise ValidationError(f"{key} cannot be empty", field=key)
    for key in ('tax', 'other_charges'):
        if key in data:
            changes[key] = data[key] or 0
    invoice_engine.update_invoice(invoice_id, tenant_id=g.tenant_id, **changes)
    return _invoice_response(invoice_id)


@bp.post("/invoices/<int:invoice_id>/recalc")
@tenant_required
def recalculate(invoice_id):
    totals = invoice_engine.recalculate_invoice(invoice_id, tenant_id=g.tenant_id)
    return jsonify({"invoice_id": invoice_id, "totals": totals.as_dict()}), 200


@bp.post("/invoices/<int:invoice_id>/issue")
@tenant_required
def issue(invoice_id):
    invoice_engine.issue_invoice(invoice_id, tenant_id=g.tenant_id, actor=g.actor)
    return _invoice_response(invoice_id)


@bp.get("/invoices/<int:invoice_id>/status")
@tenant_required
def invoice_status(invoice_id):
    as_of = parse_date(request.args.get("as_of"), "as_of")
    persist = request.args.get("persist", "false").lower() in ("1", "true", "yes")
    status = invoice_engine.resolve_invoice_status(
        invoice_id, as_of=as_of, persist=persist, tenant_id=g.tenant_id
    )
    return jsonify({
        "invoice_id": invoice_id,
        "status": status.value,
        "as_of": (as_of or get_clock().today()).isoformat(),
        "persisted": persist,
    }), 200


@bp.post("/invoices/<int:invoice_id>/late-fee")
@tenant_required
def late_fee(invoice_id):
    fee = invoice_engine.apply_late_fee(invoice_id, tenant_id=g.tenant_id)
    invoice = invoice_engine.load_invoice(invoice_id, g.tenant_id, lock=False)
    return jsonify({"applied": fee > 0, "fee": format(fee, "f"), "invoice": invoice.serialize()}), 200


@bp.post("/invoices/<int:invoice_id>/charges")
@tenant_required
def add_charge(invoice_id):
    data = get_payload()
    require_fields(data, 'description', 'amount')
    invoice_engine.add_charge(
        invoice_id, data['description'], data['amount'], kind=data.get('kind') or 'other', tenant_id=g.tenant_id
    )
    return _invoice_response(invoice_id, 201)


@bp.delete("/invoices/<int:invoice_id>/charges/<int:charge_id>")
@tenant_required
def remove_charge(invoice_id, charge_id):
    invoice_engine.remove_charge(invoice_id, charge_id, tenant_id=g.tenant_id)
    return _invoice_response(invoice_id)
