from flask import Blueprint, g, jsonify, request

from ..models import Payment
from ..services import invoice_engine
from ..utils.auth_utils import tenant_required
from ..utils.parsing import get_payload, pagination, parse_date, parse_int, require_fields

bp = Blueprint("payments", __name__)


@bp.get("/payments")
@tenant_required
def list_payments():
    query = Payment.query.filter(Payment.tenant_id == g.tenant_id)
    invoice_id = request.args.get("invoice_id", type=int)
    if invoice_id:
        query = query.filter(Payment.invoice_id == invoice_id)
    limit, offset = pagination()
    total = query.count()
    payments = query.order_by(Payment.payment_date.desc(), Payment.id.desc()).limit(limit).offset(offset).all()
    return jsonify({"total": total, "payments": [p.serialize() for p in payments]}), 200


@bp.post("/payments")
@tenant_required
def create_payment():
    data = get_payload()
    require_fields(data, 'invoice_id', 'amount')
    payment_id = invoice_engine.record_payment(
        parse_int(data['invoice_id'], 'invoice_id'),
        data['amount'],
        payment_date=parse_date(data.get('payment_date'), 'payment_date'),
        method=data.get('method') or 'transfer',
        receipt_url=data.get('receipt_url'),
        tenant_id=g.tenant_id,
        actor=g.actor,
    )
    payment = invoice_engine.load_payment(payment_id, g.tenant_id)
    return jsonify({"payment": payment.serialize(), "invoice": payment.invoice.serialize()}), 201


@bp.get("/payments/<int:payment_id>")
@tenant_required
def get_payment(payment_id):
    return jsonify(invoice_engine.load_payment(payment_id, g.tenant_id).serialize()), 200


@bp.patch("/payments/<int:payment_id>")
@tenant_required
def update_payment(payment_id):
    data = get_payload()
    invoice_engine.revise_payment(
        payment_id,
        amount=data.get('amount'),
        payment_date=parse_date(data.get('payment_date'), 'payment_date'),
        method=data.get('method'),
        receipt_url=data.get('receipt_url'),
        tenant_id=g.tenant_id,
        actor=g.actor,
    )
    payment = invoice_engine.load_payment(payment_id, g.tenant_id)
    return jsonify({"payment": payment.serialize(), "invoice": payment.invoice.serialize()}), 200


@bp.delete("/payments/<int:payment_id>")
@tenant_required
def delete_payment(payment_id):
    invoice_id = invoice_engine.load_payment(payment_id, g.tenant_id).invoice_id
    invoice_engine.reverse_payment(payment_id, tenant_id=g.tenant_id, actor=g.actor)
    invoice = invoice_engine.load_invoice(invoice_id, g.tenant_id, lock=False)
    return jsonify({"invoice": invoice.serialize()}), 200
