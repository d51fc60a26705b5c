from flask import Blueprint, g, jsonify, request

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Contract, Insurer, Policy
from ..services.transaction import atomic
from ..utils.auth_utils import tenant_required
from ..utils.parsing import get_payload, parse_date, parse_int, require_fields

bp = Blueprint("insurance", __name__)

INSURER_FIELDS = ('name', 'email_reports', 'policy_type', 'notes')
POLICY_TYPES = ('collective', 'individual')


def _get_insurer(insurer_id):
    insurer = Insurer.query.filter_by(id=insurer_id, tenant_id=g.tenant_id).first()
    if insurer is None:
        raise NotFoundError("Insurer not found", insurer_id=insurer_id)
    return insurer


def _get_policy(policy_id):
    policy = Policy.query.filter_by(id=policy_id, tenant_id=g.tenant_id).first()
    if policy is None:
        raise NotFoundError("Policy not found", policy_id=policy_id)
    return policy


def _apply_insurer(insurer, data):
    for field in INSURER_FIELDS:
        if field in data:
            setattr(insurer, field, data[field])
    if not insurer.name:
        raise ValidationError("name is required", field='name')
    if insurer.policy_type and insurer.policy_type not in POLICY_TYPES:
        raise ValidationError(f"policy_type must be one of: {', '.join(POLICY_TYPES)}", policy_type=insurer.policy_type)


def _apply_policy(policy, data):
    if 'policy_number' in data:
        policy.policy_number = data['policy_number']
    if 'coverage_type' in data:
        policy.coverage_type = data['coverage_type']
    if 'insurer_id' in data:
        policy.insurer_id = _get_insurer(parse_int(data['insurer_id'], 'insurer_id')).id
    for key in ('start_date', 'end_date'):
        if key in data:
            setattr(policy, key, parse_date(data[key], key))
    if 'status' in data:
        if data['status'] not in ('active', 'expired'):
            raise ValidationError("status must be active or expired", status=data['status'])
        policy.status = data['status']
    if policy.start_date is None or policy.end_date is None:
        raise ValidationError("start_date and end_date are required")
    if policy.end_date < policy.start_date:
        raise ValidationError("end_date must be on or after start_date")

    if 'contract_id' in data:
        contract_id = parse_int(data['contract_id'], 'contract_id')
        if contract_id is not None:
            contract = Contract.query.filter_by(id=contract_id, tenant_id=g.tenant_id).first()
            if contract is None:
                raise ValidationError("contract_id does not exist", contract_id=contract_id)
        policy.contract_id = contract_id


def _link_contract(policy):
    if policy.contract_id is not None:
        contract = db.session.get(Contract, policy.contract_id)
        contract.policy_id = policy.id


# ---------------- Insurers ----------------
@bp.get("/insurers")
@tenant_required
def list_insurers():
    insurers = Insurer.query.filter(Insurer.tenant_id == g.tenant_id).order_by(Insurer.name).all()
    return jsonify({"insurers": [i.serialize() for i in insurers]}), 200


@bp.post("/insurers")
@tenant_required
def create_insurer():
    with atomic():
        insurer = Insurer(tenant_id=g.tenant_id)
        _apply_insurer(insurer, get_payload())
        db.session.add(insurer)
    return jsonify(insurer.serialize()), 201


@bp.patch("/insurers/<int:insurer_id>")
@tenant_required
def update_insurer(insurer_id):
    with atomic():
        insurer = _get_insurer(insurer_id)
        _apply_insurer(insurer, get_payload())
    return jsonify(insurer.serialize()), 200


@bp.delete("/insurers/<int:insurer_id>")
@tenant_required
def delete_insurer(insurer_id):
    with atomic():
        db.session.delete(_get_insurer(insurer_id))
    return "", 204


# ---------------- Policies ----------------
@bp.get("/policies")
@tenant_required
def list_policies():
    query = Policy.query.filter(Policy.tenant_id == g.tenant_id)
    insurer_id = request.args.get("insurer_id", type=int)
    if insurer_id:
        query = query.filter(Policy.insurer_id == insurer_id)
    status = request.args.get("status")
    if status:
        query = query.filter(Policy.status == status)
    policies = query.order_by(Policy.end_date).all()
    return jsonify({"policies": [p.serialize() for p in policies]}), 200


@bp.post("/policies")
@tenant_required
def create_policy():
    data = get_payload()
    require_fields(data, 'policy_number', 'insurer_id', 'start_date', 'end_date')
    with atomic():
        policy = Policy(tenant_id=g.tenant_id, status='active')
        _apply_policy(policy, data)
        db.session.add(policy)
        db.session.flush()
        _link_contract(policy)
    return jsonify(policy.serialize()), 201


@bp.patch("/policies/<int:policy_id>")
@tenant_required
def update_policy(policy_id):
    with atomic():
        policy = _get_policy(policy_id)
        _apply_policy(policy, get_payload())
        _link_contract(policy)
    return jsonify(policy.serialize()), 200


@bp.delete("/policies/<int:policy_id>")
@tenant_required
def delete_policy(policy_id):
    with atomic():
        policy = _get_policy(policy_id)
        Contract.query.filter(Contract.policy_id == policy.id).update({'policy_id': None})
        db.session.delete(policy)
    return "", 204
