from flask import Blueprint, g, jsonify, request

from ..billing.money import to_decimal
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Contract, Property, PROPERTY_STATUSES, OCCUPYING_STATUSES
from ..services.transaction import atomic
from ..utils.auth_utils import tenant_required
from ..utils.parsing import get_payload, pagination, parse_int, require_fields

bp = Blueprint("properties", __name__)

PROPERTY_FIELDS = ('code', 'name', 'address', 'property_type', 'status')


def _get_property(property_id):
    prop = Property.query.filter_by(id=property_id, tenant_id=g.tenant_id).first()
    if prop is None:
        raise NotFoundError("Property not found", property_id=property_id)
    return prop


def _apply(prop, data):
    for field in PROPERTY_FIELDS:
        if field in data:
            setattr(prop, field, data[field])
    if 'stratum' in data:
        prop.stratum = parse_int(data['stratum'], 'stratum')
    if 'owner_contact_id' in data:
        prop.owner_contact_id = parse_int(data['owner_contact_id'], 'owner_contact_id')
    if 'list_rent' in data:
        prop.list_rent = to_decimal(data['list_rent'], 'list_rent') if data['list_rent'] not in (None, "") else None
    if prop.status not in PROPERTY_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PROPERTY_STATUSES)}", status=prop.status)


@bp.get("/properties")
@tenant_required
def list_properties():
    query = Property.query.filter(Property.tenant_id == g.tenant_id)
    status = request.args.get("status")
    if status:
        query = query.filter(Property.status == status)
    limit, offset = pagination()
    total = query.count()
    properties = query.order_by(Property.code).limit(limit).offset(offset).all()
    return jsonify({"total": total, "properties": [p.serialize() for p in properties]}), 200


@bp.post("/properties")
@tenant_required
def create_property():
    data = get_payload()
    require_fields(data, 'code', 'name')
    with atomic():
        prop = Property(tenant_id=g.tenant_id, status='available')
        _apply(prop, data)
        db.session.add(prop)
    return jsonify(prop.serialize()), 201


@bp.get("/properties/<int:property_id>")
@tenant_required
def get_property(property_id):
    prop = _get_property(property_id)
    data = prop.serialize()
    data['contracts'] = [c.serialize() for c in prop.contracts]
    return jsonify(data), 200


@bp.patch("/properties/<int:property_id>")
@tenant_required
def update_property(property_id):
    with atomic():
        prop = _get_property(property_id)
        _apply(prop, get_payload())
    return jsonify(prop.serialize()), 200


@bp.delete("/properties/<int:property_id>")
@tenant_required
def delete_property(property_id):
    with atomic():
        prop = _get_property(property_id)
        occupied = Contract.query.filter(
            Contract.property_id == prop.id, Contract.status.in_(OCCUPYING_STATUSES)
        ).count()
        if occupied:
            raise ValidationError("Property has live contracts and cannot be deleted", contracts=occupied)
        db.session.delete(prop)
    return "", 204
