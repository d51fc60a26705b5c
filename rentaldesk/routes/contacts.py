from flask import Blueprint, g, jsonify, request

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Contact, Contract, CONTACT_ROLES
from ..services.transaction import atomic
from ..utils.auth_utils import tenant_required
from ..utils.parsing import get_payload, pagination, require_fields

bp = Blueprint("contacts", __name__)

CONTACT_FIELDS = ('full_name', 'email', 'phone', 'doc_type', 'doc_number')


def _get_contact(contact_id):
    contact = Contact.query.filter_by(id=contact_id, tenant_id=g.tenant_id).first()
    if contact is None:
        raise NotFoundError("Contact not found", contact_id=contact_id)
    return contact


def _set_roles(contact, roles):
    if isinstance(roles, str):
        roles = [r.strip() for r in roles.split(',') if r.strip()]
    unknown = [r for r in roles if r not in CONTACT_ROLES]
    if unknown or not roles:
        raise ValidationError(f"roles must be a non-empty list of: {', '.join(CONTACT_ROLES)}", roles=roles)
    contact.role_list = roles


@bp.get("/contacts")
@tenant_required
def list_contacts():
    query = Contact.query.filter(Contact.tenant_id == g.tenant_id)
    role = request.args.get("role")
    if role:
        query = query.filter(Contact.roles.contains(role))
    search = request.args.get("q")
    if search:
        query = query.filter(Contact.full_name.ilike(f"%{search}%"))
    limit, offset = pagination()
    total = query.count()
    contacts = query.order_by(Contact.full_name).limit(limit).offset(offset).all()
    return jsonify({"total": total, "contacts": [c.serialize() for c in contacts]}), 200


@bp.post("/contacts")
@tenant_required
def create_contact():
    data = get_payload()
    require_fields(data, 'full_name')
    with atomic():
        contact = Contact(tenant_id=g.tenant_id)
        for field in CONTACT_FIELDS:
            if field in data:
                setattr(contact, field, data[field])
        _set_roles(contact, data.get('roles') or ['tenant'])
        db.session.add(contact)
    return jsonify(contact.serialize()), 201


@bp.get("/contacts/<int:contact_id>")
@tenant_required
def get_contact(contact_id):
    return jsonify(_get_contact(contact_id).serialize()), 200


@bp.patch("/contacts/<int:contact_id>")
@tenant_required
def update_contact(contact_id):
    data = get_payload()
    with atomic():
        contact = _get_contact(contact_id)
        for field in CONTACT_FIELDS:
            if field in data:
                setattr(contact, field, data[field])
        if 'roles' in data:
            _set_roles(contact, data['roles'])
        if not contact.full_name:
            raise ValidationError("full_name is required", field='full_name')
    return jsonify(contact.serialize()), 200


@bp.delete("/contacts/<int:contact_id>")
@tenant_required
def delete_contact(contact_id):
    with atomic():
        contact = _get_contact(contact_id)
        in_use = Contract.query.filter(
            (Contract.owner_contact_id == contact.id) | (Contract.tenant_contact_id == contact.id)
        ).count()
        if in_use:
            raise ValidationError("Contact is referenced by contracts and cannot be deleted", contracts=in_use)
        db.session.delete(contact)
    return "", 204
