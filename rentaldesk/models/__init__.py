from ..extensions import db

# Core Models
from .tenant import Tenant
from .contact import Contact, CONTACT_ROLES
from .property import Property, PROPERTY_STATUSES
from .insurance import Insurer, Policy
from .contract import Contract, CONTRACT_STATUSES, OCCUPYING_STATUSES, PRE_ACTIVE_STATUSES
from .invoice import Invoice, InvoiceCharge
from .payment import Payment, PAYMENT_METHODS
from .audit_log import AuditLog
