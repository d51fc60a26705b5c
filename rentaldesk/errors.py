# rentaldesk/errors.py
import logging

from flask import jsonify, request

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """Base class for every recoverable failure raised by the billing engine.

    Each subclass carries the HTTP status and the machine-readable ``code``
    the API reports, so route handlers never have to translate them by hand.
    """

    status_code = 400
    code = "billing_error"
    default_message = "Billing operation failed"

    def __init__(self, message=None, **details):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        payload = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = {k: str(v) for k, v in self.details.items()}
        return payload


# ---------------- Validation ----------------
class ValidationError(BillingError):
    code = "validation_error"
    default_message = "Invalid input"


class InvalidChargeError(ValidationError):
    code = "invalid_charge"
    default_message = "Invoice charges are invalid"


class InvalidAmountError(ValidationError):
    code = "invalid_amount"
    default_message = "Amount must be greater than zero"


class InvalidPolicyError(ValidationError):
    code = "invalid_late_fee_policy"
    default_message = "Late fee policy is invalid"


# ---------------- Business rules ----------------
class OverpaymentError(BillingError):
    status_code = 409
    code = "overpayment"
    default_message = "Payment exceeds the invoice balance due"


class OverlappingContractError(BillingError):
    status_code = 409
    code = "overlapping_contract"
    default_message = "Property already has a contract covering these dates"


class ContractAlreadyActiveError(BillingError):
    status_code = 409
    code = "contract_already_active"
    default_message = "Contract has already been activated"


class ConcurrencyConflictError(BillingError):
    status_code = 409
    code = "concurrency_conflict"
    default_message = "The record was modified concurrently, retry the operation"


class DuplicateRecordError(BillingError):
    status_code = 409
    code = "duplicate_record"
    default_message = "A record with the same unique number already exists"


# ---------------- Missing entities ----------------
class NotFoundError(BillingError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ContractNotFoundError(NotFoundError):
    code = "contract_not_found"
    default_message = "Contract not found"


class InvoiceNotFoundError(NotFoundError):
    code = "invoice_not_found"
    default_message = "Invoice not found"


class PaymentNotFoundError(NotFoundError):
    code = "payment_not_found"
    default_message = "Payment not found"


def register_error_handlers(app):
    @app.errorhandler(BillingError)
    def billing_error(e):
        if e.status_code >= 500:
            logger.error("Billing failure on %s: %s", request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def bad_request(e):
        msg = getattr(e, "description", "Bad Request")
        return jsonify(error="bad_request", message=msg), 400

    @app.errorhandler(401)
    def unauthorized(e): return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def forbidden(e): return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def not_found(e): return jsonify(error="not_found", path=request.path), 404

    @app.errorhandler(405)
    def method_not_allowed(e): return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(500)
    def server_error(e):
        app.logger.exception("Unhandled exception: %s", e)
        return jsonify(error="server_error"), 500
