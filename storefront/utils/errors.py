# storefront/utils/errors.py
from flask import jsonify, current_app

from .api import api_error


class StorefrontError(Exception):
    """Base class for every failure the storefront reports to the shopper."""

    status_code = 400
    message = "Er is een fout opgetreden"

    def __init__(self, message: str | None = None, *, detail=None, data: dict | None = None):
        self.message = message or self.message
        self.detail = detail
        self.data = data or {}
        super().__init__(self.message)

    def as_data(self) -> dict:
        return dict(self.data)


class ValidationError(StorefrontError):
    status_code = 422
    message = "Ongeldige invoer"


class NotFoundError(StorefrontError):
    status_code = 404
    message = "Niet gevonden"


class AccessDenied(StorefrontError):
    status_code = 403
    message = "Geen toegang"


class BusinessRuleViolation(StorefrontError):
    status_code = 400


class RemoteCallError(StorefrontError):
    status_code = 502
    message = "De winkel is tijdelijk niet bereikbaar. Probeer het opnieuw."

    def __init__(self, detail=None, *, status: int | None = None, payload=None):
        super().__init__(detail=detail)
        self.status = status
        self.payload = payload

    def backend_message(self) -> str | None:
        if isinstance(self.payload, dict):
            return self.payload.get("message")
        return None


class PaymentError(StorefrontError):
    status_code = 402
    message = "Je betaling is mislukt. Probeer het opnieuw of kies een andere betaalmethode."


class IllegalTransition(StorefrontError):
    status_code = 409
    message = "Deze stap is nu niet mogelijk"


class RedirectToCart(StorefrontError):
    status_code = 409
    message = "Geen openstaande bestelling gevonden"

    def as_data(self) -> dict:
        return {**self.data, "redirect": "/cart"}


# ---- coupons ------------------------------------------------------------------

class CouponError(StorefrontError):
    reason = "invalid"

    def as_data(self) -> dict:
        return {**self.data, "valid": False, "reason": self.reason}


class EmptyCode(CouponError, ValidationError):
    reason = "empty_code"
    message = "Geen kortingscode opgegeven"


class CouponNotFound(CouponError, NotFoundError):
    reason = "not_found"
    message = "Ongeldige kortingscode"


class CouponExpired(CouponError, BusinessRuleViolation):
    reason = "expired"
    message = "Deze kortingscode is verlopen"


class BelowMinimum(CouponError, BusinessRuleViolation):
    reason = "below_minimum"

    def __init__(self, minimum):
        super().__init__(f"Minimaal bestelbedrag van €{minimum} vereist")


class AboveMaximum(CouponError, BusinessRuleViolation):
    reason = "above_maximum"

    def __init__(self, maximum):
        super().__init__(f"Maximaal bestelbedrag van €{maximum} overschreden")


class UsageExceeded(CouponError, BusinessRuleViolation):
    reason = "usage_exceeded"
    message = "Deze kortingscode is niet meer geldig"


class CouponValidationFailed(CouponError, RemoteCallError):
    reason = "validation_failed"
    message = "Fout bij het valideren van de kortingscode"


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e: StorefrontError):
        if isinstance(e, (RemoteCallError, PaymentError)):
            current_app.logger.error("%s: %s", type(e).__name__, e.detail)
        r = jsonify(api_error(e.message, e.as_data()))
        r.status_code = e.status_code
        return r
