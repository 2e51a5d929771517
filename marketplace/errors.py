"""
Domain errors. Each maps to one HTTP status; main.py renders them as
``{"detail": message}``.
"""


class MarketplaceError(Exception):
    """Base exception for API errors"""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class BadRequest(MarketplaceError):
    """Missing or invalid input"""
    status_code = 400


class Unauthorized(MarketplaceError):
    """Missing/invalid/expired token or bad credentials"""
    status_code = 401


class Forbidden(MarketplaceError):
    """Authenticated but the role does not allow the operation"""
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class Conflict(MarketplaceError):
    status_code = 409


class UpstreamFailure(MarketplaceError):
    """Object store or payment processor call failed"""
    status_code = 502


class SignatureInvalid(MarketplaceError):
    """Webhook payload failed verification"""
    status_code = 400
