class TollPricingError(Exception):
    """Base exception for toll pricing errors."""


class ExternalServiceError(TollPricingError):
    """Raised when an upstream source request fails."""


class InvalidCoordinateError(TollPricingError):
    """Raised when an ingested coordinate is malformed or out of range."""


class UnresolvedReferenceError(TollPricingError):
    """Raised when a plaza value has no matching toll point."""


class BatchDecodeError(TollPricingError):
    """Raised when the top-level input of a batch cannot be decoded."""
