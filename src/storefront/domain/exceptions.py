"""Errors raised below the HTTP layer.

These are raised by the domain model and by the collaborators behind the
repository interfaces. Resources catch them at the boundary and re-raise
the matching HTTP-facing error from ``storefront.application.errors``.
"""


class DomainException(Exception):
    """Root of every error the domain and its collaborators raise."""


class ValidationError(DomainException):
    """Input breaks a storefront rule: for example a bad quantity."""


class PersistenceError(DomainException):
    """A collaborator failed unexpectedly while loading or saving."""


class PaymentGatewayError(DomainException):
    """The payment gateway could not be reached or answered garbage."""


class CacheStoreError(DomainException):
    """The response cache backend is unavailable."""


class MalformedTemplateError(DomainException):
    """A link template references a field the record does not carry."""

    def __init__(self, template: str, field: str) -> None:
        self.template = template
        self.field = field
        super().__init__(f"Link template '{template}' requires field '{field}'")
