"""Errors raised by the catalogue and purchase services.

Services translate ORM errors into these at their boundary; the REST layer
maps them onto status codes in `api.exceptions`.
"""


class CatalogError(Exception):
    """Base class for catalogue service errors."""


class NotFoundError(CatalogError):
    """A referenced course, version, chapter or purchase does not exist."""


class ConstraintViolation(CatalogError):
    """The requested change would break a data invariant."""


class InvalidTransition(ConstraintViolation):
    """A purchase status change not allowed from its current status."""


class PersistenceFailure(CatalogError):
    """The database rejected a write or is unavailable."""
