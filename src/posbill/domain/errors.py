class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class PersistenceError(AppError):
    """A storage write failed; nothing from the failed unit was kept."""
