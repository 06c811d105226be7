from __future__ import annotations


class NotFoundError(ValueError):
    pass


class NotAuthorizedError(ValueError):
    pass


class ConflictError(ValueError):
    pass
