from __future__ import annotations


class EngineError(Exception):
    """Base failure of a collaboration operation.

    ``code`` is the stable short identifier clients switch on (``PROPOSAL_002``),
    ``status_code`` the HTTP status the request layer answers with.
    """

    status_code = 500

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class BadRequestError(EngineError):
    status_code = 400


class AlreadyDecidedError(BadRequestError):
    pass


class ForbiddenError(EngineError):
    status_code = 403


class NotFoundError(EngineError):
    status_code = 404


class ConflictError(EngineError):
    status_code = 409


class StaleProposalError(ConflictError):
    pass


class GoneError(EngineError):
    status_code = 410
