"""
Engine error taxonomy.

Every service raises one of these; the HTTP layer maps them to a status
code through a single exception handler (see tourney.main). Nothing here
depends on FastAPI so services stay transport-agnostic.
"""

from typing import Any, Dict, Optional


class TournamentEngineError(Exception):
    """Base exception for the tournament engine"""

    status_code: int = 500
    code: str = "ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(TournamentEngineError):
    """Tournament, match, team or registration does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(TournamentEngineError):
    """
    Operation is not allowed in the current state.

    Examples:
    - Adding a team to an ongoing tournament
    - Recording a result on a completed match
    - Recreating a bracket while matches are scheduled
    """

    status_code = 403
    code = "FORBIDDEN"


class InvalidError(TournamentEngineError):
    """Payload fails the operation's contract."""

    status_code = 400
    code = "INVALID"


class AlreadyRegisteredError(TournamentEngineError):
    status_code = 409
    code = "ALREADY_REGISTERED"


class AtCapacityError(TournamentEngineError):
    status_code = 409
    code = "AT_CAPACITY"


class ConflictError(TournamentEngineError):
    """Optimistic lock lost after retries, or a scheduling clash."""

    status_code = 409
    code = "CONFLICT"


class IncompleteError(TournamentEngineError):
    """A prerequisite is not met, e.g. matches without winners."""

    status_code = 409
    code = "INCOMPLETE"


class NotEnoughError(TournamentEngineError):
    status_code = 400
    code = "NOT_ENOUGH"


class DeadlineExceededError(TournamentEngineError):
    status_code = 408
    code = "TIMEOUT"


class StaleTournamentError(Exception):
    """Raised inside a transaction when the tournament version moved underneath it.

    Internal to the Store: with_transaction retries on it and converts the
    final failure into ConflictError.
    """

    def __init__(self, tournament_id: int, seen_version: int):
        self.tournament_id = tournament_id
        self.seen_version = seen_version
        super().__init__(f"Tournament {tournament_id} changed since version {seen_version}")
