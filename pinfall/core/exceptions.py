"""
Domain exceptions raised by services and rendered by the API exception handler
"""
from typing import Any, Dict, Optional


class PinfallError(Exception):
    """Base class for errors that map onto a specific HTTP response"""
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(PinfallError):
    """Malformed or out-of-range input. Never mutates state."""
    status_code = 400


class BusinessRuleViolation(PinfallError):
    """A tournament rule rejected the request"""
    status_code = 400


class SquadFullError(BusinessRuleViolation):
    def __init__(self, squad_name: str):
        super().__init__(f'Squad "{squad_name}" is full. Please select different squads.')
        self.squad_name = squad_name


class TournamentFullError(BusinessRuleViolation):
    def __init__(self):
        super().__init__("Tournament is full", extra={"waitlist_available": True})


class DuplicateRegistrationError(BusinessRuleViolation):
    def __init__(self):
        super().__init__("You have already registered for this tournament")


class NotFoundError(PinfallError):
    status_code = 404


class AuthorizationError(PinfallError):
    status_code = 403
