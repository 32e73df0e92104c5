from __future__ import annotations
from typing import Optional


class RegistrationError(Exception): ...
class NotFound(RegistrationError): ...
class Closed(RegistrationError): ...
class Unauthorized(RegistrationError): ...
class InvalidInput(RegistrationError): ...


class Duplicate(RegistrationError):
    """The registrant already holds a signup for this session."""

    def __init__(self, message: str = "already registered", *, existing_status: Optional[str] = None,
                 signup_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.existing_status = existing_status
        self.signup_id = signup_id


class ConflictRetryExhausted(RegistrationError):
    """The store could not serialize the transaction within the retry budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"transaction conflict persisted after {attempts} attempts")
        self.attempts = attempts
