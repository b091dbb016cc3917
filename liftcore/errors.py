"""Typed failures raised when an operation is meaningless without its record."""

from __future__ import annotations


class LiftcoreError(Exception):
    pass


class ExerciseNotFoundError(LiftcoreError, LookupError):
    def __init__(self, exercise_id: str, session_id: str | None = None):
        self.exercise_id = exercise_id
        self.session_id = session_id
        where = f" in session {session_id}" if session_id else ""
        super().__init__(f"Exercise {exercise_id!r} not found{where}")


class SetNotFoundError(LiftcoreError, LookupError):
    def __init__(self, set_id: str, exercise_id: str | None = None):
        self.set_id = set_id
        self.exercise_id = exercise_id
        where = f" for exercise {exercise_id}" if exercise_id else ""
        super().__init__(f"Set {set_id!r} not found{where}")


class SessionStateError(LiftcoreError, ValueError):
    """Raised for a lifecycle transition the session's status does not allow."""


class AdvisoryError(LiftcoreError, RuntimeError):
    """The advisory service failed, timed out, or returned an unusable payload."""
