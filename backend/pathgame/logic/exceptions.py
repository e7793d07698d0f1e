"""Typed domain exceptions for puzzle rule violations.

Rejected moves are not exceptions: attempt_move reports them as a
MoveRejection value. The classes here cover caller contract violations
(illegal phase transitions) and whole-path validation at the service
boundary, where the HTTP layer converts them to error responses.
"""


class PuzzleRuleError(Exception):
    """Base exception for puzzle rule violations."""


class InvalidTransitionError(PuzzleRuleError):
    """Session operation is not valid in the session's current phase."""


class InvalidPathError(PuzzleRuleError):
    """A submitted path breaks the movement rules.

    Attributes:
        step: Index of the first offending position in the submitted path.
        reason: Machine-readable reason (a MoveRejection value or "bad_start").

    """

    def __init__(self, *, step: int, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"invalid path at step {step}: {reason}")


class SolveCancelledError(Exception):
    """The optimal-path search was cancelled before it finished."""
