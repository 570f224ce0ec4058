"""Exceptions raised by surfkin."""

from __future__ import annotations


class KineticsError(Exception):
    """Base class for all kinetics errors."""


class InvalidReactionData(KineticsError, ValueError):
    """A reaction could not be added to a mechanism."""


class InvalidStateAccess(KineticsError, ValueError):
    """A phase was asked to take a state it cannot represent."""


class IntegrationFailure(KineticsError, RuntimeError):
    """Time integration of the surface coverages stopped before the end time."""

    def __init__(self, message: str, time: float = 0.0, steps: int = 0) -> None:
        super().__init__(message)
        self.time = time
        self.steps = steps


class ConvergenceFailure(KineticsError, RuntimeError):
    """The pseudo-steady-state surface problem did not converge."""

    def __init__(self, message: str, iterations: int = 0) -> None:
        super().__init__(message)
        self.iterations = iterations
