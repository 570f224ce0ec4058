"""Surface coverage time integration and pseudo-steady-state solution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Tuple

import numpy as np
from scipy.integrate import BDF

from surfkin.errors import (
    ConvergenceFailure,
    IntegrationFailure,
    InvalidStateAccess,
    KineticsError,
)

if TYPE_CHECKING:
    from surfkin.interface import InterfaceKinetics

logger = logging.getLogger(__name__)


class SteadyStateMethod(Enum):
    AUTO = "auto"
    DIRECT = "direct"
    INITIALIZE = "initialize"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class NewtonSettings:
    """Settings of the damped Newton iteration used for the pseudo-steady state.

    Attributes:
        max_iterations: Iteration ceiling.
        rtol: Relative tolerance on coverage updates.
        atol: Absolute tolerance on coverage updates.
        approach: Largest fraction of the distance to zero a positive
            coverage may move in one iteration.
        perturbation: Relative perturbation for the finite-difference Jacobian.
        min_perturbation: Lower bound on the absolute perturbation.
    """

    max_iterations: int = 100
    rtol: float = 1e-7
    atol: float = 1e-14
    approach: float = 0.8
    perturbation: float = 1e-7
    min_perturbation: float = 1e-12


class SurfaceCoverageSolver:
    """Drives the coverages of a kinetics manager's surface phase.

    The bulk phases are held at their current state. Coverage rates are
    ``dθ_k/dt = ẇ_k s_k / n0``.
    """

    def __init__(
        self, kinetics: InterfaceKinetics, settings: NewtonSettings | None = None
    ) -> None:
        surface = kinetics.surface_phase
        if surface is None:
            raise InvalidStateAccess("The kinetics manager has no surface phase")
        self.kinetics = kinetics
        self.surface = surface
        self.settings = settings or NewtonSettings()
        self._slice = kinetics.species_slice(kinetics.surface_phase_index)

    def coverage_rates(self, theta: np.ndarray) -> np.ndarray:
        """Time derivatives of the coverages at ``theta`` (not normalized)."""
        self.surface.set_coverages_no_norm(theta)
        wdot = self.kinetics.net_production_rates()[self._slice]
        return wdot * self.surface.sizes / self.surface.site_density

    # -- time integration --------------------------------------------------

    def advance(
        self,
        dt: float,
        rtol: float = 1e-7,
        atol: float = 1e-14,
        max_step_size: float = 0.0,
        max_steps: int = 20000,
        max_err_test_fails: int = 7,
    ) -> None:
        """Integrate the coverages over ``dt`` seconds with a BDF method.

        Raises:
            IntegrationFailure: If more than ``max_steps`` steps are needed,
                more than ``max_err_test_fails`` consecutive steps had to be
                shrunk, or the stepper fails. The coverages are left at the
                last successful step.
        """
        if dt < 0.0:
            raise InvalidStateAccess(f"Cannot integrate backwards in time (dt = {dt})")
        theta0 = self.surface.coverages
        if dt == 0.0:
            return
        max_step = max_step_size if max_step_size > 0.0 else np.inf

        last = theta0
        try:
            stepper = BDF(
                lambda t, y: self.coverage_rates(y),
                0.0,
                theta0,
                dt,
                max_step=max_step,
                rtol=rtol,
                atol=atol,
            )
            steps = reduced = 0
            while stepper.status == "running":
                if steps >= max_steps:
                    raise IntegrationFailure(
                        f"Coverage integration exceeded {max_steps} steps at t = {stepper.t:.6g} s",
                        time=stepper.t,
                        steps=steps,
                    )
                attempted = min(stepper.h_abs, max_step, dt - stepper.t)
                message = stepper.step()
                if stepper.status == "failed":
                    raise IntegrationFailure(
                        f"Coverage integration failed at t = {stepper.t:.6g} s: {message}",
                        time=stepper.t,
                        steps=steps,
                    )
                steps += 1
                last = stepper.y.copy()
                if stepper.step_size < attempted * (1.0 - 1e-10):
                    reduced += 1
                else:
                    reduced = 0
                if reduced > max_err_test_fails:
                    raise IntegrationFailure(
                        f"Coverage integration shrank {reduced} consecutive steps "
                        f"at t = {stepper.t:.6g} s",
                        time=stepper.t,
                        steps=steps,
                    )
            logger.debug("Advanced coverages by %g s in %d steps", dt, steps)
        finally:
            self.surface.set_coverages(last)

    # -- pseudo-steady state -------------------------------------------------

    def _residual(self, theta: np.ndarray, pivot: int) -> np.ndarray:
        f = self.coverage_rates(theta)
        f[pivot] = theta.sum() - 1.0
        return f

    def _jacobian(self, theta: np.ndarray, f0: np.ndarray, pivot: int) -> np.ndarray:
        s = self.settings
        n = len(theta)
        jac = np.empty((n, n))
        for j in range(n):
            delta = max(s.perturbation * abs(theta[j]), s.min_perturbation)
            perturbed = theta.copy()
            perturbed[j] += delta
            jac[:, j] = (self._residual(perturbed, pivot) - f0) / delta
        return jac

    def _damping(self, theta: np.ndarray, dx: np.ndarray) -> float:
        """Largest step fraction keeping positive coverages away from zero."""
        approach = self.settings.approach
        limited = (theta > 0.0) & (dx < -approach * theta)
        if not limited.any():
            return 1.0
        return float(np.min(approach * theta[limited] / -dx[limited]))

    def _newton(self, theta: np.ndarray) -> Tuple[np.ndarray, int]:
        s = self.settings
        theta = theta.copy()
        for iteration in range(1, s.max_iterations + 1):
            pivot = int(np.argmax(theta))
            f = self._residual(theta, pivot)
            if not np.all(np.isfinite(f)):
                raise ConvergenceFailure(
                    f"Non-finite coverage rates at Newton iteration {iteration}", iteration
                )
            jac = self._jacobian(theta, f, pivot)
            try:
                dx = -np.linalg.solve(jac, f)
            except np.linalg.LinAlgError as err:
                raise ConvergenceFailure(
                    f"Singular Jacobian at Newton iteration {iteration}", iteration
                ) from err

            norm = float(np.sqrt(np.mean((dx / (s.atol + s.rtol * np.abs(theta))) ** 2)))
            alpha = self._damping(theta, dx)
            theta = np.maximum(theta + alpha * dx, 0.0)
            logger.debug(
                "Newton iteration %d: pivot %d, damping %.3g, update norm %.3g",
                iteration,
                pivot,
                alpha,
                norm,
            )
            if norm <= 1.0:
                return theta, iteration
        raise ConvergenceFailure(
            f"Surface Newton iteration did not converge in {s.max_iterations} iterations",
            s.max_iterations,
        )

    def _solve_direct(self) -> None:
        theta, iterations = self._newton(self.surface.coverages)
        self.surface.set_coverages(theta)
        logger.info("Pseudo-steady surface state found in %d Newton iterations", iterations)

    def _pseudo_transient(self, time_scale: float) -> None:
        try:
            self.advance(time_scale)
        except IntegrationFailure as err:
            raise ConvergenceFailure(
                f"Pseudo-transient integration failed: {err}", err.steps
            ) from err

    def solve_pseudo_steady_state(
        self,
        method: SteadyStateMethod = SteadyStateMethod.AUTO,
        time_scale: float = 1.0,
    ) -> None:
        """Solve for the coverages at which every surface species is at steady state.

        ``AUTO`` tries Newton's method first and falls back to integrating
        over ``time_scale`` seconds before trying again. ``INITIALIZE``
        always integrates first; ``TRANSIENT`` only integrates.

        Raises:
            ConvergenceFailure: If no solution was found. The coverages are
                restored to their values on entry.
        """
        method = SteadyStateMethod(method)
        initial = self.surface.coverages
        try:
            if method is SteadyStateMethod.TRANSIENT:
                self._pseudo_transient(time_scale)
                logger.info("Integrated surface coverages over %g s", time_scale)
                return
            if method is SteadyStateMethod.INITIALIZE:
                self._pseudo_transient(time_scale)
                self._solve_direct()
                return
            try:
                self._solve_direct()
            except ConvergenceFailure as err:
                if method is SteadyStateMethod.DIRECT:
                    raise
                logger.warning(
                    "Direct surface solve failed (%s); integrating over %g s and retrying",
                    err,
                    time_scale,
                )
                self.surface.set_coverages(initial)
                self._pseudo_transient(time_scale)
                self._solve_direct()
        except KineticsError:
            self.surface.set_coverages(initial)
            raise
