"""Lattice (constant molar density) bulk phase."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

from surfkin.constants import ONE_ATM, REFERENCE_TEMPERATURE
from surfkin.errors import InvalidStateAccess
from surfkin.thermo.base import SolutionPhase

if TYPE_CHECKING:
    from surfkin.models import Species


class LatticePhase(SolutionPhase):
    """Incompressible ideal solution on a lattice of fixed molar density.

    Used for electrodes and electrolytes: activity concentrations are
    ``X_k n`` with ``n`` the molar density, and the standard state does not
    depend on pressure.
    """

    def __init__(
        self,
        name: str,
        species: Sequence[Species],
        molar_density: float,
        temperature: float = REFERENCE_TEMPERATURE,
        pressure: float = ONE_ATM,
        mole_fractions: Sequence[float] | Mapping[str, float] | str | None = None,
    ) -> None:
        self._density = 0.0
        super().__init__(name, species, temperature, pressure, mole_fractions)
        self.set_molar_density(molar_density)

    def molar_density(self) -> float:
        return self._density

    def molar_volume(self) -> float:
        return 1.0 / self._density

    def set_molar_density(self, density: float) -> None:
        if not density > 0.0:
            raise InvalidStateAccess(f"Molar density must be positive, got {density}")
        self._density = float(density)
        self._touch()

    def activity_concentrations(self) -> np.ndarray:
        return self._x * self._density

    def standard_concentrations(self) -> np.ndarray:
        return np.full(self.n_species, self._density)
