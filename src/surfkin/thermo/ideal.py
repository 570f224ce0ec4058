"""Ideal gas phase."""

from __future__ import annotations

import numpy as np

from surfkin.constants import R_GAS, REFERENCE_PRESSURE
from surfkin.errors import InvalidStateAccess
from surfkin.thermo.base import SolutionPhase


class IdealGasPhase(SolutionPhase):
    """Ideal gas mixture.

    Activity concentrations are molar concentrations ``X_k P / RT`` and the
    standard concentration is ``P / RT`` for every species. The standard
    state is the pure gas at the phase pressure, so standard chemical
    potentials carry the ``RT ln(P / p_ref)`` term.
    """

    reference_pressure = REFERENCE_PRESSURE

    def molar_density(self) -> float:
        return self.pressure / self.RT

    def molar_volume(self) -> float:
        return self.RT / self.pressure

    def set_molar_density(self, density: float) -> None:
        if not density > 0.0:
            raise InvalidStateAccess(f"Molar density must be positive, got {density}")
        self.pressure = density * self.RT

    def activity_concentrations(self) -> np.ndarray:
        return self._x * self.molar_density()

    def standard_concentrations(self) -> np.ndarray:
        return np.full(self.n_species, self.molar_density())

    def standard_chem_potentials(self) -> np.ndarray:
        return self.gibbs_ref() + self.RT * np.log(self.pressure / self.reference_pressure)

    def standard_entropies(self) -> np.ndarray:
        return self.entropy_ref() - R_GAS * np.log(self.pressure / self.reference_pressure)
