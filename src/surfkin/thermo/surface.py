"""Ideal surface phase."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

from surfkin.constants import ONE_ATM, REFERENCE_TEMPERATURE
from surfkin.errors import InvalidStateAccess
from surfkin.thermo.base import ThermoPhase, parse_composition

if TYPE_CHECKING:
    from surfkin.models import Species


class SurfacePhase(ThermoPhase):
    """A surface made of equivalent sites, occupied by ideal adsorbates.

    The state of the surface is the vector of coverages (site fractions)
    ``θ_k``. A species may occupy more than one site (``Species.size``).

    Activity concentrations:   ``C_k = θ_k n0 / s_k``
    Standard concentrations:   ``C0_k = n0 / s_k``

    where ``n0`` is the site density (mol/m^2) and ``s_k`` the species size.
    The surface has no volume; pressure is carried but has no effect.
    """

    def __init__(
        self,
        name: str,
        species: Sequence[Species],
        site_density: float,
        temperature: float = REFERENCE_TEMPERATURE,
        pressure: float = ONE_ATM,
        coverages: Sequence[float] | Mapping[str, float] | str | None = None,
    ) -> None:
        super().__init__(name, species, temperature, pressure)
        self._sizes = np.array([sp.size for sp in self.species], dtype=float)
        if np.any(self._sizes <= 0.0):
            raise InvalidStateAccess(f"Species sizes in phase '{name}' must be positive")
        self._site_density = 0.0
        self.site_density = site_density
        self._theta = np.zeros(self.n_species)
        self._theta[0] = 1.0
        if coverages is not None:
            if isinstance(coverages, (str, Mapping)):
                self.set_coverages_by_name(coverages)
            else:
                self.set_coverages(coverages)

    @property
    def site_density(self) -> float:
        """Site density (mol/m^2)."""
        return self._site_density

    @site_density.setter
    def site_density(self, n0: float) -> None:
        if not n0 > 0.0:
            raise InvalidStateAccess(f"Site density must be positive, got {n0}")
        self._site_density = float(n0)
        self._touch()

    @property
    def sizes(self) -> np.ndarray:
        return self._sizes.copy()

    def size(self, k: int) -> float:
        return float(self._sizes[k])

    @property
    def coverages(self) -> np.ndarray:
        return self._theta.copy()

    def _check_shape(self, theta: np.ndarray) -> None:
        if theta.shape != (self.n_species,):
            raise InvalidStateAccess(
                f"Expected {self.n_species} coverages for phase '{self.name}', got {theta.shape}"
            )

    def set_coverages(self, theta: Sequence[float]) -> None:
        """Set coverages, clipping negative entries and normalizing them to sum to one."""
        theta = np.clip(np.asarray(theta, dtype=float), 0.0, None)
        self._check_shape(theta)
        total = theta.sum()
        if not total > 0.0:
            raise InvalidStateAccess(f"Coverages of phase '{self.name}' sum to zero")
        self._theta = theta / total
        self._touch()

    def set_coverages_no_norm(self, theta: Sequence[float]) -> None:
        """Set coverages as given. Used by integrators for intermediate states."""
        theta = np.array(theta, dtype=float)
        self._check_shape(theta)
        self._theta = theta
        self._touch()

    def set_coverages_by_name(self, coverages: str | Mapping[str, float]) -> None:
        theta = np.zeros(self.n_species)
        for name, value in parse_composition(coverages).items():
            theta[self.species_index(name)] = value
        self.set_coverages(theta)

    def activity_concentrations(self) -> np.ndarray:
        return self._theta * self._site_density / self._sizes

    def standard_concentrations(self) -> np.ndarray:
        return self._site_density / self._sizes

    def molar_volume(self) -> float:
        return 0.0

    def set_molar_density(self, density: float) -> None:
        if density != 0.0:
            raise InvalidStateAccess("The volume of an interface is zero")
