"""Base interface for the phases a kinetics manager reads from."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Mapping, Sequence

import numpy as np

from surfkin.constants import R_GAS, ONE_ATM, REFERENCE_TEMPERATURE, TINY
from surfkin.errors import InvalidStateAccess

if TYPE_CHECKING:
    from surfkin.models import Species


class ThermoPhase(ABC):
    """Abstract base class for phases taking part in a kinetics mechanism.

    A phase owns its temperature, pressure, electric potential and
    composition. Every change of state bumps ``state_id`` so that kinetics
    managers can tell whether their cached values are stale without
    comparing whole composition vectors.
    """

    def __init__(
        self,
        name: str,
        species: Sequence[Species],
        temperature: float = REFERENCE_TEMPERATURE,
        pressure: float = ONE_ATM,
    ) -> None:
        if not species:
            raise InvalidStateAccess(f"Phase '{name}' has no species")
        self.name = name
        self.species = tuple(species)
        self._index: Dict[str, int] = {}
        for k, sp in enumerate(self.species):
            if sp.name in self._index:
                raise InvalidStateAccess(f"Duplicate species '{sp.name}' in phase '{name}'")
            self._index[sp.name] = k
        self._temperature = 0.0
        self._pressure = 0.0
        self._electric_potential = 0.0
        self._state_id = 0
        self.temperature = temperature
        self.pressure = pressure

    def _touch(self) -> None:
        self._state_id += 1

    @property
    def state_id(self) -> int:
        """Counter incremented on every change of temperature, pressure or composition."""
        return self._state_id

    @property
    def n_species(self) -> int:
        return len(self.species)

    @property
    def species_names(self) -> list[str]:
        return [sp.name for sp in self.species]

    def species_index(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise InvalidStateAccess(f"Unknown species '{name}' in phase '{self.name}'") from None

    def has_species(self, name: str) -> bool:
        return name in self._index

    @property
    def charges(self) -> np.ndarray:
        return np.array([sp.charge for sp in self.species], dtype=float)

    @property
    def temperature(self) -> float:
        return self._temperature

    @temperature.setter
    def temperature(self, value: float) -> None:
        if not value > 0.0:
            raise InvalidStateAccess(f"Temperature must be positive, got {value}")
        self._temperature = float(value)
        self._touch()

    @property
    def pressure(self) -> float:
        return self._pressure

    @pressure.setter
    def pressure(self, value: float) -> None:
        if not value > 0.0:
            raise InvalidStateAccess(f"Pressure must be positive, got {value}")
        self._pressure = float(value)
        self._touch()

    def set_state_tp(self, temperature: float, pressure: float) -> None:
        self.temperature = temperature
        self.pressure = pressure

    @property
    def electric_potential(self) -> float:
        """Electric potential of the phase (V)."""
        return self._electric_potential

    @electric_potential.setter
    def electric_potential(self, volts: float) -> None:
        self._electric_potential = float(volts)

    @property
    def RT(self) -> float:
        return R_GAS * self._temperature

    # Reference state, evaluated from the species thermo at the current temperature.

    def gibbs_ref(self) -> np.ndarray:
        T = self._temperature
        return np.array([sp.thermo.gibbs(T) for sp in self.species])

    def enthalpy_ref(self) -> np.ndarray:
        T = self._temperature
        return np.array([sp.thermo.enthalpy(T) for sp in self.species])

    def entropy_ref(self) -> np.ndarray:
        T = self._temperature
        return np.array([sp.thermo.entropy(T) for sp in self.species])

    # Standard state. Phases whose standard state depends on pressure override these.

    def standard_chem_potentials(self) -> np.ndarray:
        return self.gibbs_ref()

    def standard_enthalpies(self) -> np.ndarray:
        return self.enthalpy_ref()

    def standard_entropies(self) -> np.ndarray:
        return self.entropy_ref()

    @abstractmethod
    def activity_concentrations(self) -> np.ndarray:
        """Generalized concentrations used in mass-action rate expressions."""

    @abstractmethod
    def standard_concentrations(self) -> np.ndarray:
        """Per-species factors relating activities to activity concentrations."""

    def standard_concentration(self, k: int = 0) -> float:
        return float(self.standard_concentrations()[k])

    def activities(self) -> np.ndarray:
        return self.activity_concentrations() / self.standard_concentrations()

    def chemical_potentials(self) -> np.ndarray:
        """Chemical potentials ``μ_k = μ°_k + RT ln a_k`` (J/mol)."""
        log_a = np.log(np.maximum(self.activities(), TINY))
        return self.standard_chem_potentials() + self.RT * log_a

    def partial_molar_enthalpies(self) -> np.ndarray:
        return self.standard_enthalpies()

    def partial_molar_entropies(self) -> np.ndarray:
        log_a = np.log(np.maximum(self.activities(), TINY))
        return self.standard_entropies() - R_GAS * log_a

    @abstractmethod
    def molar_volume(self) -> float:
        """Molar volume (m^3/mol)."""

    @abstractmethod
    def set_molar_density(self, density: float) -> None:
        """Set the molar density (mol/m^3) at fixed temperature and composition."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, species={self.species_names})"


def parse_composition(composition: str | Mapping[str, float]) -> Dict[str, float]:
    """Parse ``"A:0.6, B:0.4"`` (or pass a mapping through) into a dict."""
    if isinstance(composition, Mapping):
        return {str(k): float(v) for k, v in composition.items()}
    parsed: Dict[str, float] = {}
    for item in composition.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.rpartition(":")
        if not sep or not name.strip():
            raise InvalidStateAccess(f"Malformed composition entry '{item}'")
        parsed[name.strip()] = float(value)
    return parsed


class SolutionPhase(ThermoPhase):
    """A bulk phase whose composition is given by mole fractions."""

    def __init__(
        self,
        name: str,
        species: Sequence[Species],
        temperature: float = REFERENCE_TEMPERATURE,
        pressure: float = ONE_ATM,
        mole_fractions: Sequence[float] | Mapping[str, float] | str | None = None,
    ) -> None:
        super().__init__(name, species, temperature, pressure)
        self._x = np.zeros(self.n_species)
        self._x[0] = 1.0
        if mole_fractions is not None:
            if isinstance(mole_fractions, (str, Mapping)):
                self.set_mole_fractions_by_name(mole_fractions)
            else:
                self.set_mole_fractions(mole_fractions)

    @property
    def mole_fractions(self) -> np.ndarray:
        return self._x.copy()

    def set_mole_fractions(self, x: Sequence[float]) -> None:
        """Set mole fractions, clipping negative entries and normalizing to one."""
        x = np.clip(np.asarray(x, dtype=float), 0.0, None)
        if x.shape != (self.n_species,):
            raise InvalidStateAccess(
                f"Expected {self.n_species} mole fractions for phase '{self.name}', got {x.shape}"
            )
        total = x.sum()
        if not total > 0.0:
            raise InvalidStateAccess(f"Mole fractions of phase '{self.name}' sum to zero")
        self._x = x / total
        self._touch()

    def set_mole_fractions_by_name(self, composition: str | Mapping[str, float]) -> None:
        x = np.zeros(self.n_species)
        for name, value in parse_composition(composition).items():
            x[self.species_index(name)] = value
        self.set_mole_fractions(x)
