"""Cached kinetics state and the functions that refresh it.

A kinetics manager keeps one :class:`KineticsCache`. Whether any part of it
is stale is decided by comparing a :class:`StateSnapshot` of the phases with
the snapshot the cache was built from, which yields a :class:`DirtyFlags`
record. :func:`refresh` then rebuilds the stale parts, in order:

1. temperature: standard chemical potentials, thermal equilibrium
   constants and the forward rate constants of every rate kind;
2. potential: electrochemical correction of the equilibrium constants;
3. concentration: activity concentrations, and the rate constants of
   kinds that depend on the surface state.

The refresh functions never modify the cache they are given; they return a
new one. A failure part way through therefore leaves the caller's cache as
it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Tuple

import numpy as np

from surfkin.constants import FARADAY, R_GAS
from surfkin.errors import KineticsError
from surfkin.multirate import MultiRateEvaluator, RateContext
from surfkin.stoichiometry import StoichiometryManager
from surfkin.thermo.base import ThermoPhase
from surfkin.thermo.surface import SurfacePhase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirtyFlags:
    temperature: bool = False
    potential: bool = False
    concentration: bool = False

    def any(self) -> bool:
        return self.temperature or self.potential or self.concentration

    def implied(self) -> DirtyFlags:
        """A temperature change invalidates everything else, since RT appears everywhere."""
        return DirtyFlags(
            temperature=self.temperature,
            potential=self.temperature or self.potential,
            concentration=self.temperature or self.concentration,
        )


CLEAN = DirtyFlags()
ALL_DIRTY = DirtyFlags(True, True, True)


@dataclass(frozen=True)
class Mechanism:
    """The frozen, assembled parts of a kinetics manager the refresh functions read."""

    stoich: StoichiometryManager
    rates: MultiRateEvaluator
    phases: Tuple[ThermoPhase, ...]
    species_phase: np.ndarray
    charges: np.ndarray
    beta: np.ndarray
    reversible: np.ndarray
    reaction_phase: int
    surface_index: int | None = None

    @property
    def n_species(self) -> int:
        return len(self.species_phase)

    @property
    def n_reactions(self) -> int:
        return len(self.reversible)

    def stack(self, values: Iterable[np.ndarray]) -> np.ndarray:
        arrays = list(values)
        return np.concatenate(arrays) if arrays else np.zeros(0)

    def rate_context(self, snapshot: StateSnapshot) -> RateContext:
        pressure = snapshot.pressures[self.reaction_phase]
        if self.surface_index is None:
            return RateContext(snapshot.temperature, pressure)
        surface = self.phases[self.surface_index]
        assert isinstance(surface, SurfacePhase)
        return RateContext(
            temperature=snapshot.temperature,
            pressure=pressure,
            coverages=surface.coverages,
            site_density=surface.site_density,
        )


@dataclass(frozen=True)
class StateSnapshot:
    temperature: float
    temperatures: Tuple[float, ...]
    pressures: Tuple[float, ...]
    potentials: Tuple[float, ...]
    composition: Tuple[int, ...]


def take_snapshot(mechanism: Mechanism) -> StateSnapshot:
    phases = mechanism.phases
    return StateSnapshot(
        temperature=phases[mechanism.reaction_phase].temperature,
        temperatures=tuple(p.temperature for p in phases),
        pressures=tuple(p.pressure for p in phases),
        potentials=tuple(p.electric_potential for p in phases),
        composition=tuple(p.state_id for p in phases),
    )


def detect_changes(previous: StateSnapshot | None, current: StateSnapshot) -> DirtyFlags:
    if previous is None:
        return ALL_DIRTY
    return DirtyFlags(
        temperature=(
            current.temperatures != previous.temperatures
            or current.pressures != previous.pressures
        ),
        potential=current.potentials != previous.potentials,
        concentration=current.composition != previous.composition,
    ).implied()


def _empty() -> np.ndarray:
    return np.zeros(0)


@dataclass(frozen=True)
class KineticsCache:
    """Cached values, all in SI mole units.

    Attributes:
        temperature: Temperature the temperature-dependent values belong to.
        mu0: Standard chemical potentials of all kinetics species (J/mol).
        delta_mu0_kc: Reaction change of ``μ0 - RT ln C0`` (J/mol).
        kc_thermo: Equilibrium constants without the electrochemical term; 0 if irreversible.
        kf_thermal: Forward rate constants from the rate evaluators.
        delta_electric: Reaction change of ``z F φ`` (J/mol).
        kc: Equilibrium constants including the electrochemical term; 0 if irreversible.
        kf: Forward rate constants including the charge-transfer term.
        kr: Reverse rate constants ``kf / kc``; 0 if irreversible.
        activity_concentrations: Activity concentrations of all kinetics species.
    """

    temperature: float = float("nan")
    mu0: np.ndarray = field(default_factory=_empty)
    delta_mu0_kc: np.ndarray = field(default_factory=_empty)
    kc_thermo: np.ndarray = field(default_factory=_empty)
    kf_thermal: np.ndarray = field(default_factory=_empty)
    delta_electric: np.ndarray = field(default_factory=_empty)
    kc: np.ndarray = field(default_factory=_empty)
    kf: np.ndarray = field(default_factory=_empty)
    kr: np.ndarray = field(default_factory=_empty)
    activity_concentrations: np.ndarray = field(default_factory=_empty)

    @classmethod
    def empty(cls, n_species: int, n_reactions: int) -> KineticsCache:
        return cls(
            mu0=np.zeros(n_species),
            delta_mu0_kc=np.zeros(n_reactions),
            kc_thermo=np.zeros(n_reactions),
            kf_thermal=np.zeros(n_reactions),
            delta_electric=np.zeros(n_reactions),
            kc=np.zeros(n_reactions),
            kf=np.zeros(n_reactions),
            kr=np.zeros(n_reactions),
            activity_concentrations=np.zeros(n_species),
        )


def _require_finite(name: str, values: np.ndarray, temperature: float) -> None:
    bad = np.flatnonzero(~np.isfinite(values))
    if len(bad):
        raise KineticsError(
            f"Non-finite {name} for reactions {bad.tolist()} at T = {temperature} K"
        )


def equilibrium_constants(
    delta_mu0_kc: np.ndarray, delta_electric: np.ndarray, temperature: float
) -> np.ndarray:
    """``Kc = exp(-Δ(μ0 - RT ln C0) / RT) · exp(-Δ(z F φ) / RT)`` for every reaction."""
    RT = R_GAS * temperature
    with np.errstate(over="ignore"):
        return np.exp(-delta_mu0_kc / RT) * np.exp(-delta_electric / RT)


def refresh_temperature(
    mechanism: Mechanism, snapshot: StateSnapshot, cache: KineticsCache
) -> KineticsCache:
    T = snapshot.temperature
    RT = R_GAS * T
    mu0 = mechanism.stack(p.standard_chem_potentials() for p in mechanism.phases)
    log_c0 = np.log(mechanism.stack(p.standard_concentrations() for p in mechanism.phases))
    delta_mu0_kc = mechanism.stoich.reaction_delta(mu0 - RT * log_c0)

    with np.errstate(over="ignore"):
        kc_thermo = np.where(mechanism.reversible, np.exp(-delta_mu0_kc / RT), 0.0)
        kf_thermal = np.zeros(mechanism.n_reactions)
        mechanism.rates.update(mechanism.rate_context(snapshot), kf_thermal)
    _require_finite("forward rate constants", kf_thermal, T)
    if np.isnan(kc_thermo).any():
        raise KineticsError(f"Undefined equilibrium constants at T = {T} K")

    return replace(
        cache,
        temperature=T,
        mu0=mu0,
        delta_mu0_kc=delta_mu0_kc,
        kc_thermo=kc_thermo,
        kf_thermal=kf_thermal,
    )


def refresh_potential(
    mechanism: Mechanism, snapshot: StateSnapshot, cache: KineticsCache
) -> KineticsCache:
    RT = R_GAS * snapshot.temperature
    phi = np.asarray(snapshot.potentials, dtype=float)[mechanism.species_phase]
    delta_electric = mechanism.stoich.reaction_delta(mechanism.charges * FARADAY * phi)
    with np.errstate(over="ignore", invalid="ignore"):
        kc = cache.kc_thermo * np.exp(-delta_electric / RT)
    return replace(cache, delta_electric=delta_electric, kc=kc)


def refresh_concentration(
    mechanism: Mechanism,
    snapshot: StateSnapshot,
    cache: KineticsCache,
    rates_current: bool = False,
) -> KineticsCache:
    """Refresh activity concentrations.

    Unless ``rates_current`` is set (the temperature refresh just ran), the
    rate kinds that depend on the surface state are re-evaluated as well.
    """
    conc = mechanism.stack(p.activity_concentrations() for p in mechanism.phases)
    kf_thermal = cache.kf_thermal
    if not rates_current:
        kf_thermal = kf_thermal.copy()
        with np.errstate(over="ignore"):
            mechanism.rates.update(
                mechanism.rate_context(snapshot), kf_thermal, surface_only=True
            )
        _require_finite("forward rate constants", kf_thermal, snapshot.temperature)
    return replace(cache, activity_concentrations=conc, kf_thermal=kf_thermal)


def assemble_rate_constants(
    mechanism: Mechanism, snapshot: StateSnapshot, cache: KineticsCache
) -> KineticsCache:
    RT = R_GAS * snapshot.temperature
    with np.errstate(over="ignore"):
        kf = cache.kf_thermal * np.exp(-mechanism.beta * cache.delta_electric / RT)
    _require_finite("forward rate constants", kf, snapshot.temperature)
    kr = np.zeros(mechanism.n_reactions)
    rev = mechanism.reversible
    with np.errstate(divide="ignore", invalid="ignore"):
        kr[rev] = kf[rev] / cache.kc[rev]
    return replace(cache, kf=kf, kr=kr)


def refresh(
    mechanism: Mechanism,
    snapshot: StateSnapshot,
    cache: KineticsCache,
    dirty: DirtyFlags,
) -> Tuple[KineticsCache, DirtyFlags]:
    """Bring ``cache`` up to date with ``snapshot``; returns the new cache and clean flags."""
    dirty = dirty.implied()
    if not dirty.any():
        return cache, CLEAN
    if dirty.temperature:
        cache = refresh_temperature(mechanism, snapshot, cache)
    if dirty.potential:
        cache = refresh_potential(mechanism, snapshot, cache)
    if dirty.concentration:
        cache = refresh_concentration(
            mechanism, snapshot, cache, rates_current=dirty.temperature
        )
    cache = assemble_rate_constants(mechanism, snapshot, cache)
    logger.debug(
        "Refreshed kinetics cache (T=%s, phi=%s, C=%s)",
        dirty.temperature,
        dirty.potential,
        dirty.concentration,
    )
    return cache, CLEAN
