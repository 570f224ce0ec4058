"""Heterogeneous kinetics manager."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Mapping, Tuple

import numpy as np

from surfkin.cache import (
    ALL_DIRTY,
    KineticsCache,
    Mechanism,
    StateSnapshot,
    detect_changes,
    equilibrium_constants,
    refresh,
    take_snapshot,
)
from surfkin.constants import FARADAY
from surfkin.errors import InvalidReactionData, InvalidStateAccess
from surfkin.kinetics import RateExpression, StickingRate
from surfkin.linkage import PhaseLinkage, PhaseStability, apply_phase_overrides
from surfkin.models import Reaction, Species
from surfkin.multirate import MultiRateEvaluator, RateBinding, RateRegistry
from surfkin.stoichiometry import StoichiometryManager
from surfkin.thermo.base import ThermoPhase
from surfkin.thermo.surface import SurfacePhase

if TYPE_CHECKING:
    from surfkin.surface_solver import NewtonSettings, SteadyStateMethod, SurfaceCoverageSolver

logger = logging.getLogger(__name__)


class InterfaceKinetics:
    """Kinetics of reactions on a surface between one or more bulk phases.

    Kinetics species are numbered phase by phase in the order the phases
    were added. The surface phase, if any, is the reacting phase: its
    temperature and pressure are the ones rate constants are evaluated at.

    Values derived from the thermodynamic state are cached and refreshed
    lazily on the next query after the phases change. Every query returns a
    fresh array.
    """

    def __init__(self, registry: RateRegistry | None = None) -> None:
        self.phases: List[ThermoPhase] = []
        self.reactions: List[Reaction] = []
        self._offsets: List[int] = []
        self._species_phase: List[int] = []
        self._species_names: List[str] = []
        self._name_index: Dict[str, List[int]] = {}
        self._beta: List[float] = []
        self._surface_index: int | None = None

        self._stoich = StoichiometryManager()
        self._rates = MultiRateEvaluator(registry)
        self._linkage = PhaseLinkage()

        self._mechanism: Mechanism | None = None
        self._cache: KineticsCache | None = None
        self._snapshot: StateSnapshot | None = None
        self._cache_version = 0
        self._rop: Tuple[np.ndarray, np.ndarray] | None = None
        self._rop_key: Tuple[int, int] | None = None
        self._solver: SurfaceCoverageSolver | None = None

    # -- sizes and lookup ------------------------------------------------

    @property
    def n_phases(self) -> int:
        return len(self.phases)

    @property
    def n_species(self) -> int:
        return len(self._species_phase)

    @property
    def n_reactions(self) -> int:
        return len(self.reactions)

    @property
    def stoichiometry(self) -> StoichiometryManager:
        return self._stoich

    @property
    def rates(self) -> MultiRateEvaluator:
        return self._rates

    @property
    def linkage(self) -> PhaseLinkage:
        return self._linkage

    @property
    def surface_phase_index(self) -> int | None:
        return self._surface_index

    @property
    def surface_phase(self) -> SurfacePhase | None:
        if self._surface_index is None:
            return None
        return self.phases[self._surface_index]

    @property
    def reaction_phase_index(self) -> int:
        return self._surface_index if self._surface_index is not None else 0

    def species_offset(self, phase: int) -> int:
        """Kinetics index of the first species of ``phase``."""
        return self._offsets[phase]

    def species_slice(self, phase: int) -> slice:
        start = self._offsets[phase]
        return slice(start, start + self.phases[phase].n_species)

    def species_name(self, k: int) -> str:
        return self._species_names[k]

    def phase_of_species(self, k: int) -> int:
        return self._species_phase[k]

    def kinetics_species_index(self, name: str, phase: int | None = None) -> int:
        """Kinetics index of a species, optionally restricted to one phase.

        Raises:
            InvalidStateAccess: If the name is unknown, or is found in more
                than one phase and no phase was given.
        """
        if phase is not None:
            return self._offsets[phase] + self.phases[phase].species_index(name)
        candidates = self._name_index.get(name, [])
        if not candidates:
            raise InvalidStateAccess(f"Unknown species '{name}'")
        if len(candidates) > 1:
            phases = [self.phases[self._species_phase[k]].name for k in candidates]
            raise InvalidStateAccess(f"Species '{name}' is ambiguous; found in phases {phases}")
        return candidates[0]

    def _species(self, k: int) -> Species:
        phase = self._species_phase[k]
        return self.phases[phase].species[k - self._offsets[phase]]

    # -- construction ----------------------------------------------------

    def add_phase(self, phase: ThermoPhase) -> int:
        if self.reactions:
            raise InvalidReactionData("Phases must be added before reactions")
        index = self.n_phases
        if isinstance(phase, SurfacePhase):
            if self._surface_index is not None:
                raise InvalidReactionData(
                    f"Only one surface phase is supported; '{self.surface_phase.name}' already added"
                )
            self._surface_index = index
        self._linkage.add_phase()
        self._offsets.append(self.n_species)
        for name in phase.species_names:
            self._name_index.setdefault(name, []).append(self.n_species)
            self._species_names.append(name)
            self._species_phase.append(index)
        self.phases.append(phase)
        return index

    def _resolve(self, i: int, terms: Mapping[str, float], what: str) -> Dict[int, float]:
        resolved: Dict[int, float] = {}
        for name, value in terms.items():
            try:
                k = self.kinetics_species_index(name)
            except InvalidStateAccess as err:
                raise InvalidReactionData(f"Reaction {i}: {what} {err}") from None
            resolved[k] = resolved.get(k, 0.0) + float(value)
        return resolved

    def _binding(
        self,
        i: int,
        rate: RateExpression,
        reactants: Dict[int, float],
        orders: Dict[int, float],
    ) -> RateBinding:
        surface = self.surface_phase
        if surface is None:
            if isinstance(rate, StickingRate):
                raise InvalidReactionData(f"Reaction {i}: sticking reactions need a surface phase")
            return RateBinding()

        coverage_indices = {name: k for k, name in enumerate(surface.species_names)}
        if not isinstance(rate, StickingRate):
            return RateBinding(coverage_indices=coverage_indices)

        effective = dict(reactants)
        effective.update(orders)
        on_surface = [k for k in effective if self._species_phase[k] == self._surface_index]
        surface_order = sum(effective[k] for k in on_surface)

        bulk = [k for k in reactants if self._species_phase[k] != self._surface_index]
        if rate.sticking_species is not None:
            k = self._resolve(i, {rate.sticking_species: 1.0}, "sticking species").popitem()[0]
            if k not in bulk:
                raise InvalidReactionData(
                    f"Reaction {i}: sticking species '{rate.sticking_species}' "
                    "is not a non-surface reactant"
                )
        elif len(bulk) != 1:
            raise InvalidReactionData(
                f"Reaction {i}: sticking reactions need exactly one non-surface reactant, "
                f"found {len(bulk)}"
            )
        else:
            k = bulk[0]
        return RateBinding(
            surface_order=surface_order,
            sticking_molar_mass=self._species(k).molar_mass,
            coverage_indices=coverage_indices,
        )

    def add_reaction(self, reaction: Reaction) -> int:
        """Add a reaction and return its index.

        Raises:
            InvalidReactionData: If a species is unknown, the rate expression
                cannot be evaluated, or rates have already been evaluated.
        """
        i = self.n_reactions
        if self._stoich.frozen:
            raise InvalidReactionData(
                f"Cannot add reaction {i}: the mechanism is frozen once rates have been evaluated"
            )
        if not self.phases:
            raise InvalidReactionData("Add phases before adding reactions")

        reactants = self._resolve(i, reaction.reactants, "reactant")
        products = self._resolve(i, reaction.products, "product")
        orders = self._resolve(i, reaction.orders, "order")
        for side, terms in (("reactant", reactants), ("product", products)):
            for k, n in terms.items():
                if not n > 0.0 or not np.isfinite(n):
                    raise InvalidReactionData(
                        f"Reaction {i}: {side} coefficient {n} of species "
                        f"'{self.species_name(k)}' must be positive"
                    )
        binding = self._binding(i, reaction.rate, reactants, orders)
        self._rates.check(i, reaction.rate, binding)

        integral = all(float(c).is_integer() for c in (*reactants.values(), *products.values()))
        if integral and not orders:
            self._stoich.add(
                i,
                [k for k, n in reactants.items() for _ in range(int(n))],
                [k for k, n in products.items() for _ in range(int(n))],
                reaction.reversible,
            )
        else:
            self._stoich.add_fractional(i, reactants, products, reaction.reversible, orders)
        self._rates.add(i, reaction.rate, binding)
        self._linkage.add_reaction(
            {self._species_phase[k] for k in reactants},
            {self._species_phase[k] for k in products},
        )
        self._beta.append(float(reaction.beta))
        self.reactions.append(reaction)
        logger.debug("Added reaction %d: %s (%s)", i, reaction.equation, reaction.rate.kind)
        return i

    def modify_reaction(self, i: int, rate: RateExpression) -> None:
        """Replace the rate parameters of reaction ``i``; the rate kind must not change."""
        old = self.reactions[i]
        reactants = self._resolve(i, old.reactants, "reactant")
        orders = self._resolve(i, old.orders, "order")
        binding = self._binding(i, rate, reactants, orders)
        self._rates.replace(i, rate, binding)
        self.reactions[i] = Reaction(
            reactants=old.reactants,
            products=old.products,
            rate=rate,
            reversible=old.reversible,
            orders=old.orders,
            beta=old.beta,
            name=old.name,
        )
        self._snapshot = None

    # -- phase state -----------------------------------------------------

    def set_phase_existence(self, phase: int, exists: bool) -> None:
        self._linkage.set_existence(phase, exists)

    def set_phase_stability(self, phase: int, stable: bool) -> None:
        self._linkage.set_stability(phase, stable)

    def phase_existence(self, phase: int) -> bool:
        return self._linkage.exists(phase)

    def phase_stability(self, phase: int) -> PhaseStability:
        return self._linkage.stability(phase)

    def set_electric_potential(self, phase: int, volts: float) -> None:
        self.phases[phase].electric_potential = volts

    # -- cache -----------------------------------------------------------

    def _mechanism_data(self) -> Mechanism:
        if self._mechanism is None:
            self._stoich.freeze()
            charges = [sp.charge for phase in self.phases for sp in phase.species]
            self._mechanism = Mechanism(
                stoich=self._stoich,
                rates=self._rates,
                phases=tuple(self.phases),
                species_phase=np.array(self._species_phase, dtype=np.intp),
                charges=np.array(charges, dtype=float),
                beta=np.array(self._beta, dtype=float),
                reversible=self._stoich.reversible_mask,
                reaction_phase=self.reaction_phase_index,
                surface_index=self._surface_index,
            )
        return self._mechanism

    def _update(self) -> KineticsCache:
        mechanism = self._mechanism_data()
        snapshot = take_snapshot(mechanism)
        if self._cache is None:
            cache = KineticsCache.empty(mechanism.n_species, mechanism.n_reactions)
            dirty = ALL_DIRTY
        else:
            cache = self._cache
            dirty = detect_changes(self._snapshot, snapshot)
        if not dirty.any():
            return cache
        cache, _ = refresh(mechanism, snapshot, cache, dirty)
        self._cache, self._snapshot = cache, snapshot
        self._cache_version += 1
        return cache

    def _rates_of_progress(self) -> Tuple[np.ndarray, np.ndarray]:
        cache = self._update()
        key = (self._cache_version, self._linkage.version)
        if self._rop is None or self._rop_key != key:
            ropf = self._stoich.multiply_reactants(cache.activity_concentrations, cache.kf.copy())
            ropr = self._stoich.multiply_rev_products(
                cache.activity_concentrations, cache.kr.copy()
            )
            self._rop = apply_phase_overrides(self._linkage, ropf, ropr)
            self._rop_key = key
        return self._rop

    # -- rate constants --------------------------------------------------

    def fwd_rate_constants(self) -> np.ndarray:
        return self._update().kf.copy()

    def rev_rate_constants(self, include_irreversible: bool = False) -> np.ndarray:
        """Reverse rate constants; zero for irreversible reactions unless asked for."""
        cache = self._update()
        kr = cache.kr.copy()
        if include_irreversible:
            irreversible = ~self._mechanism_data().reversible
            kc = self.equilibrium_constants()
            with np.errstate(divide="ignore", invalid="ignore"):
                kr[irreversible] = cache.kf[irreversible] / kc[irreversible]
        return kr

    def equilibrium_constants(self) -> np.ndarray:
        """Concentration-based equilibrium constants of all reactions, including
        the electrochemical contribution."""
        cache = self._update()
        return equilibrium_constants(cache.delta_mu0_kc, cache.delta_electric, cache.temperature)

    def activity_concentrations(self) -> np.ndarray:
        return self._update().activity_concentrations.copy()

    # -- rates of progress and species rates -------------------------------

    def fwd_rates_of_progress(self) -> np.ndarray:
        return self._rates_of_progress()[0].copy()

    def rev_rates_of_progress(self) -> np.ndarray:
        return self._rates_of_progress()[1].copy()

    def net_rates_of_progress(self) -> np.ndarray:
        ropf, ropr = self._rates_of_progress()
        return ropf - ropr

    def creation_rates(self) -> np.ndarray:
        ropf, ropr = self._rates_of_progress()
        return self._stoich.creation_rates(self.n_species, ropf, ropr)

    def destruction_rates(self) -> np.ndarray:
        ropf, ropr = self._rates_of_progress()
        return self._stoich.destruction_rates(self.n_species, ropf, ropr)

    def net_production_rates(self) -> np.ndarray:
        return self._stoich.net_production_rates(self.n_species, self.net_rates_of_progress())

    def interface_current(self, phase: int) -> float:
        """Current (A/m^2) carried into ``phase`` by charged species produced there."""
        sl = self.species_slice(phase)
        wdot = self.net_production_rates()[sl]
        return float(FARADAY * np.dot(wdot, self.phases[phase].charges))

    # -- thermodynamic reaction properties ---------------------------------

    def _stack(self, method: str) -> np.ndarray:
        return np.concatenate([getattr(phase, method)() for phase in self.phases])

    def _delta(self, method: str) -> np.ndarray:
        self._mechanism_data()
        return self._stoich.reaction_delta(self._stack(method))

    def delta_gibbs(self) -> np.ndarray:
        return self._delta("chemical_potentials")

    def delta_enthalpy(self) -> np.ndarray:
        return self._delta("partial_molar_enthalpies")

    def delta_entropy(self) -> np.ndarray:
        return self._delta("partial_molar_entropies")

    def delta_ss_gibbs(self) -> np.ndarray:
        return self._delta("standard_chem_potentials")

    def delta_ss_enthalpy(self) -> np.ndarray:
        return self._delta("standard_enthalpies")

    def delta_ss_entropy(self) -> np.ndarray:
        return self._delta("standard_entropies")

    def delta_electrochem_potentials(self) -> np.ndarray:
        """Reaction change of ``μ_k + z_k F φ``."""
        mechanism = self._mechanism_data()
        phi = np.array([p.electric_potential for p in self.phases])[mechanism.species_phase]
        mu = self._stack("chemical_potentials") + mechanism.charges * FARADAY * phi
        return self._stoich.reaction_delta(mu)

    # -- stoichiometry -----------------------------------------------------

    def is_reversible(self, i: int) -> bool:
        return self._stoich.is_reversible(i)

    def reactant_stoich_coeff(self, k: int, i: int) -> float:
        return self._stoich.reactant_coefficient(k, i)

    def product_stoich_coeff(self, k: int, i: int) -> float:
        return self._stoich.product_coefficient(k, i)

    def reaction_order(self, k: int, i: int) -> float:
        return self._stoich.reactant_order(k, i)

    # -- surface coverages -------------------------------------------------

    @property
    def surface_solver(self) -> SurfaceCoverageSolver:
        if self._solver is None:
            from surfkin.surface_solver import SurfaceCoverageSolver

            self._solver = SurfaceCoverageSolver(self)
        return self._solver

    def set_newton_settings(self, settings: NewtonSettings) -> None:
        self.surface_solver.settings = settings

    def advance_coverages(
        self,
        dt: float,
        rtol: float = 1e-7,
        atol: float = 1e-14,
        max_step_size: float = 0.0,
        max_steps: int = 20000,
        max_err_test_fails: int = 7,
    ) -> None:
        """Integrate the surface coverages forward by ``dt`` seconds at fixed bulk state."""
        self.surface_solver.advance(
            dt,
            rtol=rtol,
            atol=atol,
            max_step_size=max_step_size,
            max_steps=max_steps,
            max_err_test_fails=max_err_test_fails,
        )

    def solve_pseudo_steady_state(
        self, method: SteadyStateMethod | None = None, time_scale: float = 1.0
    ) -> None:
        """Drive the surface coverages to the state where their net production vanishes."""
        from surfkin.surface_solver import SteadyStateMethod

        self.surface_solver.solve_pseudo_steady_state(
            method if method is not None else SteadyStateMethod.AUTO, time_scale
        )
