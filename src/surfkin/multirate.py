"""Batch evaluation of rate constants grouped by rate-law kind.

Every reaction is owned by exactly one batch evaluator, the one registered
for its rate expression's ``kind``. A batch stores the parameters of all its
member reactions in arrays and evaluates them in a single vectorized
expression, writing the results straight into the slots of the full-length
rate-constant vector that were fixed when the reactions were added.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Type

import numpy as np

from surfkin.constants import R_GAS, TINY
from surfkin.errors import InvalidReactionData, KineticsError
from surfkin.kinetics import (
    ArrheniusRate,
    CoverageArrheniusRate,
    PlogRate,
    RateExpression,
    StickingRate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateContext:
    """State handed to every batch evaluator."""

    temperature: float
    pressure: float
    coverages: np.ndarray = field(default_factory=lambda: np.zeros(0))
    site_density: float = 0.0


@dataclass(frozen=True)
class RateBinding:
    """Per-reaction facts resolved by the kinetics manager when a reaction is added.

    Attributes:
        surface_order: Sum of the reaction orders of surface reactants.
        sticking_molar_mass: Molar mass of the sticking species (kg/mol).
        coverage_indices: Surface species name -> index in the coverage vector.
    """

    surface_order: float = 0.0
    sticking_molar_mass: float = 0.0
    coverage_indices: Mapping[str, int] = field(default_factory=dict)


def _arrhenius_arrays(rates: List[ArrheniusRate]) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    return (
        np.array([r.pre_exponential for r in rates], dtype=float),
        np.array([r.temperature_exponent for r in rates], dtype=float),
        np.array([r.activation_energy for r in rates], dtype=float),
    )


def _arrhenius(arrays: tuple[np.ndarray, np.ndarray, np.ndarray], temperature: float) -> np.ndarray:
    A, b, Ea = arrays
    return A * temperature**b * np.exp(-Ea / (R_GAS * temperature))


class BatchEvaluator(ABC):
    """Evaluates the rate constants of all reactions sharing one rate-law kind."""

    kind: ClassVar[str]
    rate_type: ClassVar[type]
    depends_on_surface: ClassVar[bool] = False

    def __init__(self) -> None:
        self.indices: List[int] = []
        self.rates: List[Any] = []
        self.bindings: List[RateBinding] = []
        self._index_array: np.ndarray | None = None
        self._compiled: Any = None

    def __len__(self) -> int:
        return len(self.indices)

    def add(self, index: int, rate: RateExpression, binding: RateBinding) -> None:
        if not isinstance(rate, self.rate_type):
            raise InvalidReactionData(
                f"Reaction {index}: {type(rate).__name__} cannot be evaluated by {type(self).__name__}"
            )
        self.validate(index, rate, binding)
        self.indices.append(index)
        self.rates.append(rate)
        self.bindings.append(binding)
        self._index_array = None
        self._compiled = None

    def validate(self, index: int, rate: Any, binding: RateBinding) -> None:
        """Reject parameters this kind cannot evaluate."""

    @abstractmethod
    def compile(self) -> Any:
        """Pack the parameters of the member reactions into arrays."""

    @abstractmethod
    def evaluate_compiled(self, compiled: Any, context: RateContext) -> np.ndarray:
        """Rate constants of the member reactions, in order of addition."""

    def evaluate(self, context: RateContext) -> np.ndarray:
        if self._compiled is None:
            self._compiled = self.compile()
        return self.evaluate_compiled(self._compiled, context)

    def update(self, context: RateContext, kf: np.ndarray) -> None:
        if not self.indices:
            return
        if self._index_array is None:
            self._index_array = np.array(self.indices, dtype=np.intp)
        kf[self._index_array] = self.evaluate(context)


class ArrheniusBatch(BatchEvaluator):
    kind = ArrheniusRate.kind
    rate_type = ArrheniusRate

    def compile(self):
        return _arrhenius_arrays(self.rates)

    def evaluate_compiled(self, compiled, context):
        return _arrhenius(compiled, context.temperature)


class CoverageArrheniusBatch(BatchEvaluator):
    kind = CoverageArrheniusRate.kind
    rate_type = CoverageArrheniusRate
    depends_on_surface = True

    def validate(self, index, rate, binding):
        for dep in rate.coverage_dependencies:
            if dep.species not in binding.coverage_indices:
                raise InvalidReactionData(
                    f"Reaction {index}: coverage dependency on '{dep.species}', "
                    "which is not a species of the surface phase"
                )

    def compile(self):
        position, species, a, m, E = [], [], [], [], []
        for pos, (rate, binding) in enumerate(zip(self.rates, self.bindings)):
            for dep in rate.coverage_dependencies:
                position.append(pos)
                species.append(binding.coverage_indices[dep.species])
                a.append(dep.a)
                m.append(dep.m)
                E.append(dep.activation_energy)
        return (
            _arrhenius_arrays([rate.arrhenius for rate in self.rates]),
            np.array(position, dtype=np.intp),
            np.array(species, dtype=np.intp),
            np.array(a, dtype=float),
            np.array(m, dtype=float),
            np.array(E, dtype=float),
        )

    def evaluate_compiled(self, compiled, context):
        arrhenius, position, species, a, m, E = compiled
        k = _arrhenius(arrhenius, context.temperature)
        if len(position) == 0:
            return k
        theta = context.coverages[species]
        log_factor = (
            a * np.log(10.0) * theta
            + m * np.log(np.maximum(theta, TINY))
            - E * theta / (R_GAS * context.temperature)
        )
        total = np.zeros(len(k))
        np.add.at(total, position, log_factor)
        return k * np.exp(total)


class StickingBatch(BatchEvaluator):
    """Converts sticking probabilities into rate constants.

    ``k = γ / n0^m sqrt(RT / (2π W))``
    """

    kind = StickingRate.kind
    rate_type = StickingRate
    depends_on_surface = True

    def validate(self, index, rate, binding):
        if not binding.sticking_molar_mass > 0.0:
            raise InvalidReactionData(
                f"Reaction {index}: sticking species needs a positive molar mass"
            )

    def compile(self):
        return (
            _arrhenius_arrays([rate.sticking_coefficient for rate in self.rates]),
            np.array([rate.motz_wise for rate in self.rates], dtype=bool),
            np.array([b.surface_order for b in self.bindings], dtype=float),
            np.array([b.sticking_molar_mass for b in self.bindings], dtype=float),
        )

    def evaluate_compiled(self, compiled, context):
        arrhenius, motz_wise, order, molar_mass = compiled
        T = context.temperature
        gamma = _arrhenius(arrhenius, T)
        over = motz_wise & (gamma >= 2.0)
        if over.any():
            bad = [self.indices[pos] for pos in np.flatnonzero(over)]
            raise KineticsError(
                f"Motz-Wise sticking coefficient of reactions {bad} reaches 2 at T = {T} K"
            )
        gamma = np.where(motz_wise, gamma / (1.0 - 0.5 * gamma), gamma)
        speed = np.sqrt(R_GAS * T / (2.0 * np.pi * molar_mass))
        return gamma * speed / context.site_density**order


class PlogBatch(BatchEvaluator):
    kind = PlogRate.kind
    rate_type = PlogRate

    def compile(self):
        tables = []
        for rate in self.rates:
            log_p = np.log(rate.pressures)
            arrays = _arrhenius_arrays([arr for _, arr in rate.rates])
            tables.append((log_p, arrays))
        return tables

    def evaluate_compiled(self, compiled, context):
        log_pressure = np.log(context.pressure)
        k = np.empty(len(compiled))
        for pos, (log_p, arrays) in enumerate(compiled):
            log_k = np.log(_arrhenius(arrays, context.temperature))
            k[pos] = np.exp(np.interp(log_pressure, log_p, log_k))
        return k


class RateRegistry:
    """Maps rate-law kinds to the batch evaluator classes that handle them."""

    def __init__(self) -> None:
        self._factories: Dict[str, Type[BatchEvaluator]] = {}

    def register(self, kind: str, factory: Type[BatchEvaluator]) -> None:
        self._factories[kind] = factory

    def __contains__(self, kind: str) -> bool:
        return kind in self._factories

    @property
    def kinds(self) -> List[str]:
        return list(self._factories)

    def create(self, kind: str) -> BatchEvaluator:
        try:
            factory = self._factories[kind]
        except KeyError:
            raise InvalidReactionData(f"No evaluator registered for rate kind '{kind}'") from None
        return factory()


def default_registry() -> RateRegistry:
    """A fresh registry with the built-in rate kinds."""
    registry = RateRegistry()
    for factory in (ArrheniusBatch, CoverageArrheniusBatch, StickingBatch, PlogBatch):
        registry.register(factory.kind, factory)
    return registry


class MultiRateEvaluator:
    """Owns one batch evaluator per rate kind in use.

    Reactions are append-only. Re-parameterizing a reaction rebuilds the
    whole batch of its kind.
    """

    def __init__(self, registry: RateRegistry | None = None) -> None:
        self.registry = registry if registry is not None else default_registry()
        self._evaluators: Dict[str, BatchEvaluator] = {}
        self._owner: Dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._owner)

    def __iter__(self) -> Iterator[BatchEvaluator]:
        return iter(self._evaluators.values())

    @property
    def kinds(self) -> List[str]:
        return list(self._evaluators)

    def _kind(self, rate: RateExpression) -> str:
        kind = getattr(rate, "kind", None)
        if kind is None:
            raise InvalidReactionData(f"{type(rate).__name__} is not a rate expression")
        if kind not in self.registry:
            raise InvalidReactionData(f"No evaluator registered for rate kind '{kind}'")
        return kind

    def check(self, index: int, rate: RateExpression, binding: RateBinding) -> None:
        """Raise :class:`InvalidReactionData` if ``rate`` could not be added."""
        probe = self.registry.create(self._kind(rate))
        probe.add(index, rate, binding)

    def add(self, index: int, rate: RateExpression, binding: RateBinding | None = None) -> None:
        if index in self._owner:
            raise InvalidReactionData(f"Reaction {index} already has a rate expression")
        kind = self._kind(rate)
        evaluator = self._evaluators.get(kind)
        if evaluator is None:
            evaluator = self.registry.create(kind)
            logger.debug("Created %s for rate kind '%s'", type(evaluator).__name__, kind)
        evaluator.add(index, rate, binding or RateBinding())
        self._evaluators[kind] = evaluator
        self._owner[index] = kind

    def replace(self, index: int, rate: RateExpression, binding: RateBinding | None = None) -> None:
        """Give reaction ``index`` new parameters of the same kind."""
        kind = self.kind_of(index)
        if self._kind(rate) != kind:
            raise InvalidReactionData(
                f"Reaction {index}: cannot change rate kind from '{kind}' to '{rate.kind}'"
            )
        old = self._evaluators[kind]
        rebuilt = self.registry.create(kind)
        for i, r, b in zip(old.indices, old.rates, old.bindings):
            if i == index:
                r, b = rate, binding or b
            rebuilt.add(i, r, b)
        self._evaluators[kind] = rebuilt

    def kind_of(self, index: int) -> str:
        try:
            return self._owner[index]
        except KeyError:
            raise InvalidReactionData(f"Reaction {index} has no rate expression") from None

    def evaluator_for(self, index: int) -> BatchEvaluator:
        return self._evaluators[self.kind_of(index)]

    def is_surface_dependent(self, index: int) -> bool:
        return self.evaluator_for(index).depends_on_surface

    def update(self, context: RateContext, kf: np.ndarray, surface_only: bool = False) -> None:
        """Write the rate constants of every batch into ``kf``."""
        for evaluator in self._evaluators.values():
            if surface_only and not evaluator.depends_on_surface:
                continue
            evaluator.update(context, kf)
