"""Rate expressions.

Each record carries a class-level ``kind`` tag. Reactions sharing a kind are
evaluated together by one batch evaluator (see :mod:`surfkin.multirate`), so
the records here only hold parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Protocol, Sequence, Tuple

from surfkin.errors import InvalidReactionData


class RateExpression(Protocol):
    kind: ClassVar[str]


@dataclass(frozen=True)
class ArrheniusRate:
    """Modified Arrhenius expression ``k = A T^b exp(-Ea / RT)``."""

    kind: ClassVar[str] = "arrhenius"

    pre_exponential: float
    temperature_exponent: float = 0.0
    activation_energy: float = 0.0  # J/mol


@dataclass(frozen=True)
class CoverageDependency:
    """Modification of a surface rate constant by the coverage of one species.

    The factor applied is ``10^(a θ) θ^m exp(-E θ / RT)``.
    """

    species: str
    a: float = 0.0
    m: float = 0.0
    activation_energy: float = 0.0  # J/mol


@dataclass(frozen=True)
class CoverageArrheniusRate:
    """Arrhenius expression modified by surface coverages."""

    kind: ClassVar[str] = "coverage-arrhenius"

    arrhenius: ArrheniusRate
    coverage_dependencies: Tuple[CoverageDependency, ...] = ()


@dataclass(frozen=True)
class StickingRate:
    """Sticking-coefficient expression for adsorption of a bulk species.

    The sticking probability ``γ = A T^b exp(-Ea / RT)`` is converted to a
    rate constant by the kinetics manager, which knows the site density, the
    surface reaction order and the molar mass of the sticking species.
    """

    kind: ClassVar[str] = "sticking"

    sticking_coefficient: ArrheniusRate
    sticking_species: str | None = None
    motz_wise: bool = False


@dataclass(frozen=True)
class PlogRate:
    """Pressure-dependent rate interpolated between Arrhenius expressions.

    ``ln k`` is linear in ``ln P`` between the tabulated pressures and is
    held at the end values outside the table.
    """

    kind: ClassVar[str] = "pressure-log"

    rates: Tuple[Tuple[float, ArrheniusRate], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.rates:
            raise InvalidReactionData("PLOG rate needs at least one pressure")
        pressures = [p for p, _ in self.rates]
        if any(p <= 0.0 for p in pressures):
            raise InvalidReactionData("PLOG pressures must be positive")
        if any(b <= a for a, b in zip(pressures, pressures[1:])):
            raise InvalidReactionData("PLOG pressures must be strictly increasing")
        if any(rate.pre_exponential <= 0.0 for _, rate in self.rates):
            raise InvalidReactionData("PLOG pre-exponential factors must be positive")

    @property
    def pressures(self) -> Sequence[float]:
        return [p for p, _ in self.rates]
