"""Data structures for species and reactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from surfkin.kinetics import RateExpression
from surfkin.thermo.species import ConstantCpThermo


@dataclass(frozen=True)
class Species:
    name: str
    charge: float = 0.0
    size: float = 1.0  # surface sites occupied
    molar_mass: float = 0.0  # kg/mol
    thermo: ConstantCpThermo = field(default_factory=ConstantCpThermo)


def _side(terms: Mapping[str, float]) -> str:
    parts = []
    for name, coeff in terms.items():
        if coeff == 1.0:
            parts.append(name)
        elif float(coeff).is_integer():
            parts.append(f"{int(coeff)} {name}")
        else:
            parts.append(f"{coeff:g} {name}")
    return " + ".join(parts)


@dataclass(frozen=True)
class Reaction:
    """A reaction as handed over by a mechanism description.

    ``orders`` overrides the forward reaction order of individual reactants;
    ``beta`` is the charge-transfer symmetry factor of electrochemical
    reactions.
    """

    reactants: Mapping[str, float]
    products: Mapping[str, float]
    rate: RateExpression
    reversible: bool = False
    orders: Mapping[str, float] = field(default_factory=dict)
    beta: float = 0.0
    name: str = ""

    @property
    def equation(self) -> str:
        arrow = " <=> " if self.reversible else " => "
        return _side(self.reactants) + arrow + _side(self.products)
