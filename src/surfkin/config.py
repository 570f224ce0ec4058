"""Builds phases and a kinetics manager from a run configuration.

A run configuration is a plain dict (usually loaded from JSON) of the form::

    {
      "species": {"H2": {"molar_mass": 0.002016, "thermo": {"h0": 0.0, "s0": 130.7}}, ...},
      "phases": [
        {"name": "gas", "type": "ideal-gas", "species": ["H2", "AR"],
         "T": 500.0, "P": 101325.0, "X": "H2:0.1, AR:0.9"},
        {"name": "Pt_surf", "type": "surface", "species": ["PT(S)", "H(S)"],
         "site_density": 2.7063e-5, "coverages": "PT(S):1"}
      ],
      "reactions": [
        {"reactants": {"H2": 1, "PT(S)": 2}, "products": {"H(S)": 2},
         "orders": {"PT(S)": 1}, "rate": {"type": "arrhenius", "A": 4.4579e4, "b": 0.5}}
      ]
    }

Species not listed under ``species`` get default properties.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from surfkin.errors import InvalidReactionData
from surfkin.interface import InterfaceKinetics
from surfkin.kinetics import (
    ArrheniusRate,
    CoverageArrheniusRate,
    CoverageDependency,
    PlogRate,
    RateExpression,
    StickingRate,
)
from surfkin.models import Reaction, Species
from surfkin.thermo import (
    ConstantCpThermo,
    IdealGasPhase,
    LatticePhase,
    SurfacePhase,
    ThermoPhase,
)


def _arrhenius(data: Mapping[str, Any]) -> ArrheniusRate:
    return ArrheniusRate(
        pre_exponential=float(data["A"]),
        temperature_exponent=float(data.get("b", 0.0)),
        activation_energy=float(data.get("Ea", 0.0)),
    )


def parse_rate(data: Mapping[str, Any]) -> RateExpression:
    r_type = data.get("type", "arrhenius").lower()
    try:
        if r_type == "arrhenius":
            return _arrhenius(data)
        elif r_type == "coverage-arrhenius":
            deps = tuple(
                CoverageDependency(
                    species=name,
                    a=float(p.get("a", 0.0)),
                    m=float(p.get("m", 0.0)),
                    activation_energy=float(p.get("E", 0.0)),
                )
                for name, p in data.get("coverage", {}).items()
            )
            return CoverageArrheniusRate(arrhenius=_arrhenius(data), coverage_dependencies=deps)
        elif r_type == "sticking":
            return StickingRate(
                sticking_coefficient=_arrhenius(data),
                sticking_species=data.get("species"),
                motz_wise=bool(data.get("motz_wise", False)),
            )
        elif r_type == "pressure-log":
            return PlogRate(
                rates=tuple((float(p["P"]), _arrhenius(p)) for p in data["rates"])
            )
    except KeyError as err:
        raise InvalidReactionData(f"Rate of type '{r_type}' is missing {err}") from None
    raise InvalidReactionData(f"Unknown rate type: {r_type}")


def parse_species(name: str, data: Mapping[str, Any] | None = None) -> Species:
    data = data or {}
    thermo = data.get("thermo", {})
    return Species(
        name=name,
        charge=float(data.get("charge", 0.0)),
        size=float(data.get("size", 1.0)),
        molar_mass=float(data.get("molar_mass", 0.0)),
        thermo=ConstantCpThermo(
            h0=float(thermo.get("h0", 0.0)),
            s0=float(thermo.get("s0", 0.0)),
            cp0=float(thermo.get("cp0", 0.0)),
            t0=float(thermo.get("t0", 298.15)),
        ),
    )


def parse_phase(data: Mapping[str, Any], species: Mapping[str, Species]) -> ThermoPhase:
    p_type = data.get("type", "ideal-gas").lower()
    name = data["name"]
    members = [species.get(sp) or parse_species(sp) for sp in data["species"]]
    T = float(data.get("T", 298.15))
    P = float(data.get("P", 101325.0))

    if p_type == "ideal-gas":
        phase: ThermoPhase = IdealGasPhase(name, members, T, P, data.get("X"))
    elif p_type == "surface":
        phase = SurfacePhase(
            name, members, float(data["site_density"]), T, P, data.get("coverages")
        )
    elif p_type == "lattice":
        phase = LatticePhase(name, members, float(data["molar_density"]), T, P, data.get("X"))
    else:
        raise ValueError(f"Unknown phase type: {p_type}")

    phase.electric_potential = float(data.get("potential", 0.0))
    return phase


def parse_reaction(data: Mapping[str, Any]) -> Reaction:
    return Reaction(
        reactants={k: float(v) for k, v in data["reactants"].items()},
        products={k: float(v) for k, v in data["products"].items()},
        rate=parse_rate(data["rate"]),
        reversible=bool(data.get("reversible", False)),
        orders={k: float(v) for k, v in data.get("orders", {}).items()},
        beta=float(data.get("beta", 0.0)),
        name=data.get("name", ""),
    )


def build_kinetics(config: Mapping[str, Any]) -> InterfaceKinetics:
    """Create the phases and reactions of ``config`` and return the kinetics manager."""
    species: Dict[str, Species] = {
        name: parse_species(name, p) for name, p in config.get("species", {}).items()
    }
    kinetics = InterfaceKinetics()
    for phase_data in config["phases"]:
        kinetics.add_phase(parse_phase(phase_data, species))
    for reaction_data in config.get("reactions", []):
        kinetics.add_reaction(parse_reaction(reaction_data))
    return kinetics
