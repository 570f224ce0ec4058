"""surfkin core package."""

from surfkin.errors import (
    ConvergenceFailure,
    IntegrationFailure,
    InvalidReactionData,
    InvalidStateAccess,
    KineticsError,
)
from surfkin.interface import InterfaceKinetics
from surfkin.kinetics import (
    ArrheniusRate,
    CoverageArrheniusRate,
    CoverageDependency,
    PlogRate,
    StickingRate,
)
from surfkin.models import Reaction, Species
from surfkin.stoichiometry import StoichiometryManager
from surfkin.surface_solver import NewtonSettings, SteadyStateMethod, SurfaceCoverageSolver

__all__ = [
    "ArrheniusRate",
    "CoverageArrheniusRate",
    "CoverageDependency",
    "PlogRate",
    "StickingRate",
    "Reaction",
    "Species",
    "InterfaceKinetics",
    "StoichiometryManager",
    "SurfaceCoverageSolver",
    "NewtonSettings",
    "SteadyStateMethod",
    "KineticsError",
    "InvalidReactionData",
    "InvalidStateAccess",
    "IntegrationFailure",
    "ConvergenceFailure",
]
