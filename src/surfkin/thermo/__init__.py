from .base import SolutionPhase, ThermoPhase, parse_composition
from .ideal import IdealGasPhase
from .lattice import LatticePhase
from .species import ConstantCpThermo
from .surface import SurfacePhase

__all__ = [
    "ThermoPhase",
    "SolutionPhase",
    "IdealGasPhase",
    "LatticePhase",
    "SurfacePhase",
    "ConstantCpThermo",
    "parse_composition",
]
