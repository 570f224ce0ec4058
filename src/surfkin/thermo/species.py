"""Reference-state thermo for individual species."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from surfkin.constants import REFERENCE_TEMPERATURE


@dataclass(frozen=True)
class ConstantCpThermo:
    """Species thermo with a constant heat capacity.

    Attributes:
        h0: Molar enthalpy at ``t0`` (J/mol).
        s0: Molar entropy at ``t0`` (J/(mol·K)).
        cp0: Molar heat capacity (J/(mol·K)).
        t0: Temperature at which ``h0`` and ``s0`` are given (K).
    """

    h0: float = 0.0
    s0: float = 0.0
    cp0: float = 0.0
    t0: float = REFERENCE_TEMPERATURE

    def heat_capacity(self, temperature: float) -> float:
        return self.cp0

    def enthalpy(self, temperature: float) -> float:
        return self.h0 + self.cp0 * (temperature - self.t0)

    def entropy(self, temperature: float) -> float:
        return self.s0 + self.cp0 * np.log(temperature / self.t0)

    def gibbs(self, temperature: float) -> float:
        return self.enthalpy(temperature) - temperature * self.entropy(temperature)
