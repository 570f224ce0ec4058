"""Phase existence and stability, and their effect on rates of progress.

These flags are extrinsic: they say nothing about the intrinsic mass-action
rates, and are layered on top of them by :func:`apply_phase_overrides`.

- A reaction cannot run forward if a phase holding one of its reactants
  does not exist, nor backward if a product phase does not exist.
- Species in an unstable phase may be consumed but not created: a reaction
  whose net direction would create species in an unstable phase has its
  dominant direction clipped back to the other one.

Nonexistent phases are unstable. Marking a phase as existing makes it stable
again.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, List, Tuple

import numpy as np

from surfkin.errors import InvalidReactionData


class PhaseStability(IntEnum):
    UNSTABLE = 0
    STABLE = 1


class PhaseLinkage:
    def __init__(self) -> None:
        self._exists: List[bool] = []
        self._stability: List[PhaseStability] = []
        self._reactant_rows: List[np.ndarray] = []
        self._product_rows: List[np.ndarray] = []
        self._masks: Tuple[np.ndarray, np.ndarray] | None = None
        self._version = 0

    @property
    def n_phases(self) -> int:
        return len(self._exists)

    @property
    def version(self) -> int:
        """Incremented whenever a flag changes."""
        return self._version

    def add_phase(self) -> int:
        if self._reactant_rows:
            raise InvalidReactionData("Phases must be added before reactions")
        self._exists.append(True)
        self._stability.append(PhaseStability.STABLE)
        return self.n_phases - 1

    def add_reaction(self, reactant_phases: Iterable[int], product_phases: Iterable[int]) -> None:
        reactant = np.zeros(self.n_phases, dtype=bool)
        product = np.zeros(self.n_phases, dtype=bool)
        reactant[list(reactant_phases)] = True
        product[list(product_phases)] = True
        self._reactant_rows.append(reactant)
        self._product_rows.append(product)
        self._masks = None

    def is_reactant_phase(self, reaction: int, phase: int) -> bool:
        return bool(self._reactant_rows[reaction][phase])

    def is_product_phase(self, reaction: int, phase: int) -> bool:
        return bool(self._product_rows[reaction][phase])

    @property
    def masks(self) -> Tuple[np.ndarray, np.ndarray]:
        """Reactant and product membership, each of shape (n_reactions, n_phases)."""
        if self._masks is None:
            n_rxn, n = len(self._reactant_rows), self.n_phases
            self._masks = (
                np.array(self._reactant_rows, dtype=bool).reshape(n_rxn, n),
                np.array(self._product_rows, dtype=bool).reshape(n_rxn, n),
            )
        return self._masks

    def set_existence(self, phase: int, exists: bool) -> None:
        self._exists[phase] = bool(exists)
        self._stability[phase] = PhaseStability.STABLE if exists else PhaseStability.UNSTABLE
        self._version += 1

    def set_stability(self, phase: int, stable: bool) -> None:
        self._stability[phase] = PhaseStability.STABLE if stable else PhaseStability.UNSTABLE
        self._version += 1

    def exists(self, phase: int) -> bool:
        return self._exists[phase]

    def stability(self, phase: int) -> PhaseStability:
        return self._stability[phase]

    @property
    def exists_array(self) -> np.ndarray:
        return np.array(self._exists, dtype=bool)

    @property
    def stable_array(self) -> np.ndarray:
        return np.array([s == PhaseStability.STABLE for s in self._stability], dtype=bool)

    @property
    def nominal(self) -> bool:
        """True when every phase exists and is stable, so no override applies."""
        return all(self._exists) and all(s == PhaseStability.STABLE for s in self._stability)


def apply_phase_overrides(
    linkage: PhaseLinkage, ropf: np.ndarray, ropr: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Return forward and reverse rates of progress with the phase flags applied."""
    ropf = np.array(ropf, dtype=float)
    ropr = np.array(ropr, dtype=float)
    if linkage.nominal or len(ropf) == 0:
        return ropf, ropr

    reactant, product = linkage.masks
    missing = ~linkage.exists_array
    unstable = ~linkage.stable_array

    ropf[(reactant & missing).any(axis=1)] = 0.0
    ropr[(product & missing).any(axis=1)] = 0.0

    forward = ropf > ropr
    clip = forward & (product & unstable).any(axis=1)
    ropf[clip] = ropr[clip]

    backward = ropr > ropf
    clip = backward & (reactant & unstable).any(axis=1)
    ropr[clip] = ropf[clip]
    return ropf, ropr
