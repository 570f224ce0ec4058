"""Sparse stoichiometric bookkeeping.

The stoichiometric matrices of a mechanism are extremely sparse: each
reaction touches a handful of species out of possibly thousands. Rather than
form dense ``N_r`` / ``N_p`` matrices, every side of every reaction is stored
as flattened (reaction, species, coefficient) triplets and products with rate
vectors are scattered with ``numpy.bincount``.

Nomenclature used in the docstrings below:

    N_r     reactant coefficient matrix, element (k, i) for species k in reaction i
    N_p     product coefficient matrix
    Q_fwd   forward rates of progress (length n_reactions)
    Q_rev   reverse rates of progress
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Mapping, Sequence

import numpy as np

from surfkin.errors import InvalidReactionData

logger = logging.getLogger(__name__)


class StoichTerms:
    """One side of a mechanism as (reaction, species, coefficient) triplets.

    Appended to while the mechanism is being built, compiled into index
    arrays once.
    """

    def __init__(self) -> None:
        self._rxn: List[int] = []
        self._species: List[int] = []
        self._coeffs: List[float] = []
        self._arrays: tuple[np.ndarray, np.ndarray, np.ndarray] | None = None

    def __len__(self) -> int:
        return len(self._rxn)

    def append(self, rxn: int, terms: Mapping[int, float]) -> None:
        for k, coeff in terms.items():
            self._rxn.append(rxn)
            self._species.append(k)
            self._coeffs.append(coeff)
        self._arrays = None

    @property
    def arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if self._arrays is None:
            self._arrays = (
                np.array(self._rxn, dtype=np.intp),
                np.array(self._species, dtype=np.intp),
                np.array(self._coeffs, dtype=float),
            )
        return self._arrays

    def coefficient(self, k: int, i: int) -> float:
        rxn, species, coeffs = self.arrays
        hit = (rxn == i) & (species == k)
        return float(coeffs[hit].sum())

    def scatter(self, n_species: int, rop: np.ndarray) -> np.ndarray:
        """Return ``N · rop`` as a species vector."""
        rxn, species, coeffs = self.arrays
        if len(rxn) == 0:
            return np.zeros(n_species)
        return np.bincount(species, weights=coeffs * rop[rxn], minlength=n_species)

    def gather(self, n_reactions: int, g: np.ndarray) -> np.ndarray:
        """Return ``N^T · g`` as a reaction vector."""
        rxn, species, coeffs = self.arrays
        if len(rxn) == 0:
            return np.zeros(n_reactions)
        return np.bincount(rxn, weights=coeffs * g[species], minlength=n_reactions)

    def multiply(self, conc: np.ndarray, rates: np.ndarray) -> None:
        """In place, ``rates[i] *= prod_k conc[k] ** coeff[k, i]``."""
        rxn, species, coeffs = self.arrays
        if len(rxn) == 0:
            return
        np.multiply.at(rates, rxn, conc[species] ** coeffs)


class StoichiometryManager:
    """Species creation, destruction and net production rates from rates of progress.

    Reactions are added with :meth:`add` (integer coefficients given as
    repeated species indices) or :meth:`add_fractional` (arbitrary
    coefficients and reaction orders). Reaction indices must be added in
    order, starting from zero. The manager freezes itself the first time any
    rate is computed; adding afterwards raises :class:`InvalidReactionData`.
    """

    def __init__(self) -> None:
        self._reactants = StoichTerms()
        self._orders = StoichTerms()
        self._rev_products = StoichTerms()
        self._irrev_products = StoichTerms()
        self._net = StoichTerms()
        self._reversible: List[bool] = []
        self._rev_mask: np.ndarray | None = None
        self._frozen = False

    @property
    def n_reactions(self) -> int:
        return len(self._reversible)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        if self._frozen:
            return
        self._rev_mask = np.array(self._reversible, dtype=bool)
        for terms in (
            self._reactants,
            self._orders,
            self._rev_products,
            self._irrev_products,
            self._net,
        ):
            terms.arrays  # compile
        self._frozen = True
        logger.debug(
            "Froze stoichiometry: %d reactions, %d reversible",
            self.n_reactions,
            int(self._rev_mask.sum()),
        )

    @property
    def reversible_mask(self) -> np.ndarray:
        self.freeze()
        return self._rev_mask.copy()

    @property
    def reversible_indices(self) -> np.ndarray:
        return np.flatnonzero(self.reversible_mask)

    @property
    def irreversible_indices(self) -> np.ndarray:
        return np.flatnonzero(~self.reversible_mask)

    def is_reversible(self, i: int) -> bool:
        return self._reversible[i]

    # -- construction ----------------------------------------------------

    def add(
        self,
        rxn: int,
        reactants: Sequence[int],
        products: Sequence[int],
        reversible: bool,
    ) -> None:
        """Add a mass-action reaction with integer stoichiometry.

        A species taking part with coefficient ``n`` appears ``n`` times in
        its list, e.g. ``O + O = O2`` is ``reactants=[2, 2], products=[1]``.
        """
        for k in list(reactants) + list(products):
            if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
                raise InvalidReactionData(
                    f"Reaction {rxn}: species index {k!r} is not an integer"
                )
        r = {int(k): float(n) for k, n in Counter(reactants).items()}
        p = {int(k): float(n) for k, n in Counter(products).items()}
        self._record(rxn, r, p, reversible, r)

    def add_fractional(
        self,
        rxn: int,
        reactants: Mapping[int, float],
        products: Mapping[int, float],
        reversible: bool,
        orders: Mapping[int, float] | None = None,
    ) -> None:
        """Add a reaction with possibly non-integral coefficients and orders.

        ``orders`` replaces the forward reaction order of the reactants it
        names; the others keep their stoichiometric coefficient as order.
        """
        r = self._clean(rxn, reactants, "reactant")
        p = self._clean(rxn, products, "product")
        fwd_orders = dict(r)
        for k, order in (orders or {}).items():
            if k not in r:
                raise InvalidReactionData(
                    f"Reaction {rxn}: order given for species {k}, which is not a reactant"
                )
            order = float(order)
            if not np.isfinite(order) or order < 0.0:
                raise InvalidReactionData(f"Reaction {rxn}: invalid order {order} for species {k}")
            fwd_orders[k] = order
        self._record(rxn, r, p, reversible, {k: o for k, o in fwd_orders.items() if o != 0.0})

    @staticmethod
    def _clean(rxn: int, terms: Mapping[int, float], side: str) -> Dict[int, float]:
        cleaned: Dict[int, float] = {}
        for k, coeff in terms.items():
            if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
                raise InvalidReactionData(f"Reaction {rxn}: {side} index {k!r} is not an integer")
            coeff = float(coeff)
            if not np.isfinite(coeff) or coeff <= 0.0:
                raise InvalidReactionData(
                    f"Reaction {rxn}: {side} coefficient {coeff} of species {k} must be positive"
                )
            cleaned[int(k)] = cleaned.get(int(k), 0.0) + coeff
        return cleaned

    def _record(
        self,
        rxn: int,
        reactants: Dict[int, float],
        products: Dict[int, float],
        reversible: bool,
        orders: Dict[int, float],
    ) -> None:
        if self._frozen:
            raise InvalidReactionData(
                f"Cannot add reaction {rxn}: stoichiometry is frozen once rates have been evaluated"
            )
        if rxn != self.n_reactions:
            raise InvalidReactionData(
                f"Reactions must be added in order: expected index {self.n_reactions}, got {rxn}"
            )
        if not reactants or not products:
            raise InvalidReactionData(f"Reaction {rxn} has an empty reactant or product list")
        if any(k < 0 for k in list(reactants) + list(products)):
            raise InvalidReactionData(f"Reaction {rxn} has a negative species index")

        net = dict(products)
        for k, coeff in reactants.items():
            net[k] = net.get(k, 0.0) - coeff

        self._reactants.append(rxn, reactants)
        self._orders.append(rxn, orders)
        if reversible:
            self._rev_products.append(rxn, products)
        else:
            self._irrev_products.append(rxn, products)
        self._net.append(rxn, {k: c for k, c in net.items() if c != 0.0})
        self._reversible.append(bool(reversible))

    # -- introspection ---------------------------------------------------

    def reactant_coefficient(self, k: int, i: int) -> float:
        return self._reactants.coefficient(k, i)

    def product_coefficient(self, k: int, i: int) -> float:
        return self._rev_products.coefficient(k, i) + self._irrev_products.coefficient(k, i)

    def reactant_order(self, k: int, i: int) -> float:
        return self._orders.coefficient(k, i)

    # -- species rates -----------------------------------------------------

    def _reverse_only(self, rev_rop: np.ndarray) -> np.ndarray:
        return np.where(self._rev_mask, rev_rop, 0.0)

    def creation_rates(
        self, n_species: int, fwd_rop: np.ndarray, rev_rop: np.ndarray
    ) -> np.ndarray:
        """Species creation rates ``C = N_p Q_fwd + N_r Q_rev``."""
        self.freeze()
        fwd_rop = np.asarray(fwd_rop, dtype=float)
        rev_rop = self._reverse_only(np.asarray(rev_rop, dtype=float))
        return (
            self._rev_products.scatter(n_species, fwd_rop)
            + self._irrev_products.scatter(n_species, fwd_rop)
            + self._reactants.scatter(n_species, rev_rop)
        )

    def destruction_rates(
        self, n_species: int, fwd_rop: np.ndarray, rev_rop: np.ndarray
    ) -> np.ndarray:
        """Species destruction rates ``D = N_r Q_fwd + N_p Q_rev``."""
        self.freeze()
        fwd_rop = np.asarray(fwd_rop, dtype=float)
        rev_rop = self._reverse_only(np.asarray(rev_rop, dtype=float))
        return self._reactants.scatter(n_species, fwd_rop) + self._rev_products.scatter(
            n_species, rev_rop
        )

    def net_production_rates(self, n_species: int, net_rop: np.ndarray) -> np.ndarray:
        """Species net production rates ``W = (N_p - N_r) Q_net``.

        Uses the per-reaction net coefficients directly instead of
        subtracting separately accumulated creation and destruction rates.
        """
        self.freeze()
        return self._net.scatter(n_species, np.asarray(net_rop, dtype=float))

    # -- reaction deltas ---------------------------------------------------

    def reaction_delta(self, g: np.ndarray) -> np.ndarray:
        """Change of the species property ``g`` in every reaction (products minus reactants)."""
        self.freeze()
        g = np.asarray(g, dtype=float)
        n = self.n_reactions
        return (
            self._rev_products.gather(n, g)
            + self._irrev_products.gather(n, g)
            - self._reactants.gather(n, g)
        )

    def rev_reaction_delta(self, g: np.ndarray, dg: np.ndarray) -> np.ndarray:
        """Like :meth:`reaction_delta`, writing only the reversible slots of ``dg``.

        Entries of ``dg`` belonging to irreversible reactions are left as they were.
        """
        delta = self.reaction_delta(g)
        dg[self._rev_mask] = delta[self._rev_mask]
        return dg

    # -- mass action ---------------------------------------------------------

    def multiply_reactants(self, conc: np.ndarray, rates: np.ndarray) -> np.ndarray:
        """In place, multiply ``rates`` by the reactant concentration products."""
        self.freeze()
        self._orders.multiply(np.asarray(conc, dtype=float), rates)
        return rates

    def multiply_rev_products(self, conc: np.ndarray, rates: np.ndarray) -> np.ndarray:
        """In place, multiply the reversible entries of ``rates`` by the product concentration products."""
        self.freeze()
        self._rev_products.multiply(np.asarray(conc, dtype=float), rates)
        return rates
