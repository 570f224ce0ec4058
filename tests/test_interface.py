import unittest
import numpy as np
from surfkin.constants import FARADAY, R_GAS
from surfkin.errors import InvalidReactionData, InvalidStateAccess, KineticsError
from surfkin.interface import InterfaceKinetics
from surfkin.kinetics import ArrheniusRate, CoverageArrheniusRate, CoverageDependency, StickingRate
from surfkin.linkage import PhaseStability
from surfkin.models import Reaction, Species
from surfkin.thermo import ConstantCpThermo, IdealGasPhase, LatticePhase, SurfacePhase

SITE_DENSITY = 2.7063e-5


def gas_and_surface(T=500.0):
    gas = IdealGasPhase(
        "gas",
        [
            Species("H2", molar_mass=2.016e-3, thermo=ConstantCpThermo(s0=130.68)),
            Species("H", molar_mass=1.008e-3, thermo=ConstantCpThermo(h0=217998.0, s0=114.72)),
            Species("AR", molar_mass=39.948e-3),
        ],
        temperature=T,
        mole_fractions="H2:0.1, H:0.01, AR:0.89",
    )
    surf = SurfacePhase(
        "Pt_surf",
        [Species("PT(S)"), Species("H(S)", thermo=ConstantCpThermo(h0=-32000.0, s0=40.0))],
        site_density=SITE_DENSITY,
        temperature=T,
        coverages="PT(S):0.7, H(S):0.3",
    )
    kin = InterfaceKinetics()
    kin.add_phase(gas)
    kin.add_phase(surf)
    return gas, surf, kin


def add_hydrogen_reactions(kin):
    # 0: H2 + 2 PT(S) <=> 2 H(S)
    kin.add_reaction(
        Reaction({"H2": 1, "PT(S)": 2}, {"H(S)": 2}, ArrheniusRate(4.4579e4, 0.5), reversible=True)
    )
    # 1: H + PT(S) => H(S)
    kin.add_reaction(Reaction({"H": 1, "PT(S)": 1}, {"H(S)": 1}, StickingRate(ArrheniusRate(1.0))))
    # 2: 2 H(S) => H2 + 2 PT(S)
    kin.add_reaction(
        Reaction({"H(S)": 2}, {"H2": 1, "PT(S)": 2}, ArrheniusRate(3.7e17, 0.0, 67400.0))
    )


class TestInterfaceKinetics(unittest.TestCase):
    def setUp(self):
        self.gas, self.surf, self.kin = gas_and_surface()
        add_hydrogen_reactions(self.kin)

    def test_species_indexing(self):
        self.assertEqual(self.kin.n_species, 5)
        self.assertEqual(self.kin.n_reactions, 3)
        self.assertEqual(self.kin.kinetics_species_index("H(S)"), 4)
        self.assertEqual(self.kin.surface_phase, self.surf)
        self.assertEqual(self.kin.reactant_stoich_coeff(3, 0), 2.0)
        self.assertEqual(self.kin.product_stoich_coeff(0, 2), 1.0)
        self.assertTrue(self.kin.is_reversible(0))
        self.assertFalse(self.kin.is_reversible(2))
        with self.assertRaises(InvalidStateAccess):
            self.kin.kinetics_species_index("O(S)")

    def test_reverse_rate_constants_match_equilibrium(self):
        kf = self.kin.fwd_rate_constants()
        kr = self.kin.rev_rate_constants()
        kc = self.kin.equilibrium_constants()
        self.assertEqual(kr[0], kf[0] / kc[0])
        self.assertEqual(kr[1], 0.0)
        self.assertEqual(kr[2], 0.0)
        all_kr = self.kin.rev_rate_constants(include_irreversible=True)
        self.assertEqual(all_kr[0], kr[0])
        self.assertGreater(all_kr[2], 0.0)

    def test_equilibrium_constant_from_standard_state(self):
        # Kc = exp(-ΔG°/RT) (p_ref/RT)^Δn_gas with Δn_gas = -1; the site densities cancel
        T = 500.0
        RT = R_GAS * T
        delta_g = self.kin.delta_ss_gibbs()[0]
        expected = np.exp(-delta_g / RT) * (RT / 101325.0)
        self.assertAlmostEqual(self.kin.equilibrium_constants()[0] / expected, 1.0)

    def test_sticking_rate_constant(self):
        T = 500.0
        expected = np.sqrt(R_GAS * T / (2.0 * np.pi * 1.008e-3)) / SITE_DENSITY
        self.assertAlmostEqual(self.kin.fwd_rate_constants()[1] / expected, 1.0)

    def test_rates_of_progress(self):
        conc = self.kin.activity_concentrations()
        kf = self.kin.fwd_rate_constants()
        ropf = self.kin.fwd_rates_of_progress()
        self.assertAlmostEqual(ropf[0] / (kf[0] * conc[0] * conc[3] ** 2), 1.0)
        self.assertAlmostEqual(ropf[2] / (kf[2] * conc[4] ** 2), 1.0)
        self.assertEqual(self.kin.rev_rates_of_progress()[2], 0.0)
        np.testing.assert_allclose(
            self.kin.net_production_rates(),
            self.kin.creation_rates() - self.kin.destruction_rates(),
            rtol=1e-10,
            atol=1e-20,
        )

    def test_cache_follows_state(self):
        kf = self.kin.fwd_rate_constants()
        ropf = self.kin.fwd_rates_of_progress()
        self.surf.set_coverages([0.5, 0.5])
        np.testing.assert_array_equal(self.kin.fwd_rate_constants(), kf)
        self.assertNotEqual(self.kin.fwd_rates_of_progress()[0], ropf[0])
        self.gas.temperature = 600.0
        self.surf.temperature = 600.0
        self.assertGreater(self.kin.fwd_rate_constants()[2], kf[2])

    def test_bulk_temperature_change(self):
        self.kin.rev_rate_constants()
        self.gas.temperature = 800.0
        gas, surf, fresh = gas_and_surface()
        gas.temperature = 800.0
        add_hydrogen_reactions(fresh)
        self.assertAlmostEqual(self.kin.rev_rate_constants()[0] / fresh.rev_rate_constants()[0], 1.0)
        np.testing.assert_allclose(
            self.kin.equilibrium_constants(), fresh.equilibrium_constants(), rtol=1e-12
        )

    def test_returns_copies(self):
        kf = self.kin.fwd_rate_constants()
        kf[0] = -1.0
        self.assertGreater(self.kin.fwd_rate_constants()[0], 0.0)

    def test_phase_existence(self):
        self.kin.set_phase_existence(0, False)
        self.assertFalse(self.kin.phase_existence(0))
        self.assertEqual(self.kin.phase_stability(0), PhaseStability.UNSTABLE)
        ropf = self.kin.fwd_rates_of_progress()
        self.assertEqual(ropf[0], 0.0)
        self.assertEqual(ropf[1], 0.0)
        self.kin.set_phase_existence(0, True)
        self.assertGreater(self.kin.fwd_rates_of_progress()[0], 0.0)

    def test_unstable_phase_is_not_produced(self):
        self.kin.set_phase_stability(0, False)
        wdot = self.kin.net_production_rates()
        # the gas may only be consumed
        self.assertLessEqual(wdot[self.kin.kinetics_species_index("H2")], 0.0)
        net = self.kin.net_rates_of_progress()
        self.assertEqual(net[2], 0.0)

    def test_add_reaction_after_evaluation(self):
        self.kin.net_production_rates()
        with self.assertRaises(InvalidReactionData):
            self.kin.add_reaction(
                Reaction({"H": 2}, {"H2": 1}, ArrheniusRate(1.0))
            )

    def test_modify_reaction(self):
        kf = self.kin.fwd_rate_constants()
        self.kin.modify_reaction(2, ArrheniusRate(7.4e17, 0.0, 67400.0))
        self.assertAlmostEqual(self.kin.fwd_rate_constants()[2] / kf[2], 2.0)
        self.assertEqual(self.kin.reactions[2].rate.pre_exponential, 7.4e17)

    def test_failed_query_keeps_cache(self):
        kf = self.kin.fwd_rate_constants()
        self.kin.modify_reaction(2, ArrheniusRate(1.0e300, 0.0, -1.0e7))
        with self.assertRaises(KineticsError):
            self.kin.fwd_rate_constants()
        self.kin.modify_reaction(2, ArrheniusRate(3.7e17, 0.0, 67400.0))
        np.testing.assert_allclose(self.kin.fwd_rate_constants(), kf)

    def test_reaction_deltas(self):
        dh = self.kin.delta_enthalpy()
        self.assertAlmostEqual(dh[0], 2.0 * -32000.0)
        self.assertAlmostEqual(dh[2], 2.0 * 32000.0)
        np.testing.assert_allclose(self.kin.delta_ss_enthalpy(), dh)
        dg = self.kin.delta_gibbs()
        ds = self.kin.delta_entropy()
        np.testing.assert_allclose(dg, dh - 500.0 * ds, rtol=1e-10)
        np.testing.assert_allclose(self.kin.delta_electrochem_potentials(), dg)


class TestAddReactionErrors(unittest.TestCase):
    def setUp(self):
        self.gas, self.surf, self.kin = gas_and_surface()

    def test_unknown_species(self):
        with self.assertRaises(InvalidReactionData):
            self.kin.add_reaction(Reaction({"O2": 1}, {"H2": 1}, ArrheniusRate(1.0)))

    def test_non_positive_coefficients(self):
        for coeff in (-1, 0):
            with self.assertRaises(InvalidReactionData):
                self.kin.add_reaction(
                    Reaction({"H2": 1, "AR": coeff, "PT(S)": 2}, {"H(S)": 2}, ArrheniusRate(1.0))
                )
        with self.assertRaises(InvalidReactionData):
            self.kin.add_reaction(Reaction({"H2": 1, "PT(S)": 2}, {"H(S)": -2}, ArrheniusRate(1.0)))
        self.assertEqual(self.kin.n_reactions, 0)

    def test_sticking_needs_single_bulk_reactant(self):
        with self.assertRaises(InvalidReactionData):
            self.kin.add_reaction(
                Reaction({"H2": 1, "H": 1}, {"H(S)": 1}, StickingRate(ArrheniusRate(1.0)))
            )
        self.assertEqual(self.kin.n_reactions, 0)

    def test_explicit_sticking_species(self):
        self.kin.add_reaction(
            Reaction(
                {"H2": 1, "H": 1, "PT(S)": 1},
                {"H(S)": 1, "H2": 1},
                StickingRate(ArrheniusRate(1.0), sticking_species="H"),
            )
        )
        self.assertEqual(self.kin.n_reactions, 1)

    def test_coverage_dependency_on_surface_species(self):
        rate = CoverageArrheniusRate(
            ArrheniusRate(1.0e13, 0.0, 90000.0), (CoverageDependency("H(S)", activation_energy=-6000.0),)
        )
        self.kin.add_reaction(Reaction({"H(S)": 2}, {"H2": 1, "PT(S)": 2}, rate))
        T = 500.0
        expected = 1.0e13 * np.exp(-(90000.0 - 6000.0 * 0.3) / (R_GAS * T))
        self.assertAlmostEqual(self.kin.fwd_rate_constants()[0] / expected, 1.0)
        # coverage-dependent rates follow coverage changes
        self.surf.set_coverages([0.5, 0.5])
        expected = 1.0e13 * np.exp(-(90000.0 - 6000.0 * 0.5) / (R_GAS * T))
        self.assertAlmostEqual(self.kin.fwd_rate_constants()[0] / expected, 1.0)

    def test_one_surface_phase(self):
        other = SurfacePhase("other", [Species("X(S)")], site_density=1e-5)
        with self.assertRaises(InvalidReactionData):
            self.kin.add_phase(other)

    def test_fractional_orders(self):
        self.kin.add_reaction(
            Reaction(
                {"H2": 1, "PT(S)": 2}, {"H(S)": 2}, ArrheniusRate(1.0), orders={"PT(S)": 1}
            )
        )
        conc = self.kin.activity_concentrations()
        self.assertAlmostEqual(self.kin.fwd_rates_of_progress()[0] / (conc[0] * conc[3]), 1.0)
        self.assertEqual(self.kin.reaction_order(3, 0), 1.0)


class TestElectrochemistry(unittest.TestCase):
    def setUp(self):
        # Li+ (electrolyte) + e- (electrode) + (s) <=> Li(s)
        self.electrode = LatticePhase("electrode", [Species("electron", charge=-1.0)], molar_density=1.0)
        self.electrolyte = LatticePhase(
            "electrolyte",
            [Species("Li+", charge=1.0, thermo=ConstantCpThermo(h0=-5000.0)), Species("solvent")],
            molar_density=1.0e4,
            mole_fractions="Li+:0.1, solvent:0.9",
        )
        self.surf = SurfacePhase(
            "surf", [Species("(s)"), Species("Li(s)")], site_density=1.0e-5,
            coverages="(s):0.9, Li(s):0.1",
        )
        self.kin = InterfaceKinetics()
        for phase in (self.electrode, self.electrolyte, self.surf):
            self.kin.add_phase(phase)

    def add(self, beta):
        self.kin.add_reaction(
            Reaction(
                {"Li+": 1, "electron": 1, "(s)": 1},
                {"Li(s)": 1},
                ArrheniusRate(1.0e3),
                reversible=True,
                beta=beta,
            )
        )

    def test_potential_enters_equilibrium_constant(self):
        self.add(beta=0.0)
        kc0 = self.kin.equilibrium_constants()[0]
        kr0 = self.kin.rev_rate_constants()[0]
        self.kin.set_electric_potential(0, 0.05)
        kc1 = self.kin.equilibrium_constants()[0]
        # consuming the electron gives Δ(zFφ) = +F φ_electrode
        factor = np.exp(-FARADAY * 0.05 / (R_GAS * 298.15))
        self.assertAlmostEqual(kc1 / kc0 / factor, 1.0)
        self.assertAlmostEqual(self.kin.rev_rate_constants()[0] / kr0 * factor, 1.0)
        self.assertEqual(
            self.kin.rev_rate_constants()[0],
            self.kin.fwd_rate_constants()[0] / self.kin.equilibrium_constants()[0],
        )

    def test_symmetry_factor(self):
        self.add(beta=0.5)
        kf0 = self.kin.fwd_rate_constants()[0]
        self.kin.set_electric_potential(0, 0.05)
        factor = np.exp(-0.5 * FARADAY * 0.05 / (R_GAS * 298.15))
        self.assertAlmostEqual(self.kin.fwd_rate_constants()[0] / kf0 / factor, 1.0)

    def test_interface_current(self):
        self.add(beta=0.5)
        current = self.kin.interface_current(0)
        wdot = self.kin.net_production_rates()
        self.assertAlmostEqual(current, -FARADAY * wdot[0])
        self.assertAlmostEqual(
            self.kin.interface_current(1), FARADAY * wdot[self.kin.kinetics_species_index("Li+")]
        )


if __name__ == '__main__':
    unittest.main()
