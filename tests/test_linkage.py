import unittest
import numpy as np
from surfkin.errors import InvalidReactionData
from surfkin.linkage import PhaseLinkage, PhaseStability, apply_phase_overrides


class TestPhaseLinkage(unittest.TestCase):
    def setUp(self):
        # phases: 0 gas, 1 surface, 2 bulk
        self.link = PhaseLinkage()
        for _ in range(3):
            self.link.add_phase()
        self.link.add_reaction([0, 1], [1])     # gas + surf -> surf
        self.link.add_reaction([1], [1, 2])     # surf -> surf + bulk
        self.link.add_reaction([1], [0])        # surf -> gas

    def test_defaults(self):
        self.assertTrue(self.link.nominal)
        self.assertTrue(self.link.exists(2))
        self.assertEqual(self.link.stability(2), PhaseStability.STABLE)
        reactant, product = self.link.masks
        self.assertEqual(reactant.shape, (3, 3))
        self.assertTrue(self.link.is_product_phase(1, 2))
        self.assertFalse(self.link.is_reactant_phase(1, 2))

    def test_nominal_leaves_rates_alone(self):
        ropf = np.array([1.0, 2.0, 3.0])
        ropr = np.array([0.5, 0.5, 0.5])
        f, r = apply_phase_overrides(self.link, ropf, ropr)
        np.testing.assert_array_equal(f, ropf)
        np.testing.assert_array_equal(r, ropr)

    def test_missing_reactant_phase_blocks_forward(self):
        self.link.set_existence(0, False)
        self.assertEqual(self.link.stability(0), PhaseStability.UNSTABLE)
        f, r = apply_phase_overrides(self.link, np.array([1.0, 2.0, 3.0]), np.array([0.5, 0.5, 0.5]))
        self.assertEqual(f[0], 0.0)
        # running backward would create gas species as well
        self.assertEqual(r[0], 0.0)
        # reaction 2 would create gas species, which the missing phase cannot hold
        self.assertEqual(r[2], 0.0)
        self.assertEqual(f[2], 0.0)

    def test_unstable_product_phase_clips_net_creation(self):
        self.link.set_stability(2, False)
        f, r = apply_phase_overrides(self.link, np.array([1.0, 2.0, 3.0]), np.array([0.5, 0.5, 0.5]))
        self.assertEqual(f[1], r[1])
        self.assertEqual(f[1], 0.5)
        self.assertEqual(f[0], 1.0)

    def test_unstable_phase_may_be_consumed(self):
        self.link.set_stability(2, False)
        f, r = apply_phase_overrides(self.link, np.array([0.0, 0.2, 0.0]), np.array([0.0, 0.9, 0.0]))
        self.assertEqual(f[1], 0.2)
        self.assertEqual(r[1], 0.9)

    def test_existence_restores_stability(self):
        version = self.link.version
        self.link.set_existence(2, False)
        self.link.set_existence(2, True)
        self.assertEqual(self.link.stability(2), PhaseStability.STABLE)
        self.assertTrue(self.link.nominal)
        self.assertGreater(self.link.version, version)

    def test_phases_before_reactions(self):
        with self.assertRaises(InvalidReactionData):
            self.link.add_phase()


if __name__ == '__main__':
    unittest.main()
