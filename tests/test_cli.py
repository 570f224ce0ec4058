import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from surfkin.cli import DEMO_CONFIG, app


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write_config(self, config):
        path = Path(self.tmp.name) / "config.json"
        path.write_text(json.dumps(config))
        return path

    def test_demo(self):
        result = self.runner.invoke(app, ["demo"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual(data["task"], "steady-state")
        self.assertAlmostEqual(sum(data["coverages"].values()), 1.0)
        self.assertGreater(data["coverages"]["H(S)"], 0.5)

    def test_run_rates(self):
        config = dict(DEMO_CONFIG, task="rates")
        out = Path(self.tmp.name) / "out.json"
        result = self.runner.invoke(app, ["run", str(self.write_config(config)), "--output", str(out)])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(out.read_text())
        self.assertEqual(len(data["reactions"]), 3)
        self.assertEqual(data["reactions"][0], "H2 + 2 PT(S) => 2 H(S)")
        self.assertEqual(data["coverages"], {"PT(S)": 1.0, "H(S)": 0.0})
        self.assertLess(data["net_production_rates"]["H2"], 0.0)

    def test_run_advance(self):
        config = dict(DEMO_CONFIG, task="advance", solver={"dt": 1.0e-3})
        result = self.runner.invoke(app, ["run", str(self.write_config(config))])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertGreater(data["coverages"]["H(S)"], 0.5)

    def test_run_reports_errors(self):
        config = dict(DEMO_CONFIG)
        config["reactions"] = [
            {"reactants": {"O2": 1}, "products": {"H2": 1}, "rate": {"type": "arrhenius", "A": 1.0}}
        ]
        result = self.runner.invoke(app, ["run", str(self.write_config(config))])
        self.assertEqual(result.exit_code, 1)

    def test_unknown_task(self):
        config = dict(DEMO_CONFIG, task="optimize")
        result = self.runner.invoke(app, ["run", str(self.write_config(config))])
        self.assertEqual(result.exit_code, 1)


if __name__ == '__main__':
    unittest.main()
