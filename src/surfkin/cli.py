"""Command-line entrypoints for surfkin."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Dict

import typer

from surfkin.config import build_kinetics
from surfkin.errors import KineticsError
from surfkin.interface import InterfaceKinetics
from surfkin.surface_solver import SteadyStateMethod

app = typer.Typer(add_completion=False)

logger = logging.getLogger(__name__)

DEMO_CONFIG: Dict[str, Any] = {
    "species": {
        "H2": {"molar_mass": 2.016e-3, "thermo": {"s0": 130.68}},
        "H": {"molar_mass": 1.008e-3, "thermo": {"h0": 217998.0, "s0": 114.72}},
        "AR": {"molar_mass": 39.948e-3, "thermo": {"s0": 154.85}},
        "H(S)": {"thermo": {"h0": -32000.0, "s0": 40.0}},
    },
    "phases": [
        {
            "name": "gas",
            "type": "ideal-gas",
            "species": ["H2", "H", "AR"],
            "T": 500.0,
            "P": 101325.0,
            "X": "H2:0.1, AR:0.9",
        },
        {
            "name": "Pt_surf",
            "type": "surface",
            "species": ["PT(S)", "H(S)"],
            "site_density": 2.7063e-5,
            "T": 500.0,
            "coverages": "PT(S):1",
        },
    ],
    "reactions": [
        {
            "reactants": {"H2": 1, "PT(S)": 2},
            "products": {"H(S)": 2},
            "orders": {"PT(S)": 1},
            "rate": {"type": "arrhenius", "A": 4.4579e4, "b": 0.5, "Ea": 0.0},
        },
        {
            "reactants": {"H": 1, "PT(S)": 1},
            "products": {"H(S)": 1},
            "rate": {"type": "sticking", "A": 1.0},
        },
        {
            "reactants": {"H(S)": 2},
            "products": {"H2": 1, "PT(S)": 2},
            "rate": {"type": "arrhenius", "A": 3.7e17, "Ea": 67400.0},
        },
    ],
}


def _summary(kinetics: InterfaceKinetics) -> Dict[str, Any]:
    names = [kinetics.species_name(k) for k in range(kinetics.n_species)]
    data: Dict[str, Any] = {
        "species": names,
        "net_production_rates": dict(zip(names, kinetics.net_production_rates().tolist())),
        "reactions": [r.equation for r in kinetics.reactions],
        "fwd_rate_constants": kinetics.fwd_rate_constants().tolist(),
        "rev_rate_constants": kinetics.rev_rate_constants().tolist(),
        "net_rates_of_progress": kinetics.net_rates_of_progress().tolist(),
    }
    surface = kinetics.surface_phase
    if surface is not None:
        data["coverages"] = dict(zip(surface.species_names, surface.coverages.tolist()))
    return data


def _execute(config: Dict[str, Any]) -> Dict[str, Any]:
    kinetics = build_kinetics(config)
    task = config.get("task", "rates").lower()
    solver = config.get("solver", {})

    if task == "steady-state":
        kinetics.solve_pseudo_steady_state(
            SteadyStateMethod(solver.get("method", "auto").lower()),
            float(solver.get("time_scale", 1.0)),
        )
    elif task == "advance":
        kinetics.advance_coverages(
            float(solver["dt"]),
            rtol=float(solver.get("rtol", 1e-7)),
            atol=float(solver.get("atol", 1e-14)),
            max_step_size=float(solver.get("max_step_size", 0.0)),
            max_steps=int(solver.get("max_steps", 20000)),
            max_err_test_fails=int(solver.get("max_err_test_fails", 7)),
        )
    elif task != "rates":
        raise ValueError(f"Unknown task: {task}")

    data = _summary(kinetics)
    data["task"] = task
    return data


def _emit(data: Dict[str, Any], output: Path | None) -> None:
    json_output = json.dumps(data, indent=2)
    typer.echo(json_output)
    if output:
        with open(output, "w") as f:
            f.write(json_output)


@app.command()
def run(
    config_file: Annotated[
        Path, typer.Argument(help="Path to JSON configuration file.")
    ],
    output: Annotated[
        Path | None, typer.Option(help="Path to save output JSON.")
    ] = None,
    log_level: Annotated[
        str, typer.Option(help="Logging level (DEBUG, INFO, WARNING, ...).")
    ] = "WARNING",
) -> None:
    """Evaluate surface kinetics from a config file."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    with open(config_file, "r") as f:
        config = json.load(f)

    try:
        data = _execute(config)
    except (KineticsError, ValueError, KeyError) as err:
        logger.error("Run failed: %s", err)
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1) from err
    _emit(data, output)


@app.command()
def demo(
    temperature: Annotated[float, typer.Option(help="Temperature (K).")] = 500.0,
    output: Annotated[
        Path | None, typer.Option(help="Path to save output JSON.")
    ] = None,
) -> None:
    """Solve for the steady hydrogen coverage of a platinum surface."""
    config = json.loads(json.dumps(DEMO_CONFIG))
    for phase in config["phases"]:
        phase["T"] = temperature
    config["task"] = "steady-state"
    try:
        data = _execute(config)
    except KineticsError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(code=1) from err
    _emit(data, output)
