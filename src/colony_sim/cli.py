"""Command-line interface for the colony simulation.

Provides subcommands for running a headless simulation, generating a
default config, validating pipeline definition files, replaying a recorded
run and querying package information.  Each subcommand imports its
dependencies lazily.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    colony-sim = "colony_sim.cli:main"

Usage examples::

    colony-sim init-config colony.yaml
    colony-sim run --config colony.yaml --ticks 2000 --arrivals 3
    colony-sim run --ticks 500 --replay-out run.jsonl --events-out events.jsonl
    colony-sim replay run.jsonl --config colony.yaml
    colony-sim validate-pipelines mods/pipelines.yaml
    colony-sim info
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="colony-sim",
        description=(
            "Colony fleet simulation -- deadline-bound pipelines on heat, "
            "power and bandwidth constrained workers."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show package version and exit.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- run ---------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Run a headless simulation.",
        description="Run the colony for a number of ticks with a synthetic workload.",
    )
    run_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config (created with defaults if missing).",
    )
    run_parser.add_argument("--ticks", type=int, default=1000, help="Ticks to simulate.")
    run_parser.add_argument("--seed", type=int, default=None, help="Override the config seed.")
    run_parser.add_argument(
        "--scheduler",
        type=str,
        default=None,
        choices=["deadline", "fcfs", "sjf"],
        help="Override the config scheduler.",
    )
    run_parser.add_argument(
        "--pipelines",
        type=str,
        default=None,
        help="YAML file of extra pipeline definitions to add to the catalog.",
    )
    run_parser.add_argument(
        "--mix",
        type=str,
        default=None,
        help="Comma-separated pipeline ids to enqueue round-robin (default: whole catalog).",
    )
    run_parser.add_argument(
        "--arrivals",
        type=int,
        default=2,
        help="Jobs enqueued before every tick (default: 2).",
    )
    run_parser.add_argument(
        "--maintenance-every",
        type=int,
        default=0,
        help="Enqueue a maintenance job every N ticks (0 = never).",
    )
    run_parser.add_argument(
        "--events-out",
        type=str,
        default=None,
        help="Write every event to this JSON-lines file.",
    )
    run_parser.add_argument(
        "--replay-out",
        type=str,
        default=None,
        help="Write the replay log to this JSON-lines file.",
    )
    run_parser.add_argument(
        "--plain",
        action="store_true",
        default=False,
        help="Plain-text output instead of rich tables.",
    )

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Write a default config file.",
        description="Write the default GameConfig as YAML.",
    )
    init_parser.add_argument("path", type=str, help="Destination YAML file.")
    init_parser.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Overwrite an existing file.",
    )

    # -- validate-pipelines ------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate-pipelines",
        help="Validate a pipeline definition file.",
        description="Load a YAML list of pipeline definitions and resolve every op and QoS.",
    )
    validate_parser.add_argument("path", type=str, help="Pipeline YAML file.")

    # -- replay ------------------------------------------------------------
    replay_parser = subparsers.add_parser(
        "replay",
        help="Re-run a recorded replay log.",
        description="Rebuild a simulation from a replay log and print its KPIs.",
    )
    replay_parser.add_argument("path", type=str, help="Replay JSON-lines file.")
    replay_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config for logs that do not record one.",
    )
    replay_parser.add_argument("--plain", action="store_true", default=False)

    subparsers.add_parser(
        "info",
        help="Show version, ops and built-in pipelines.",
        description="Display version, the op vocabulary and the vanilla pipeline catalog.",
    )

    return parser


# =========================================================================
# Subcommand handlers
# =========================================================================

def _cmd_run(args: argparse.Namespace) -> int:
    """Handle the ``run`` subcommand."""
    import dataclasses
    import time

    from colony_sim.infrastructure.config import GameConfig, load_config
    from colony_sim.infrastructure.event_bus import EventBus, EventStore
    from colony_sim.infrastructure.pipelines import PipelineCatalog, load_pipeline_defs
    from colony_sim.infrastructure.serialization import dump_events, save_replay
    from colony_sim.measurement.kpis import FleetKpis
    from colony_sim.presentation.console import ConsoleDashboard
    from colony_sim.services.simulation import Simulation

    config = load_config(args.config) if args.config else GameConfig()
    overrides: dict[str, Any] = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.scheduler is not None:
        overrides["scheduler"] = args.scheduler
    if overrides:
        config = dataclasses.replace(config, **overrides)

    catalog = PipelineCatalog.with_vanilla()
    if args.pipelines:
        for definition in load_pipeline_defs(args.pipelines):
            catalog.submit(definition)
        for event in catalog.apply_pending():
            print(f"  {type(event).__name__}: {event.pipeline_id}")

    mix = [p.strip() for p in args.mix.split(",")] if args.mix else catalog.ids()
    for pipeline_id in mix:
        catalog.get(pipeline_id)

    bus = EventBus()
    kpis = FleetKpis(bus)
    store = EventStore()
    if args.events_out:
        bus.subscribe_all(store.append)
    sim = Simulation(config, event_bus=bus, catalog=catalog)

    print(f"Running {args.ticks} ticks (seed={config.seed}, scheduler={config.scheduler}, "
          f"scale={sim.clock.display()})...")
    t0 = time.time()
    cursor = 0
    for tick in range(1, args.ticks + 1):
        for _ in range(args.arrivals):
            sim.enqueue_pipeline(mix[cursor % len(mix)])
            cursor += 1
        if args.maintenance_every and tick % args.maintenance_every == 0:
            sim.enqueue_maintenance()
        sim.step()
    elapsed = time.time() - t0

    dashboard = ConsoleDashboard(use_rich=not args.plain)
    dashboard.print_yards(sim.colony)
    dashboard.print_workers(sim.colony)
    dashboard.print_kpis(kpis.report())
    dashboard.print_trajectory(kpis.corruption_history)
    print(f"Completed in {elapsed:.2f}s; {len(sim.colony.queue)} jobs still queued")

    if args.events_out:
        count = dump_events(store.query(), args.events_out)
        print(f"Wrote {count} events to {args.events_out}")
    if args.replay_out:
        count = save_replay(sim.replay_log, args.replay_out)
        print(f"Wrote {count} replay commands to {args.replay_out}")
    return 0


def _cmd_init_config(args: argparse.Namespace) -> int:
    """Handle the ``init-config`` subcommand."""
    from pathlib import Path

    from colony_sim.infrastructure.config import GameConfig, save_config

    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"Error: {path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    save_config(GameConfig(), path)
    print(f"Wrote default config to {path}")
    return 0


def _cmd_validate_pipelines(args: argparse.Namespace) -> int:
    """Handle the ``validate-pipelines`` subcommand."""
    from colony_sim.domain.exceptions import UnknownVocabularyError
    from colony_sim.infrastructure.pipelines import load_pipeline_defs

    definitions = load_pipeline_defs(args.path)
    failures = 0
    for definition in definitions:
        try:
            pipeline = definition.to_pipeline()
            qos = definition.qos_value()
        except UnknownVocabularyError as exc:
            failures += 1
            print(f"  [invalid] {definition.id}: {exc}")
            continue
        ops = " -> ".join(op.value for op in pipeline.ops)
        print(f"  [ok]      {definition.id}: {ops} ({qos.value}, {definition.deadline_ms} ms)")

    print(f"{len(definitions) - failures}/{len(definitions)} definitions valid")
    return 1 if failures else 0


def _cmd_replay(args: argparse.Namespace) -> int:
    """Handle the ``replay`` subcommand."""
    from colony_sim.infrastructure.config import load_config
    from colony_sim.infrastructure.event_bus import EventBus
    from colony_sim.infrastructure.serialization import load_replay
    from colony_sim.measurement.kpis import FleetKpis
    from colony_sim.presentation.console import ConsoleDashboard
    from colony_sim.services.replay import replay

    log = load_replay(args.path)
    config = load_config(args.config) if args.config else None
    if config is not None and log.header.config is not None:
        logger.info("Replay log carries its own config; ignoring %s", args.config)
    bus = EventBus()
    kpis = FleetKpis(bus)
    sim = replay(log, config, event_bus=bus)

    print(f"Replayed {len(log)} commands ({log.tick_count} ticks, seed={log.seed})")
    ConsoleDashboard(use_rich=not args.plain).print_kpis(kpis.report())
    print(repr(sim))
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from colony_sim import __version__
    from colony_sim.domain.enums import Op, SchedPolicy
    from colony_sim.infrastructure.pipelines import vanilla_pipeline_defs

    print(f"colony-sim v{__version__}")
    print()

    print("Ops (cost ms / work units):")
    for op in Op:
        ingress = " [ingress]" if op.is_ingress else ""
        print(f"  {op.value:<16} {op.cost_ms:>3} ms  {op.work_units:.1f}{ingress}")
    print()

    print("Built-in pipelines:")
    for definition in vanilla_pipeline_defs():
        print(f"  {definition.id:<22} {' -> '.join(definition.ops)} "
              f"({definition.qos}, {definition.deadline_ms} ms, {definition.payload_sz} B)")
    print()

    print("Schedulers: " + ", ".join(p.value for p in SchedPolicy))
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.version:
        from colony_sim import __version__
        print(f"colony-sim {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers: dict[str, Any] = {
        "run": _cmd_run,
        "init-config": _cmd_init_config,
        "validate-pipelines": _cmd_validate_pipelines,
        "replay": _cmd_replay,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
