"""Tests for the command-line interface and the plain console output."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from colony_sim.cli import main
from colony_sim.infrastructure.config import GameConfig, load_config
from colony_sim.infrastructure.event_bus import EventBus, EventStore
from colony_sim.infrastructure.serialization import load_events, load_replay
from colony_sim.measurement.kpis import KpiReport
from colony_sim.presentation.console import ConsoleDashboard, _sparkline
from colony_sim.services.replay import replay
from colony_sim.services.simulation import Simulation


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as info:
        main(argv)
    return info.value.code


class TestCli:
    def test_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["info"]) == 0
        out = capsys.readouterr().out
        assert "MaintenanceCool" in out
        assert "udp_telemetry_ingest" in out

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--version"]) == 0
        assert "colony-sim" in capsys.readouterr().out

    def test_init_config(self, tmp_path: Path) -> None:
        path = tmp_path / "colony.yaml"
        assert _run(["init-config", str(path)]) == 0
        assert load_config(path) == GameConfig()
        assert _run(["init-config", str(path)]) == 1
        assert _run(["init-config", str(path), "--force"]) == 0

    def test_validate_pipelines(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "pipelines.yaml"
        path.write_text(
            "- id: good\n  ops: [Crc]\n- id: bad\n  ops: [Crc, Warp]\n",
            encoding="utf-8",
        )
        assert _run(["validate-pipelines", str(path)]) == 1
        out = capsys.readouterr().out
        assert "1/2 definitions valid" in out
        assert "Warp" in out

    def test_missing_file_reports_error(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["validate-pipelines", str(tmp_path / "absent.yaml")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_run_and_replay(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        events = tmp_path / "events.jsonl"
        replay_log = tmp_path / "replay.jsonl"
        code = _run([
            "run", "--ticks", "20", "--seed", "5", "--plain",
            "--mix", "modbus_poll,http_ingest", "--maintenance-every", "10",
            "--events-out", str(events), "--replay-out", str(replay_log),
        ])
        assert code == 0
        assert "KPIs" in capsys.readouterr().out
        assert load_events(events)
        log = load_replay(replay_log)
        assert log.seed == 5
        assert log.tick_count == 20

        assert _run(["replay", str(replay_log), "--plain"]) == 0
        assert "20 ticks, seed=5" in capsys.readouterr().out

    def test_replay_matches_run_with_scheduler_and_pipelines(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        pipelines = tmp_path / "pipelines.yaml"
        pipelines.write_text(
            "- id: custom\n  ops: [CanParse, Crc, Export]\n  qos: Latency\n  deadline_ms: 30\n",
            encoding="utf-8",
        )
        events = tmp_path / "events.jsonl"
        replay_log = tmp_path / "replay.jsonl"
        code = _run([
            "run", "--ticks", "40", "--seed", "17", "--plain",
            "--scheduler", "sjf", "--pipelines", str(pipelines),
            "--mix", "custom,modbus_poll,http_ingest", "--arrivals", "3",
            "--events-out", str(events), "--replay-out", str(replay_log),
        ])
        assert code == 0
        capsys.readouterr()

        log = load_replay(replay_log)
        assert log.header.config["scheduler"] == "sjf"
        assert "custom" in [d["id"] for d in log.header.pipelines]

        bus = EventBus()
        store = EventStore()
        bus.subscribe_all(store.append)
        sim = replay(log, event_bus=bus)
        assert sim.config.scheduler == "sjf"
        assert store.query() == load_events(events)

        assert _run(["replay", str(replay_log), "--plain"]) == 0
        assert "40 ticks, seed=17" in capsys.readouterr().out

    def test_run_unknown_mix(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["run", "--ticks", "1", "--mix", "nope", "--plain"]) == 1
        assert "nope" in capsys.readouterr().err


class TestConsole:
    def test_plain_tables(self) -> None:
        sim = Simulation(GameConfig())
        sim.enqueue_pipeline("modbus_poll")
        sim.step()
        buf = io.StringIO()
        dashboard = ConsoleDashboard(use_rich=False, file=buf)
        dashboard.print_yards(sim.colony)
        dashboard.print_workers(sim.colony)
        dashboard.print_kpis(KpiReport(completed=1, deadline_hits=1, faults_by_kind={"transient": 2}))
        text = buf.getvalue()
        assert "Throttle" in text
        assert "Corruption" in text
        assert "100.0%" in text
        assert "transient" in text

    def test_rich_output(self) -> None:
        buf = io.StringIO()
        ConsoleDashboard(file=buf).print_kpis(KpiReport())
        assert "Fleet KPIs" in buf.getvalue()

    def test_sparkline(self) -> None:
        assert _sparkline([]) == ""
        line = _sparkline([0.0, 0.5, 1.0])
        assert line[0] == " " and line[-1] == "█"
        assert len(_sparkline([float(i) for i in range(500)], width=40)) == 40
