"""Tests for the replay log."""

from __future__ import annotations

import pytest

from colony_sim.domain.enums import Op
from colony_sim.domain.exceptions import ColonySimError
from colony_sim.domain.values import Job, Pipeline
from colony_sim.infrastructure.config import GameConfig
from colony_sim.infrastructure.event_bus import EventBus, EventStore
from colony_sim.infrastructure.pipelines import PipelineCatalog, PipelineDef
from colony_sim.services.replay import (
    EnqueueJob,
    EnqueueMaintenance,
    EnqueuePipeline,
    InjectCorruption,
    ReplayLog,
    SimStart,
    SubmitPipeline,
    Tick,
    replay,
)
from colony_sim.services.simulation import Simulation


class TestReplayLog:
    def test_seeded_log_starts_with_sim_start(self) -> None:
        log = ReplayLog(seed=11)
        assert log.commands == [SimStart(seed=11)]
        assert log.seed == 11

    def test_missing_sim_start(self) -> None:
        log = ReplayLog()
        log.record(Tick())
        with pytest.raises(ColonySimError, match="SimStart"):
            _ = log.seed

    def test_tick_count(self) -> None:
        log = ReplayLog(seed=1)
        log.record(Tick())
        log.record(EnqueueMaintenance())
        log.record(Tick(dt=0.5))
        assert log.tick_count == 2
        assert len(log) == 4

    def test_simulation_records_inputs(self, default_config: GameConfig) -> None:
        sim = Simulation(default_config)
        job = Job(job_id=3, pipeline=Pipeline(ops=(Op.CRC,)))
        sim.enqueue(job)
        sim.inject_corruption(0.1)
        sim.step()
        assert sim.replay_log.commands[1:] == [
            EnqueueJob(job=job),
            InjectCorruption(amount=0.1),
            Tick(dt=1.0),
        ]

    def test_header_records_config_and_catalog(self, default_config: GameConfig) -> None:
        catalog = PipelineCatalog([PipelineDef(id="crc_only", ops=["Crc"], qos="Latency")])
        sim = Simulation(default_config, catalog=catalog)
        header = sim.replay_log.header
        assert header.seed == default_config.seed
        assert header.config == default_config.to_dict()
        assert header.pipelines == [
            {
                "id": "crc_only",
                "ops": ["Crc"],
                "qos": "Latency",
                "deadline_ms": 100,
                "payload_sz": 0,
                "mutation_tag": None,
            }
        ]

    def test_submission_recorded_before_its_tick(self, default_config: GameConfig) -> None:
        sim = Simulation(default_config)
        sim.step()
        definition = PipelineDef(id="custom", ops=["CanParse", "Crc"])
        sim.catalog.submit(definition)
        sim.step()
        assert sim.replay_log.commands[1:] == [
            Tick(),
            SubmitPipeline(definition=definition.model_dump()),
            Tick(),
        ]
        assert "custom" in sim.catalog


class TestReplay:
    def test_second_sim_start_rejected(self) -> None:
        log = ReplayLog(seed=1)
        log.record(SimStart(seed=2))
        with pytest.raises(ColonySimError, match="only appear once"):
            replay(log)

    def test_replayed_state_matches(self, default_config: GameConfig) -> None:
        sim = Simulation(default_config)
        for _ in range(20):
            sim.enqueue_pipeline("udp_telemetry_ingest")
            sim.enqueue_pipeline("can_bus_monitoring")
            sim.step()

        again = replay(sim.replay_log, default_config)
        assert again.tick == sim.tick
        assert again.now_ms == sim.now_ms
        assert again.colony.corruption_field.level == sim.colony.corruption_field.level
        assert [e.job_id for e in again.colony.queue] == [e.job_id for e in sim.colony.queue]
        assert [w.corruption for _, w in again.colony.iter_workers()] == [
            w.corruption for _, w in sim.colony.iter_workers()
        ]

    def test_recorded_config_wins_over_argument(self, bus: EventBus, store: EventStore) -> None:
        config = GameConfig(seed=21, scheduler="sjf", tick_scale="Seconds:5")
        sim = Simulation(config, event_bus=bus)
        for _ in range(30):
            sim.enqueue_pipeline("http_api_processing")
            sim.enqueue_pipeline("udp_telemetry_ingest")
            sim.step()
        original = store.query()

        again_bus = EventBus()
        again = EventStore()
        again_bus.subscribe_all(again.append)
        replayed = replay(sim.replay_log, GameConfig(), event_bus=again_bus)

        assert replayed.config == config
        assert again.query() == original

    def test_recorded_catalog_and_submissions_replayed(self, bus: EventBus, store: EventStore) -> None:
        catalog = PipelineCatalog.with_vanilla()
        catalog.submit(PipelineDef(id="custom", ops=["Crc", "Export"], qos="Latency", deadline_ms=40))
        catalog.apply_pending()
        sim = Simulation(GameConfig(seed=8), event_bus=bus, catalog=catalog)
        for tick in range(1, 25):
            sim.enqueue_pipeline("custom")
            if tick == 10:
                sim.catalog.submit(PipelineDef(id="custom", ops=["Yolo", "Crc"]))
                sim.catalog.submit(PipelineDef(id="broken", ops=["Warp"]))
            sim.step()
        original = store.query()

        again_bus = EventBus()
        again = EventStore()
        again_bus.subscribe_all(again.append)
        replayed = replay(sim.replay_log, event_bus=again_bus)

        assert again.query() == original
        assert replayed.replay_log == sim.replay_log
        assert replayed.catalog.get("custom").pipeline.ops == (Op.YOLO, Op.CRC)
        assert "broken" not in replayed.catalog

    def test_header_without_config_uses_argument(self) -> None:
        log = ReplayLog(seed=4)
        log.record(EnqueuePipeline(pipeline_id="modbus_poll"))
        log.record(Tick())
        sim = replay(log, GameConfig(seed=1, scheduler="fcfs"))
        assert sim.config.seed == 4
        assert sim.config.scheduler == "fcfs"
