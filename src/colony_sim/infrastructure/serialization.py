"""Serialization utilities for the colony simulation.

Provides ``to_dict`` / ``from_dict`` conversion for domain events, jobs and
replay commands, plus JSON-lines persistence for event logs and replay
logs.

Design goals:
- stdlib ``json`` only; every ``to_dict`` output is JSON-serializable.
- enums are stored by ``.value`` and op sequences as lists of op names.
- ``from_dict`` reconstructors raise ``ValueError`` for unrecoverable data.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import fields
from enum import Enum
from pathlib import Path
from typing import Any

from colony_sim.domain import events as ev
from colony_sim.domain.enums import FaultKind, Op, QoS
from colony_sim.domain.values import Job, Pipeline
from colony_sim.services.replay import (
    EnqueueJob,
    EnqueueMaintenance,
    EnqueuePipeline,
    InjectCorruption,
    ReplayCommand,
    ReplayLog,
    SimStart,
    SubmitPipeline,
    Tick,
)

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Generic helpers                                                             #
# =========================================================================== #

def _plain(value: Any) -> Any:
    """Enum members to their value, tuples to lists; everything else as is."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    return value


# =========================================================================== #
#  Events                                                                      #
# =========================================================================== #

_EVENT_TYPES: dict[str, type[ev.DomainEvent]] = {
    cls.__name__: cls
    for cls in (
        ev.JobEnqueued,
        ev.JobDispatched,
        ev.OpProgressed,
        ev.OpFaulted,
        ev.JobRetryScheduled,
        ev.JobCompleted,
        ev.JobAbandoned,
        ev.WorkerRecovered,
        ev.PipelineUpdated,
        ev.PipelineRejected,
        ev.TickCompleted,
    )
}

# field name -> decoder for fields that are not plain JSON scalars
_EVENT_FIELD_DECODERS: dict[str, Any] = {
    "qos": QoS,
    "op": Op,
    "kind": FaultKind,
    "ops": lambda names: tuple(Op(n) for n in names),
}


def event_to_dict(event: ev.DomainEvent) -> dict[str, Any]:
    data: dict[str, Any] = {"type": type(event).__name__}
    for f in fields(event):
        data[f.name] = _plain(getattr(event, f.name))
    return data


def event_from_dict(data: dict[str, Any]) -> ev.DomainEvent:
    name = data.get("type")
    cls = _EVENT_TYPES.get(name)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown event type: {name!r}")
    valid = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in valid:
            continue
        decoder = _EVENT_FIELD_DECODERS.get(key)
        kwargs[key] = decoder(value) if decoder is not None and value is not None else value
    return cls(**kwargs)


# =========================================================================== #
#  Jobs                                                                        #
# =========================================================================== #

def job_to_dict(job: Job) -> dict[str, Any]:
    return {
        "job_id": job.job_id,
        "ops": [op.value for op in job.pipeline.ops],
        "mutation_tag": job.pipeline.mutation_tag,
        "qos": job.qos.value,
        "deadline_ms": job.deadline_ms,
        "payload_sz": job.payload_sz,
    }


def job_from_dict(data: dict[str, Any]) -> Job:
    return Job(
        job_id=int(data["job_id"]),
        pipeline=Pipeline(
            ops=tuple(Op(name) for name in data["ops"]),
            mutation_tag=data.get("mutation_tag"),
        ),
        qos=QoS(data.get("qos", QoS.BALANCED.value)),
        deadline_ms=int(data.get("deadline_ms", 100)),
        payload_sz=int(data.get("payload_sz", 0)),
    )


# =========================================================================== #
#  Replay commands                                                             #
# =========================================================================== #

def command_to_dict(command: ReplayCommand) -> dict[str, Any]:
    if isinstance(command, SimStart):
        return {
            "cmd": "SimStart",
            "seed": command.seed,
            "config": command.config,
            "pipelines": None if command.pipelines is None else list(command.pipelines),
        }
    if isinstance(command, EnqueueJob):
        return {"cmd": "EnqueueJob", "job": job_to_dict(command.job)}
    if isinstance(command, EnqueuePipeline):
        return {"cmd": "EnqueuePipeline", "pipeline_id": command.pipeline_id}
    if isinstance(command, EnqueueMaintenance):
        return {"cmd": "EnqueueMaintenance"}
    if isinstance(command, InjectCorruption):
        return {"cmd": "InjectCorruption", "amount": command.amount}
    if isinstance(command, SubmitPipeline):
        return {"cmd": "SubmitPipeline", "definition": dict(command.definition)}
    if isinstance(command, Tick):
        return {"cmd": "Tick", "dt": command.dt}
    raise TypeError(f"Cannot serialize replay command {command!r}")


def command_from_dict(data: dict[str, Any]) -> ReplayCommand:
    name = data.get("cmd")
    if name == "SimStart":
        return SimStart(
            seed=int(data["seed"]),
            config=data.get("config"),
            pipelines=data.get("pipelines"),
        )
    if name == "EnqueueJob":
        return EnqueueJob(job=job_from_dict(data["job"]))
    if name == "EnqueuePipeline":
        return EnqueuePipeline(pipeline_id=str(data["pipeline_id"]))
    if name == "EnqueueMaintenance":
        return EnqueueMaintenance()
    if name == "InjectCorruption":
        return InjectCorruption(amount=float(data["amount"]))
    if name == "SubmitPipeline":
        return SubmitPipeline(definition=data["definition"])
    if name == "Tick":
        return Tick(dt=float(data.get("dt", 1.0)))
    raise ValueError(f"Unknown replay command: {name!r}")


# =========================================================================== #
#  JSON-lines files                                                            #
# =========================================================================== #

def _write_jsonl(rows: Iterable[dict[str, Any]], path: str | Path) -> int:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as fh:
        for row in rows:
            fh.write(json.dumps(row, sort_keys=True))
            fh.write("\n")
            count += 1
    return count


def _read_jsonl(path: str | Path) -> list[dict[str, Any]]:
    rows = []
    with Path(path).open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({exc.msg})") from exc
    return rows


def dump_events(events: Iterable[ev.DomainEvent], path: str | Path) -> int:
    """Write *events* as JSON lines.  Returns the number written."""
    count = _write_jsonl((event_to_dict(e) for e in events), path)
    logger.info("Wrote %d events to %s", count, path)
    return count


def load_events(path: str | Path) -> list[ev.DomainEvent]:
    return [event_from_dict(row) for row in _read_jsonl(path)]


def save_replay(log: ReplayLog, path: str | Path) -> int:
    count = _write_jsonl((command_to_dict(c) for c in log), path)
    logger.info("Wrote replay log with %d commands to %s", count, path)
    return count


def load_replay(path: str | Path) -> ReplayLog:
    log = ReplayLog()
    for row in _read_jsonl(path):
        log.record(command_from_dict(row))
    return log
