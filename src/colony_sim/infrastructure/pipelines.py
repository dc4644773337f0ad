"""Pipeline content boundary.

Content files describe pipelines with plain strings.  ``PipelineDef`` is the
pydantic model for one such definition, and this module holds the *only*
translation tables from content strings to the closed ``Op`` / ``QoS``
vocabularies.  ``PipelineCatalog`` keeps the validated pipelines the
simulation enqueues from and applies hot-swapped definitions between ticks.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from colony_sim.domain.enums import Op, QoS
from colony_sim.domain.events import DomainEvent, PipelineRejected, PipelineUpdated
from colony_sim.domain.exceptions import (
    ColonySimError,
    ConfigurationError,
    UnknownOpError,
    UnknownPipelineError,
    UnknownQoSError,
)
from colony_sim.domain.values import Job, Pipeline

logger = logging.getLogger(__name__)

_OP_TABLE: dict[str, Op] = {
    "UdpDemux": Op.UDP_DEMUX,
    "Decode": Op.DECODE,
    "Kalman": Op.KALMAN,
    "Export": Op.EXPORT,
    "HttpParse": Op.HTTP_PARSE,
    "HttpExport": Op.HTTP_EXPORT,
    "Fft": Op.FFT,
    "Yolo": Op.YOLO,
    "Crc": Op.CRC,
    "CanParse": Op.CAN_PARSE,
    "TcpSessionize": Op.TCP_SESSIONIZE,
    "ModbusMap": Op.MODBUS_MAP,
    "MaintenanceCool": Op.MAINTENANCE_COOL,
}

_QOS_TABLE: dict[str, QoS] = {
    "Throughput": QoS.THROUGHPUT,
    "Latency": QoS.LATENCY,
    "Balanced": QoS.BALANCED,
}


def parse_op(token: str) -> Op:
    try:
        return _OP_TABLE[token]
    except KeyError:
        raise UnknownOpError(token) from None


def parse_qos(token: str) -> QoS:
    try:
        return _QOS_TABLE[token]
    except KeyError:
        raise UnknownQoSError(token) from None


# ===================================================================== #
#  Pipeline definitions                                                  #
# ===================================================================== #

class PipelineDef(BaseModel):
    """External, string-typed description of a pipeline."""

    id: str = Field(min_length=1, description="Catalog id of the pipeline")
    ops: list[str] = Field(min_length=1, description="Op names in execution order")
    qos: str = Field(default="Balanced", description="QoS class name")
    deadline_ms: int = Field(default=100, ge=0, description="Relative deadline budget")
    payload_sz: int = Field(default=0, ge=0, description="Payload size in bytes")
    mutation_tag: str | None = Field(default=None, description="Opaque mutation marker")

    def to_pipeline(self) -> Pipeline:
        """Translate to a domain ``Pipeline``.  Raises ``UnknownOpError``."""
        return Pipeline(
            ops=tuple(parse_op(token) for token in self.ops),
            mutation_tag=self.mutation_tag,
        )

    def qos_value(self) -> QoS:
        """Translate ``qos``.  Raises ``UnknownQoSError``."""
        return parse_qos(self.qos)

    @classmethod
    def from_pipeline(
        cls,
        pipeline_id: str,
        pipeline: Pipeline,
        qos: QoS = QoS.BALANCED,
        deadline_ms: int = 100,
        payload_sz: int = 0,
    ) -> PipelineDef:
        return cls(
            id=pipeline_id,
            ops=[op.value for op in pipeline.ops],
            qos=qos.value,
            deadline_ms=deadline_ms,
            payload_sz=payload_sz,
            mutation_tag=pipeline.mutation_tag,
        )


def vanilla_pipeline_defs() -> list[PipelineDef]:
    """Built-in pipelines shipped with the simulation."""
    return [
        PipelineDef(
            id="udp_telemetry_ingest",
            ops=["UdpDemux", "Decode", "Kalman", "Export"],
            qos="Balanced",
            deadline_ms=50,
            payload_sz=4096,
        ),
        PipelineDef(
            id="http_api_processing",
            ops=["HttpParse", "Decode", "Fft"],
            qos="Latency",
            deadline_ms=100,
            payload_sz=8192,
        ),
        PipelineDef(
            id="can_bus_monitoring",
            ops=["CanParse", "Crc", "Kalman"],
            qos="Throughput",
            deadline_ms=10,
            payload_sz=64,
        ),
        PipelineDef(id="http_ingest", ops=["HttpParse", "HttpExport"], payload_sz=1024),
        PipelineDef(id="modbus_poll", ops=["Decode", "Kalman", "Export"], payload_sz=256),
    ]


def load_pipeline_defs(path: str | Path) -> list[PipelineDef]:
    """Read a YAML list of pipeline definitions.

    Only the document shape and field types are checked here; op and QoS
    names are resolved when a definition enters a catalog.
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {path}: {exc}", path=str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in {path}: {exc}", path=str(path)) from exc

    if raw is None:
        return []
    if isinstance(raw, dict) and "pipelines" in raw:
        raw = raw["pipelines"]
    if not isinstance(raw, list):
        raise ConfigurationError(
            f"{path} must contain a list of pipeline definitions", path=str(path)
        )
    try:
        return [PipelineDef.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid pipeline definition in {path}: {exc}", path=str(path)
        ) from exc


def save_pipeline_defs(defs: Iterable[PipelineDef], path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [d.model_dump(exclude_none=True) for d in defs]
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


# ===================================================================== #
#  Catalog                                                               #
# ===================================================================== #

@dataclass(frozen=True)
class CatalogEntry:
    """A definition together with its validated domain translation."""

    definition: PipelineDef
    pipeline: Pipeline
    qos: QoS

    @classmethod
    def from_def(cls, definition: PipelineDef) -> CatalogEntry:
        return cls(
            definition=definition,
            pipeline=definition.to_pipeline(),
            qos=definition.qos_value(),
        )

    def make_job(self, job_id: int) -> Job:
        return Job(
            job_id=job_id,
            pipeline=self.pipeline,
            qos=self.qos,
            deadline_ms=self.definition.deadline_ms,
            payload_sz=self.definition.payload_sz,
        )


class PipelineCatalog:
    """Validated pipelines keyed by id, with between-tick hot-swap.

    ``submit`` may be called from any thread (e.g. a content watcher); the
    definitions wait in a pending list until the simulation drains and
    applies them at the start of a tick.  A definition that fails
    validation is logged and reported, and the existing entry stays as is.
    """

    def __init__(self, definitions: Iterable[PipelineDef] = ()) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        self._pending: list[PipelineDef] = []
        self._lock = threading.Lock()
        for definition in definitions:
            self._entries[definition.id] = CatalogEntry.from_def(definition)

    @classmethod
    def with_vanilla(cls) -> PipelineCatalog:
        return cls(vanilla_pipeline_defs())

    # -- lookups --------------------------------------------------------------

    def get(self, pipeline_id: str) -> CatalogEntry:
        try:
            return self._entries[pipeline_id]
        except KeyError:
            raise UnknownPipelineError(pipeline_id, self.ids()) from None

    def ids(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, pipeline_id: object) -> bool:
        return pipeline_id in self._entries

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter([self._entries[k] for k in self.ids()])

    def __len__(self) -> int:
        return len(self._entries)

    # -- hot swap -------------------------------------------------------------

    def submit(self, definition: PipelineDef) -> None:
        """Queue *definition* until the next drain."""
        with self._lock:
            self._pending.append(definition)

    def submit_mutation(self, pipeline_id: str, mutation) -> None:
        """Queue a mutated copy of an existing entry.

        Raises ``UnknownPipelineError`` for unknown ids and ``ValueError``
        when the mutation does not fit the pipeline.
        """
        from colony_sim.services.mutation import apply_mutation

        entry = self.get(pipeline_id)
        mutated = apply_mutation(entry.pipeline, mutation)
        self.submit(PipelineDef.from_pipeline(
            pipeline_id,
            mutated,
            qos=entry.qos,
            deadline_ms=entry.definition.deadline_ms,
            payload_sz=entry.definition.payload_sz,
        ))

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain_pending(self) -> list[PipelineDef]:
        """Take every submitted definition, in submit order."""
        with self._lock:
            pending, self._pending = self._pending, []
        return pending

    def apply_pending(self, tick: int = 0) -> list[DomainEvent]:
        """Validate and swap in every submitted definition, in submit order."""
        return self.apply(self.drain_pending(), tick)

    def apply(self, definitions: Iterable[PipelineDef], tick: int = 0) -> list[DomainEvent]:
        events: list[DomainEvent] = []
        for definition in definitions:
            try:
                entry = CatalogEntry.from_def(definition)
            except (ColonySimError, ValueError) as exc:
                logger.warning("Rejected pipeline %r: %s", definition.id, exc)
                events.append(PipelineRejected(
                    tick=tick, source_id="catalog",
                    pipeline_id=definition.id, reason=str(exc),
                ))
                continue
            self._entries[definition.id] = entry
            logger.info(
                "Pipeline %r updated: %s", definition.id,
                " -> ".join(op.value for op in entry.pipeline.ops),
            )
            events.append(PipelineUpdated(
                tick=tick, source_id="catalog",
                pipeline_id=definition.id,
                ops=entry.pipeline.ops,
                mutation_tag=entry.pipeline.mutation_tag,
            ))
        return events
