"""Domain enumerations for the colony simulation.

These enums capture the closed vocabularies used across the domain layer:
processing ops, quality-of-service classes, worker and job lifecycle states,
fault kinds, and the scheduling policies the dispatcher understands.
"""

from enum import Enum


class Op(Enum):
    """One atomic processing stage of a pipeline."""

    UDP_DEMUX = "UdpDemux"
    DECODE = "Decode"
    KALMAN = "Kalman"
    EXPORT = "Export"
    HTTP_PARSE = "HttpParse"
    HTTP_EXPORT = "HttpExport"
    FFT = "Fft"
    YOLO = "Yolo"
    CRC = "Crc"
    CAN_PARSE = "CanParse"
    TCP_SESSIONIZE = "TcpSessionize"
    MODBUS_MAP = "ModbusMap"
    MAINTENANCE_COOL = "MaintenanceCool"

    @property
    def cost_ms(self) -> int:
        """Simulated milliseconds of work needed to finish this op."""
        return _OP_COST_MS[self]

    @property
    def work_units(self) -> float:
        """Relative compute intensity of this op."""
        return _OP_WORK_UNITS[self]

    @property
    def is_ingress(self) -> bool:
        """True for ops that move the job payload over the shared bus."""
        return self in _INGRESS_OPS


_OP_COST_MS: dict[Op, int] = {
    Op.UDP_DEMUX: 2,
    Op.DECODE: 4,
    Op.KALMAN: 3,
    Op.EXPORT: 2,
    Op.HTTP_PARSE: 3,
    Op.HTTP_EXPORT: 2,
    Op.FFT: 6,
    Op.YOLO: 18,
    Op.CRC: 1,
    Op.CAN_PARSE: 2,
    Op.TCP_SESSIONIZE: 5,
    Op.MODBUS_MAP: 2,
    Op.MAINTENANCE_COOL: 8,
}

_OP_WORK_UNITS: dict[Op, float] = {
    Op.UDP_DEMUX: 0.5,
    Op.DECODE: 1.2,
    Op.KALMAN: 0.8,
    Op.EXPORT: 0.3,
    Op.HTTP_PARSE: 0.6,
    Op.HTTP_EXPORT: 0.3,
    Op.FFT: 1.5,
    Op.YOLO: 4.5,
    Op.CRC: 0.3,
    Op.CAN_PARSE: 0.5,
    Op.TCP_SESSIONIZE: 1.2,
    Op.MODBUS_MAP: 0.5,
    Op.MAINTENANCE_COOL: 0.0,  # no heat generation
}

_INGRESS_OPS = frozenset({
    Op.UDP_DEMUX,
    Op.HTTP_PARSE,
    Op.CAN_PARSE,
    Op.TCP_SESSIONIZE,
})


class QoS(Enum):
    """Scheduling intent class used for dispatch tie-breaks."""

    THROUGHPUT = "Throughput"
    LATENCY = "Latency"
    BALANCED = "Balanced"


class WorkerState(Enum):
    """Run state of a single worker."""

    IDLE = "idle"
    RUNNING = "running"
    FAULTED = "faulted"
    MAINTENANCE = "maintenance"


class JobState(Enum):
    """Lifecycle of a job while the queue tracks it."""

    QUEUED = "queued"
    RUNNING = "running"
    FAULTED = "faulted"
    COMPLETED = "completed"
    ABANDONED = "abandoned"  # retries exhausted, terminal


class FaultKind(Enum):
    """Classification of a soft fault raised by the fault model."""

    TRANSIENT = "transient"  # retry/backoff helps
    DATA_SKEW = "data_skew"  # output drift, op must re-run
    QUEUE_DROP = "queue_drop"  # job bounced, deadline likely missed
    STICKY_CONFIG = "sticky_config"  # worker quarantined for a while


class SchedPolicy(Enum):
    """Job selection policies available to the dispatcher."""

    DEADLINE = "deadline"
    FCFS = "fcfs"
    SJF = "sjf"
