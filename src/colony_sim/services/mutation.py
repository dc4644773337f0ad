"""Pipeline mutations.

A mutation never edits a pipeline in place: ``apply_mutation`` returns a
new ``Pipeline`` whose ``mutation_tag`` records what happened.  Tags stack
with ``+`` so a pipeline mutated twice reads e.g.
``"inserted_Crc+dual_run"``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from colony_sim.domain.enums import Op
from colony_sim.domain.values import Pipeline


@dataclass(frozen=True)
class Mutation(ABC):
    """Base class for pipeline mutations."""

    @property
    @abstractmethod
    def tag(self) -> str:
        """Marker appended to the pipeline's ``mutation_tag``."""

    @abstractmethod
    def apply_ops(self, ops: list[Op]) -> list[Op]:
        """Edit *ops* and return it.  Raises ``ValueError`` when it does not fit."""


@dataclass(frozen=True)
class Insert(Mutation):
    """Insert *op* before position *index* (``index == len`` appends)."""

    op: Op
    index: int

    @property
    def tag(self) -> str:
        return f"inserted_{self.op.value}"

    def apply_ops(self, ops: list[Op]) -> list[Op]:
        if not 0 <= self.index <= len(ops):
            raise ValueError(f"insert index {self.index} out of range for {len(ops)} ops")
        ops.insert(self.index, self.op)
        return ops


@dataclass(frozen=True)
class Replace(Mutation):
    index: int
    op: Op

    @property
    def tag(self) -> str:
        return f"replaced_{self.op.value}"

    def apply_ops(self, ops: list[Op]) -> list[Op]:
        if not 0 <= self.index < len(ops):
            raise ValueError(f"replace index {self.index} out of range for {len(ops)} ops")
        ops[self.index] = self.op
        return ops


@dataclass(frozen=True)
class Remove(Mutation):
    index: int

    @property
    def tag(self) -> str:
        return "removed_op"

    def apply_ops(self, ops: list[Op]) -> list[Op]:
        if not 0 <= self.index < len(ops):
            raise ValueError(f"remove index {self.index} out of range for {len(ops)} ops")
        if len(ops) == 1:
            raise ValueError("cannot remove the only op of a pipeline")
        del ops[self.index]
        return ops


@dataclass(frozen=True)
class DualRun(Mutation):
    """Run the whole pipeline twice, then compare with *adjudicator*."""

    adjudicator: Op

    @property
    def tag(self) -> str:
        return "dual_run"

    def apply_ops(self, ops: list[Op]) -> list[Op]:
        return ops + ops + [self.adjudicator]


def apply_mutation(pipeline: Pipeline, mutation: Mutation) -> Pipeline:
    """Return a new pipeline with *mutation* applied.

    Raises ``ValueError`` when an index is out of range; *pipeline* is never
    modified.
    """
    ops = mutation.apply_ops(list(pipeline.ops))
    tag = mutation.tag if pipeline.mutation_tag is None else f"{pipeline.mutation_tag}+{mutation.tag}"
    return Pipeline(ops=tuple(ops), mutation_tag=tag)
