"""Infrastructure layer for the colony simulation.

Re-exports the public API surface for convenience::

    from colony_sim.infrastructure import (
        EventBus, EventStore,
        GameConfig, load_config, save_config,
        PipelineCatalog, PipelineDef,
    )
"""

from colony_sim.infrastructure.config import (
    CorruptionTunables,
    GameConfig,
    ResourceTunables,
    YardSpec,
    load_config,
    save_config,
)
from colony_sim.infrastructure.event_bus import EventBus, EventStore
from colony_sim.infrastructure.pipelines import (
    CatalogEntry,
    PipelineCatalog,
    PipelineDef,
    load_pipeline_defs,
    save_pipeline_defs,
    vanilla_pipeline_defs,
)
from colony_sim.infrastructure.serialization import (
    dump_events,
    event_from_dict,
    event_to_dict,
    load_events,
    load_replay,
    save_replay,
)

__all__ = [
    # Event bus
    "EventBus",
    "EventStore",
    # Configuration
    "CorruptionTunables",
    "GameConfig",
    "ResourceTunables",
    "YardSpec",
    "load_config",
    "save_config",
    # Pipelines
    "CatalogEntry",
    "PipelineCatalog",
    "PipelineDef",
    "load_pipeline_defs",
    "save_pipeline_defs",
    "vanilla_pipeline_defs",
    # Serialization
    "dump_events",
    "event_from_dict",
    "event_to_dict",
    "load_events",
    "load_replay",
    "save_replay",
]
