from .assignments import AssignmentStore
from .catalog import Catalog, MarkerDefinition, project_catalog
from .errors import AuthError, EngineError, PartialOperationError, PersistenceError, ValidationError
from .gateway import Operation, SessionProvider, StaticSessionProvider, SyncGateway
from .lifecycle import LifecycleStateStore
from .markers import (
    ClientMarker,
    Marker,
    MarkerKind,
    StatusMarker,
    TypedClientMarker,
    UnknownMarker,
    WithEmployeeMarker,
    base_of,
    decode,
    encode,
)
from .postponement import PostponementCoordinator, PostponementResult
from .session import ScheduleSession
from .states import Cancelled, CancelledAtPolicy, Completed, LifecycleState, Postponed, StateKey

__all__ = [
    "AssignmentStore",
    "AuthError",
    "Cancelled",
    "CancelledAtPolicy",
    "Catalog",
    "ClientMarker",
    "Completed",
    "EngineError",
    "LifecycleState",
    "LifecycleStateStore",
    "Marker",
    "MarkerDefinition",
    "MarkerKind",
    "Operation",
    "PartialOperationError",
    "PersistenceError",
    "Postponed",
    "PostponementCoordinator",
    "PostponementResult",
    "ScheduleSession",
    "SessionProvider",
    "StateKey",
    "StaticSessionProvider",
    "StatusMarker",
    "SyncGateway",
    "TypedClientMarker",
    "UnknownMarker",
    "ValidationError",
    "WithEmployeeMarker",
    "base_of",
    "decode",
    "encode",
    "project_catalog",
]
