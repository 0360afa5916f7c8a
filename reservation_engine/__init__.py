from .booking import has_time_overlap, max_priority, select_overlapping
from .config import EngineConfig, load_config
from .engine import ReservationEngine, create_engine
from .errors import (
	ConflictError,
	DurationExceededError,
	InvalidPriorityError,
	InvalidTimeRangeError,
	MissingFieldError,
	OwnerNotFoundError,
	ReservationAuthorizationError,
	ReservationError,
	ReservationStorageError,
	ReservationValidationError,
	RoomNotAllowedForRoleError,
)
from .identity import User, UserDirectory
from .models import BookedReservation, OwnerSummary, ReservationRecord, ReservationRequest
from .policy import RoomPolicy, RoomPolicyStore
from .resolver import Resolution, resolve_conflicts
from .store import FallbackReservationStore, InMemoryReservationStore, ReservationStore
from .validation import ValidatedRequest, validate_request
from .yaml_store import ReservationYamlRepository

__all__ = [
	"has_time_overlap",
	"max_priority",
	"select_overlapping",
	"EngineConfig",
	"load_config",
	"ReservationEngine",
	"create_engine",
	"ConflictError",
	"DurationExceededError",
	"InvalidPriorityError",
	"InvalidTimeRangeError",
	"MissingFieldError",
	"OwnerNotFoundError",
	"ReservationAuthorizationError",
	"ReservationError",
	"ReservationStorageError",
	"ReservationValidationError",
	"RoomNotAllowedForRoleError",
	"User",
	"UserDirectory",
	"BookedReservation",
	"OwnerSummary",
	"ReservationRecord",
	"ReservationRequest",
	"RoomPolicy",
	"RoomPolicyStore",
	"Resolution",
	"resolve_conflicts",
	"FallbackReservationStore",
	"InMemoryReservationStore",
	"ReservationStore",
	"ValidatedRequest",
	"validate_request",
	"ReservationYamlRepository",
]
