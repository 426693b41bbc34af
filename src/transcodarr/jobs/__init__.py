"""Job system for transcodarr.

- exceptions: error taxonomy for submission, encoding and storage
- states: job state machine
- store: async adapter over the SQLite job queries
- submission: encode request validation and job creation
- autodelete: source removal after a verified encode
- scheduler: the control loop that starts and tracks encodes

The scheduler is imported from ``transcodarr.jobs.scheduler`` directly; it
depends on ``transcodarr.executor``, which in turn uses this package's
exceptions.
"""

from transcodarr.jobs.exceptions import (
    AutoDeleteValidationError,
    FinalizeError,
    InvalidTransitionError,
    JobBusyError,
    JobNotFoundError,
    JobValidationError,
    MediaProbeError,
    PathSecurityError,
    ProcessExitError,
    ProcessSpawnError,
    StoreError,
    TranscodarrError,
)
from transcodarr.jobs.states import can_transition, validate_transition
from transcodarr.jobs.store import JobStore
from transcodarr.jobs.submission import (
    EncodeRequest,
    SubmissionResult,
    derive_output_path,
    submit_encode_request,
    validate_media_path,
)

__all__ = [
    "AutoDeleteValidationError",
    "FinalizeError",
    "InvalidTransitionError",
    "JobBusyError",
    "JobNotFoundError",
    "JobValidationError",
    "MediaProbeError",
    "PathSecurityError",
    "ProcessExitError",
    "ProcessSpawnError",
    "StoreError",
    "TranscodarrError",
    "can_transition",
    "validate_transition",
    "JobStore",
    "EncodeRequest",
    "SubmissionResult",
    "derive_output_path",
    "submit_encode_request",
    "validate_media_path",
]
