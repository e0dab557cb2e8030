# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the Pydantic models and the error base class shared by every
# stage of the build & publish pipeline.
# -----------------------------------------------------------------------------

from .errors import ConfigurationError, SmplyError
from .models import (
    BuildArtifact,
    Dialect,
    PublishedVersion,
    PublishRequest,
    PublishState,
    SourceKind,
    SourceSpec,
    ValidationOutcome,
    VersionCreationTicket,
)

__all__ = [
    "SmplyError", "ConfigurationError",
    "BuildArtifact", "Dialect", "PublishedVersion", "PublishRequest", "PublishState",
    "SourceKind", "SourceSpec", "ValidationOutcome", "VersionCreationTicket",
]
