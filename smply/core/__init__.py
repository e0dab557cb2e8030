# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The build & publish pipeline:
# - SourceSelector: exactly-one-source rule
# - Bundler: entrypoint -> single ESM artifact (externalized + inlined)
# - BundleValidator: sandboxed export contract check
# - compress: deterministic gzip
# - PublishOrchestrator: the state machine that ties it together
# -----------------------------------------------------------------------------

from .bundler import BuildError, Bundler
from .compressor import compress, decompress
from .orchestrator import PublishOrchestrator
from .source import SourceSelector, read_raw_script
from .validator import BundleValidator, ValidationError

__all__ = [
    "BuildError", "Bundler",
    "compress", "decompress",
    "PublishOrchestrator",
    "SourceSelector", "read_raw_script",
    "BundleValidator", "ValidationError",
]
