# -----------------------------------------------------------------------------
# SMPLY - STATE BACKED COMMAND LINE CLIENT
# -----------------------------------------------------------------------------
# Builds XState machine definitions into single-file bundles, validates them
# in a sandbox and publishes them as machine versions on State Backed.
#
# Layers:
# - domain: Pydantic models and the error base class
# - core: the build & publish pipeline
# - infra: HTTP client, sandboxes, Docker and temp workspaces
# -----------------------------------------------------------------------------

__version__ = "0.2.0"
