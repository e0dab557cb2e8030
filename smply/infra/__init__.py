# -----------------------------------------------------------------------------
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Contains the wrappers around things outside the process:
# - StateBackedClient: the REST publish protocol
# - DenoSandbox / DockerSandbox: isolated execution of built bundles
# - DockerProvider: Docker SDK connection handling
# - scoped_workspace: the per-invocation temp directory
# -----------------------------------------------------------------------------

from .api_client import NetworkError, StateBackedClient
from .docker_client import DockerProvider, DockerProviderError
from .sandbox import CodeValidator, DenoSandbox, DockerSandbox
from .workspace import FileSystemError, scoped_workspace

__all__ = [
    "NetworkError", "StateBackedClient",
    "DockerProvider", "DockerProviderError",
    "CodeValidator", "DenoSandbox", "DockerSandbox",
    "FileSystemError", "scoped_workspace",
]
