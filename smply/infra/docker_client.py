# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# DOCKER PROVIDER
# -----------------------------------------------------------------------------
# Responsibility: A thin wrapper around the Docker SDK with connection
# validation, used by the container sandbox.
#
# DOCKER_HOST is honored (e.g. a socket proxy); otherwise the local engine.
# -----------------------------------------------------------------------------

import os

import docker
from docker import DockerClient
from docker.errors import DockerException
from rich.console import Console

console = Console(stderr=True)


class DockerProviderError(Exception):
    """Raised when the Docker engine cannot be reached."""

    pass


class DockerProvider:
    """Lazily connects to Docker and re-checks the connection on each use."""

    def __init__(self, docker_host: str | None = None) -> None:
        self._docker_host = docker_host or os.getenv("DOCKER_HOST")
        self._client: DockerClient | None = None

    def _connect(self) -> DockerClient:
        try:
            if self._docker_host:
                client = docker.DockerClient(base_url=self._docker_host)
            else:
                client = docker.from_env()
            client.ping()
        except DockerException as e:
            console.print(f"[red][DOCKER] Engine unavailable: {e}[/red]")
            raise DockerProviderError(f"Docker Engine is not available: {e}") from e

        console.print("[green][DOCKER] Connected to Docker Engine[/green]")
        return client

    def get_client(self) -> DockerClient:
        """
        Get a live Docker client, reconnecting once if the old one went away.

        Raises:
            DockerProviderError: If Docker cannot be reached.
        """
        if self._client is not None:
            try:
                self._client.ping()
                return self._client
            except DockerException as e:
                console.print(f"[yellow][DOCKER] Connection lost: {e}, reconnecting[/yellow]")

        self._client = self._connect()
        return self._client

    def is_connected(self) -> bool:
        """True if Docker is currently reachable."""
        if self._client is None:
            return False
        try:
            self._client.ping()
            return True
        except DockerException:
            return False
