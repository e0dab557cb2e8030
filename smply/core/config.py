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
# CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: Resolve runtime settings in one place.
#
# Precedence (lowest to highest):
#   1. built-in defaults
#   2. YAML file (~/.smply/config.yaml, or $SMPLY_CONFIG)
#   3. environment variables (a .env file in the working directory is loaded)
#   4. command line overrides
#
# Every value is validated by Pydantic; anything invalid is a
# ConfigurationError before the pipeline starts.
# -----------------------------------------------------------------------------

import os
from enum import Enum
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console

from smply.core.bundler import BUILD_TIMEOUT_SECONDS, Bundler
from smply.core.orchestrator import SandboxFactory
from smply.domain.errors import ConfigurationError
from smply.infra.api_client import DEFAULT_API_URL, HTTP_TIMEOUT_SECONDS, StateBackedClient
from smply.infra.docker_client import DockerProvider
from smply.infra.sandbox import (
    SANDBOX_IMAGE,
    VALIDATION_TIMEOUT_SECONDS,
    DenoSandbox,
    DockerSandbox,
)

console = Console(stderr=True)

CONFIG_PATH = Path.home() / ".smply" / "config.yaml"

ENV_VARS = {
    "api_url": "SMPLY_API_URL",
    "access_token": "SMPLY_ACCESS_TOKEN",
    "org": "SMPLY_ORG",
    "esbuild_binary": "SMPLY_ESBUILD",
    "deno_binary": "SMPLY_DENO",
    "sandbox": "SMPLY_SANDBOX",
    "sandbox_image": "SMPLY_SANDBOX_IMAGE",
    "validation_timeout": "SMPLY_VALIDATION_TIMEOUT",
    "build_timeout": "SMPLY_BUILD_TIMEOUT",
    "http_timeout": "SMPLY_HTTP_TIMEOUT",
}


class SandboxKind(str, Enum):
    """Where bundles are executed for validation."""

    DENO = "deno"
    DOCKER = "docker"


class SmplyConfig(BaseModel):
    """Validated runtime settings."""

    api_url: str = DEFAULT_API_URL
    access_token: str | None = None
    org: str | None = None
    esbuild_binary: str = "esbuild"
    deno_binary: str = "deno"
    sandbox: SandboxKind = SandboxKind.DENO
    sandbox_image: str = SANDBOX_IMAGE
    validation_timeout: float = Field(VALIDATION_TIMEOUT_SECONDS, gt=0)
    build_timeout: float = Field(BUILD_TIMEOUT_SECONDS, gt=0)
    http_timeout: float = Field(HTTP_TIMEOUT_SECONDS, gt=0)

    class Config:
        str_strip_whitespace = True


def _load_file(path: Path) -> dict:
    """Read the YAML settings file; a missing file means no settings."""
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"could not read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return data


def _load_env() -> dict:
    values = {}
    for field, var in ENV_VARS.items():
        value = os.getenv(var)
        if value:
            values[field] = value
    return values


def load_config(overrides: dict | None = None, config_path: Path | None = None) -> SmplyConfig:
    """
    Build the effective configuration.

    Args:
        overrides: Values from the command line; None entries are ignored.
        config_path: Explicit YAML file (defaults to $SMPLY_CONFIG or ~/.smply/config.yaml).

    Raises:
        ConfigurationError: If the file or any value is invalid.
    """
    load_dotenv(Path.cwd() / ".env")

    path = config_path or Path(os.getenv("SMPLY_CONFIG", str(CONFIG_PATH)))
    values = _load_file(path)
    values.update(_load_env())
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return SmplyConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e


def make_bundler(config: SmplyConfig) -> Bundler:
    return Bundler(
        esbuild_binary=config.esbuild_binary,
        deno_binary=config.deno_binary,
        timeout=config.build_timeout,
    )


def make_sandbox_factory(config: SmplyConfig) -> SandboxFactory:
    """Pick the sandbox implementation the settings ask for."""
    if config.sandbox == SandboxKind.DOCKER:
        provider = DockerProvider()
        return lambda workspace: DockerSandbox(
            provider, image=config.sandbox_image, timeout=config.validation_timeout
        )

    return lambda workspace: DenoSandbox(
        workspace, deno_binary=config.deno_binary, timeout=config.validation_timeout
    )


def make_client(config: SmplyConfig) -> StateBackedClient:
    """
    Create the API client.

    Raises:
        ConfigurationError: If no access token is configured.
    """
    if not config.access_token:
        raise ConfigurationError(
            "no access token: pass --access-token or set SMPLY_ACCESS_TOKEN"
        )
    return StateBackedClient(
        config.access_token,
        api_url=config.api_url,
        org_id=config.org,
        timeout=config.http_timeout,
    )
