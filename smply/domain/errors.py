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
# DOMAIN ERRORS
# -----------------------------------------------------------------------------
# Base class for every failure the pipeline surfaces to the user.
# Each subclass carries a category so the CLI can print one line:
#     "<category>: <message>"
# Concrete errors live next to the code that raises them.
# -----------------------------------------------------------------------------


class SmplyError(Exception):
    """Base class for all smply pipeline errors."""

    category = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def describe(self) -> str:
        """Render the single diagnostic line shown to the user."""
        return f"{self.category}: {self.message}"


class ConfigurationError(SmplyError):
    """Raised when inputs or settings are invalid before any I/O happens."""

    category = "configuration"
