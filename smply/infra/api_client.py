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
# STATE BACKED API CLIENT - THE PUBLISH PROTOCOL
# -----------------------------------------------------------------------------
# Responsibility: The HTTP calls behind publishing a machine version.
#
# Three phases, strictly in order, each exactly once:
#   1. create_version   POST {api}/machines/{machine}/v        -> upload ticket
#   2. upload_code      POST {ticket.upload_url} (multipart)   -> 2xx
#   3. finalize_version PUT  {api}/machines/{machine}/v/{id}   -> version
#
# Any non-2xx response or transport failure becomes a NetworkError carrying
# the status and the response body. Nothing is retried here.
# -----------------------------------------------------------------------------

import requests
from rich.console import Console

from smply.domain.errors import SmplyError
from smply.domain.models import VersionCreationTicket

console = Console(stderr=True)

DEFAULT_API_URL = "https://api.statebacked.dev"
HTTP_TIMEOUT_SECONDS = 30
ORG_HEADER = "x-statebacked-org-id"
JAVASCRIPT_CONTENT_TYPE = "application/javascript"


class NetworkError(SmplyError):
    """Raised when a protocol phase does not return a success status."""

    category = "network"

    def __init__(self, phase: str, status: int, body: str) -> None:
        detail = f" ({status})" if status else ""
        super().__init__(f"failed to {phase}{detail}: {body}".rstrip(": "))
        self.phase = phase
        self.status = status
        self.body = body


class StateBackedClient:
    """
    Minimal State Backed REST client for machines and machine versions.

    Args:
        access_token: Bearer token for the API.
        api_url: Base URL of the API.
        org_id: Organization to act in, if the token can see several.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        org_id: str | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._token = access_token
        self._api_url = api_url.rstrip("/")
        self._org_id = org_id
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {
            "authorization": f"Bearer {self._token}",
            "content-type": "application/json",
        }
        if self._org_id:
            headers[ORG_HEADER] = self._org_id
        return headers

    def _check(self, phase: str, response: requests.Response) -> requests.Response:
        if not response.ok:
            console.print(f"[red][API] Failed to {phase} ({response.status_code})[/red]")
            raise NetworkError(phase, response.status_code, response.text)
        return response

    def create_machine(self, machine: str, indexes: list[str] | None = None) -> None:
        """Create an empty machine definition (no versions yet)."""
        payload: dict = {"slug": machine}
        if indexes:
            payload["indexes"] = indexes

        console.print(f"[cyan][API] Creating machine: {machine}[/cyan]")
        try:
            response = requests.post(
                f"{self._api_url}/machines",
                headers=self._headers(),
                json=payload,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise NetworkError("create machine", 0, str(e)) from e

        self._check("create machine", response)
        console.print(f"[green][API] Created machine: '{machine}'[/green]")

    def create_version(self, machine: str) -> VersionCreationTicket:
        """
        Phase 1: reserve a version id and get a code upload ticket.

        Raises:
            NetworkError: On a non-2xx response, a transport error or a
                response that is not a valid ticket.
        """
        console.print(f"[cyan][API] Creating version for {machine}...[/cyan]")
        try:
            response = requests.post(
                f"{self._api_url}/machines/{machine}/v",
                headers=self._headers(),
                json={},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise NetworkError("create version", 0, str(e)) from e

        self._check("create version", response)

        try:
            ticket = VersionCreationTicket.model_validate(response.json())
        except ValueError as e:
            raise NetworkError("create version", response.status_code, f"invalid response: {e}") from e

        console.print(f"[green][API] Version reserved: {ticket.machine_version_id}[/green]")
        return ticket

    def upload_code(
        self,
        ticket: VersionCreationTicket,
        file_name: str,
        data: bytes,
        content_type: str = JAVASCRIPT_CONTENT_TYPE,
    ) -> None:
        """
        Phase 2: multipart upload of the (gzipped) code.

        The ticket's fields go first, verbatim, followed by the content type
        and finally the file itself.
        """
        fields = dict(ticket.upload_fields)
        fields["content-type"] = content_type

        console.print(f"[cyan][API] Uploading {file_name} ({len(data)} bytes)...[/cyan]")
        try:
            response = requests.post(
                ticket.upload_url,
                data=list(fields.items()),
                files={"file": (file_name, data, content_type)},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise NetworkError("upload code for version", 0, str(e)) from e

        self._check("upload code for version", response)
        console.print("[green][API] Code uploaded[/green]")

    def finalize_version(
        self,
        machine: str,
        machine_version_id: str,
        version_reference: str,
        make_current: bool,
    ) -> dict:
        """
        Phase 3: attach the version reference and optionally make it current.

        Returns:
            The decoded response body, or an empty dict if there is none.
        """
        console.print(f"[cyan][API] Finalizing version {version_reference}...[/cyan]")
        try:
            response = requests.put(
                f"{self._api_url}/machines/{machine}/v/{machine_version_id}",
                headers=self._headers(),
                json={"clientInfo": version_reference, "makeCurrent": make_current},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise NetworkError("finalize version", 0, str(e)) from e

        self._check("finalize version", response)
        console.print(f"[green][API] Created version: '{version_reference}'[/green]")

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
