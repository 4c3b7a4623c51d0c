"""
STP client — pull and push souls from a remote STP server.

Usage:
    client = STPClient("http://studio.local:7780", token="s3cret")
    client.health()
    manifest = client.pull(Path("lumina.soul"))   # verified before returning
    client.push(Path("lumina.soul"))
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import requests

from .archive import verify_soul_archive
from .errors import ConsentRejected, RequestFailed, Unauthorized
from .models import SoulManifest
from .server import SOUL_CONTENT_TYPE

logger = logging.getLogger("skscp.client")


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text.strip()
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return resp.text.strip()


class STPClient:
    """Talk to a remote agent's STP server.

    Args:
        base_url: Server base URL, e.g. ``http://host:7780``.
        token: Bearer token for authenticated calls.
        timeout: Optional per-request timeout in seconds (None waits forever).
        session: Optional requests session to reuse.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def __enter__(self) -> "STPClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def _request(self, method: str, path: str, auth: bool = True, **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if auth:
            headers["Authorization"] = f"Bearer {self.token}"
        return self._session.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs,
        )

    @staticmethod
    def _check(resp: requests.Response, action: str) -> None:
        if resp.ok:
            return
        message = _error_message(resp)
        if resp.status_code == 401:
            raise Unauthorized(message or "Unauthorized")
        raise RequestFailed(resp.status_code, f"{action} failed: {resp.status_code} {message}".rstrip())

    def health(self) -> dict[str, Any]:
        """Check that the remote agent is alive (no auth)."""
        resp = self._request("GET", "/health", auth=False)
        self._check(resp, "Health check")
        return resp.json()

    def manifest(self) -> SoulManifest:
        """Fetch the remote soul manifest (lightweight integrity check)."""
        resp = self._request("GET", "/soul/manifest")
        self._check(resp, "Manifest request")
        return SoulManifest.model_validate(resp.json())

    def pull(self, output_path: Path) -> SoulManifest:
        """Download the remote soul archive and verify it.

        Args:
            output_path: Where to save the .soul file.

        Returns:
            SoulManifest: The verified manifest.

        Raises:
            SoulError: If the download fails verification. Nothing is
                left behind and an existing file at ``output_path`` is kept.
        """
        resp = self._request("GET", "/soul")
        self._check(resp, "Pull")

        output = Path(output_path).expanduser()
        output.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{output.name}.", dir=output.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(resp.content)
            manifest = verify_soul_archive(Path(tmp_name))
            os.replace(tmp_name, output)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(
            "Pulled soul of %s from %s (%d files, %d bytes)",
            manifest.agent, self.base_url, len(manifest.files), len(resp.content),
        )
        return manifest

    def push(self, archive_path: Path) -> dict[str, Any]:
        """Upload a soul archive to the remote agent.

        Args:
            archive_path: Path to a .soul archive.

        Returns:
            dict: ``{"ok": True, "message": ..., "manifest": {...}}``.

        Raises:
            ConsentRejected: The remote agent declined the restore.
        """
        data = Path(archive_path).expanduser().read_bytes()
        resp = self._request(
            "PUT", "/soul", data=data, headers={"Content-Type": SOUL_CONTENT_TYPE},
        )

        if resp.status_code == 403:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise ConsentRejected(body.get("manifest"), body.get("error") or "Soul transfer rejected by agent")
        self._check(resp, "Push")

        result = resp.json()
        logger.info("Pushed %s to %s: %s", archive_path, self.base_url, result.get("message"))
        return result
