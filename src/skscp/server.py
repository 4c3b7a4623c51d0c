"""
STP server — Soul Transfer Protocol.

A small threaded HTTP server (stdlib http.server, one thread per
request) that lets a trusted peer pull this agent's soul or push
a soul back into the workspace.

Serves:
    GET  /health        -> {"ok": true, "agent": ..., "protocol": "stp/1.0"} (no auth)
    GET  /soul/manifest -> current manifest, computed fresh (bearer)
    GET  /soul          -> .soul archive bytes (bearer)
    PUT  /soul          -> restore from .soul archive bytes (bearer)

Auth is ``Authorization: Bearer <token>``. Uploads are verified
before the consent policy is asked, and only then written into
the workspace. Restores through one server are serialized by a
lock; nothing guards the workspace against other processes.
"""

from __future__ import annotations

import hmac
import json
import logging
import socket
import tempfile
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from . import PROTOCOL
from .archive import build_manifest, create_soul_archive, extract_soul_archive
from .config import DEFAULT_PORT
from .consent import ConsentLike, as_policy
from .discovery import Discover, discover_soul_files
from .models import SoulManifest

logger = logging.getLogger("skscp.server")

SOUL_CONTENT_TYPE = "application/x-soul"
AGENT_HEADER = "X-STP-Agent"


class _STPHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    stp: "SoulTransferServer"


class STPHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the STP endpoints."""

    server: _STPHTTPServer

    def do_GET(self):
        """Handle GET requests."""
        self._dispatch("GET")

    def do_PUT(self):
        """Handle PUT requests."""
        self._dispatch("PUT")

    def _dispatch(self, method: str) -> None:
        stp = self.server.stp
        path = urlsplit(self.path).path

        if path == "/health" and method == "GET":
            self._send_json(200, stp.health())
            return

        if not stp.check_auth(self.headers.get("Authorization")):
            self._discard_body()
            self._send_json(401, {"error": "Unauthorized"})
            return

        try:
            if path == "/soul/manifest" and method == "GET":
                self._send_json(200, stp.get_manifest().model_dump(mode="json"))
            elif path == "/soul" and method == "GET":
                self._send_archive(stp.get_archive(), stp.agent)
            elif path == "/soul" and method == "PUT":
                status, payload = stp.put_archive(self._read_body())
                self._send_json(status, payload)
            else:
                self._discard_body()
                self._send_json(404, {"error": "Not found"})
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.warning("Client went away during %s %s: %s", method, path, exc)
        except Exception as exc:
            logger.error("STP error on %s %s: %s", method, path, exc)
            self._send_json(500, {"error": str(exc)})

    def _content_length(self) -> int:
        try:
            return max(int(self.headers.get("Content-Length", 0)), 0)
        except ValueError:
            return 0

    def _read_body(self) -> bytes:
        return self.rfile.read(self._content_length())

    def _discard_body(self) -> None:
        remaining = self._content_length()
        while remaining > 0:
            chunk = self.rfile.read(min(remaining, 65536))
            if not chunk:
                break
            remaining -= len(chunk)

    def _send_json(self, status: int, data: dict) -> None:
        body = json.dumps(data, indent=2, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_archive(self, data: bytes, agent: str) -> None:
        self.send_response(200)
        self.send_header("Content-Type", SOUL_CONTENT_TYPE)
        self.send_header("Content-Length", str(len(data)))
        self.send_header(AGENT_HEADER, agent)
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        """Route request logs through the module logger."""
        logger.debug("STP: %s", format % args)


class SoulTransferServer:
    """Serve one agent workspace over STP.

    Args:
        workspace: Workspace root holding the soul files.
        agent: Agent name reported by /health and stamped into manifests.
        token: Bearer token every authenticated request must present.
        consent: Optional ConsentPolicy (or ``manifest -> bool`` callable)
            consulted before accepting a restore.
        host: Interface to bind.
        port: Port to bind; 0 picks a free one.
        discover: Soul file discovery callable.
        source: Source name for manifests. Defaults to the hostname.
    """

    def __init__(
        self,
        workspace: Path,
        agent: str,
        token: str,
        consent: ConsentLike = None,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        discover: Discover = discover_soul_files,
        source: Optional[str] = None,
    ):
        if not token:
            raise ValueError("An STP server needs a bearer token")
        self.workspace = Path(workspace).expanduser()
        self.agent = agent
        self.consent = as_policy(consent)
        self.host = host
        self.port = port
        self.discover = discover
        self.source = source or socket.gethostname()
        self._token = token
        self._write_lock = threading.Lock()
        self._httpd: Optional[_STPHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def check_auth(self, header: Optional[str]) -> bool:
        """Check an Authorization header against the bearer token."""
        if not header:
            return False
        scheme, _, value = header.partition(" ")
        if scheme != "Bearer":
            return False
        return hmac.compare_digest(value.encode("utf-8"), self._token.encode("utf-8"))

    def health(self) -> dict[str, Any]:
        """Liveness payload for GET /health."""
        return {"ok": True, "agent": self.agent, "protocol": PROTOCOL}

    def get_manifest(self) -> SoulManifest:
        """Discover and hash the workspace without building an archive."""
        files = self.discover(self.workspace)
        return build_manifest(self.workspace, files, self.agent, self.source)

    def get_archive(self) -> bytes:
        """Build a fresh .soul archive in a scratch directory and return its bytes."""
        with tempfile.TemporaryDirectory(prefix="stp-") as tmp:
            archive_path = Path(tmp) / "soul.soul"
            manifest = create_soul_archive(
                self.workspace, archive_path, self.agent, self.source, discover=self.discover,
            )
            data = archive_path.read_bytes()
        logger.info("Serving soul of %s (%d files, %d bytes)", self.agent, len(manifest.files), len(data))
        return data

    def put_archive(self, body: bytes) -> tuple[int, dict[str, Any]]:
        """Verify, ask consent for, and restore an uploaded archive.

        Args:
            body: Compressed .soul archive bytes.

        Returns:
            tuple: (HTTP status, JSON payload). 200 on acceptance,
                403 when the consent policy declines.
        """
        with tempfile.TemporaryDirectory(prefix="stp-restore-") as tmp:
            archive_path = Path(tmp) / "incoming.soul"
            archive_path.write_bytes(body)

            manifest = extract_soul_archive(archive_path, dry_run=True)

            if self.consent is not None and not self.consent.allow(manifest):
                logger.warning(
                    "Soul transfer from %s@%s rejected", manifest.agent, manifest.source,
                )
                return 403, {
                    "error": "Soul transfer rejected by agent",
                    "manifest": manifest.summary(),
                }

            extract_soul_archive(archive_path, self.workspace, guard=self._write_lock)

        logger.info(
            "Soul transfer accepted from %s@%s (%d files)",
            manifest.agent, manifest.source, len(manifest.files),
        )
        return 200, {
            "ok": True,
            "message": "Soul transfer accepted",
            "manifest": manifest.summary(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bind(self) -> _STPHTTPServer:
        """Create and bind the HTTP server (idempotent)."""
        if self._httpd is None:
            httpd = _STPHTTPServer((self.host, self.port), STPHandler)
            httpd.stp = self
            self._httpd = httpd
            self.port = httpd.server_address[1]
        return self._httpd

    @property
    def address(self) -> tuple[str, int]:
        """(host, port) actually bound, once :meth:`bind` has run."""
        return self.host, self.port

    @property
    def url(self) -> str:
        """Base URL clients should use."""
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        """Serve in a background thread."""
        httpd = self.bind()
        self._thread = threading.Thread(target=httpd.serve_forever, name="stp-server", daemon=True)
        self._thread.start()
        logger.info("STP server listening on %s (agent %s, workspace %s)", self.url, self.agent, self.workspace)

    def serve_forever(self) -> None:
        """Serve in the calling thread until interrupted."""
        httpd = self.bind()
        logger.info("STP server listening on %s (agent %s, workspace %s)", self.url, self.agent, self.workspace)
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        """Shut the server down and release the socket."""
        if self._httpd is None:
            return
        if self._thread is not None:
            self._httpd.shutdown()
            self._thread.join(timeout=5)
            self._thread = None
        self._httpd.server_close()
        self._httpd = None
        logger.info("STP server stopped.")
