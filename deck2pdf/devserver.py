"""Start and stop a local content server for the export run."""

from __future__ import annotations

import logging
import socket
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Callable

from . import config
from .polling import poll_until

logger = logging.getLogger(__name__)


class ServerError(RuntimeError):
    """The content server could not be started."""


def port_in_use(host: str, port: int, timeout: float = 0.5) -> bool:
    """Return True if something accepts TCP connections on *host*:*port*."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class DevServer:
    """Runs ``python -m deck2pdf serve`` as a child process.

    Readiness is detected by probing the port rather than by reading the
    child's output.
    """

    def __init__(
        self,
        deck_path: Path,
        *,
        host: str | None = None,
        port: int | None = None,
        diagrams_dir: Path | None = None,
        start_timeout: float | None = None,
        probe_interval: float = 0.25,
        probe: Callable[[str, int], bool] = port_in_use,
    ):
        self.deck_path = Path(deck_path)
        self.host = host or config.HOST
        self.port = port or config.PORT
        self.diagrams_dir = diagrams_dir
        self.start_timeout = start_timeout if start_timeout is not None else config.SERVER_START_TIMEOUT
        self.probe_interval = probe_interval
        self.probe = probe
        self.process: subprocess.Popen | None = None
        self._stderr = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def command(self) -> list[str]:
        cmd = [
            sys.executable, "-m", "deck2pdf",
            "serve", str(self.deck_path.resolve()),
            "--host", self.host,
            "--port", str(self.port),
        ]
        if self.diagrams_dir is not None:
            cmd += ["--diagrams-dir", str(Path(self.diagrams_dir).resolve())]
        return cmd

    def start(self) -> str:
        """Spawn the server and block until its port accepts connections.

        Returns the server's base URL.
        """
        if self.probe(self.host, self.port):
            raise ServerError(f"Port {self.port} is already in use")

        cmd = self.command()
        logger.debug("Server command: %s", " ".join(cmd))
        print(f"  Starting content server on {self.base_url}…")
        # A file rather than a pipe, so a chatty server never blocks on a full buffer.
        self._stderr = tempfile.TemporaryFile(mode="w+", encoding="utf-8")
        self.process = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=self._stderr,
            text=True,
        )

        result = poll_until(
            lambda: self.process.poll() is not None or self.probe(self.host, self.port),
            interval=self.probe_interval,
            timeout=self.start_timeout,
        )

        returncode = self.process.poll()
        if returncode is not None:
            stderr = self._read_stderr()
            logger.debug("Server stderr: %s", stderr)
            self.process = None
            raise ServerError(f"Content server exited with code {returncode}: {stderr.strip()}")

        if result.timed_out:
            self.stop()
            raise ServerError(
                f"Content server failed to start within {self.start_timeout:g} seconds"
            )

        logger.info("Content server ready on %s after %.2fs", self.base_url, result.elapsed)
        return self.base_url

    def _read_stderr(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        return self._stderr.read()

    def stop(self) -> None:
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None
        if self.process is None:
            return
        logger.debug("Stopping content server (pid %s)", self.process.pid)
        self.process.terminate()
        try:
            self.process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()
        self.process = None
        print("  Content server stopped")
