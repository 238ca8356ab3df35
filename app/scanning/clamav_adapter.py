"""ClamAV scanner speaking the clamd INSTREAM protocol over TCP.

Protocol: send ``zINSTREAM\\0``, then the payload as chunks each prefixed
with a 4-byte big-endian length, then a zero-length chunk. clamd answers
``stream: OK`` or ``stream: <signature> FOUND`` terminated by a NUL byte.
"""

import socket
import struct

from app.logging.logger import Log
from app.scanning.base import BaseVirusScanner, ScanResult
from app.scanning.exceptions import ScannerUnavailableError

_CHUNK_SIZE = 64 * 1024


class ClamAvScanner(BaseVirusScanner):
    """Scans payloads with a clamd daemon."""

    def __init__(self, host: str, port: int, timeout_seconds: float) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout_seconds

    def scan(self, data: bytes, filename: str) -> ScanResult:
        try:
            with socket.create_connection(
                (self._host, self._port), timeout=self._timeout
            ) as sock:
                sock.sendall(b"zINSTREAM\0")
                for offset in range(0, len(data), _CHUNK_SIZE):
                    chunk = data[offset : offset + _CHUNK_SIZE]
                    sock.sendall(struct.pack("!L", len(chunk)) + chunk)
                sock.sendall(struct.pack("!L", 0))
                reply = self._read_reply(sock)
        except OSError as exc:
            raise ScannerUnavailableError(
                f"clamd at {self._host}:{self._port} unreachable: {exc}"
            ) from exc

        result = self._parse_reply(reply)
        if not result.clean:
            Log.warning(f"Virus scan rejected {filename}: {result.signature}")
        return result

    @staticmethod
    def _read_reply(sock: socket.socket) -> str:
        buffer = b""
        while not buffer.endswith(b"\0"):
            chunk = sock.recv(4096)
            if not chunk:
                break
            buffer += chunk
        return buffer.rstrip(b"\0").decode("utf-8", errors="replace").strip()

    @staticmethod
    def _parse_reply(reply: str) -> ScanResult:
        if reply.endswith("OK"):
            return ScanResult(clean=True)
        if reply.endswith("FOUND"):
            body = reply.split(":", 1)[-1].strip()
            return ScanResult(clean=False, signature=body.removesuffix("FOUND").strip())
        raise ScannerUnavailableError(f"Unexpected clamd reply: {reply!r}")
