from __future__ import annotations

import json
import logging
import os
import queue
import shutil
import socket
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


# -----------------------------
# Utilities
# -----------------------------

def _is_windows() -> bool:
    return os.name == "nt"


def _default_ipc_endpoint(app_name: str = "autoqueue-mpv") -> str:
    r"""
    Windows: named pipe path for mpv: \\.\pipe\<name>
    Unix:    filesystem path to a unix socket
    """
    if _is_windows():
        return rf"\\.\pipe\{app_name}"
    return f"/tmp/{app_name}.sock"


def _remove_unix_socket_if_exists(path: str) -> None:
    if _is_windows():
        return
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning("Could not remove stale mpv socket %s: %s", path, e)


def _find_mpv_binary(preferred_path: Optional[str] = None) -> Optional[str]:
    if preferred_path and os.path.isfile(preferred_path):
        return preferred_path
    return shutil.which("mpv")


# -----------------------------
# IPC Client (transport layer)
# -----------------------------

class _MpvJsonIpcTransport:
    """
    Sends JSON command lines to the mpv IPC endpoint and queues every JSON
    line mpv writes back. Unix uses an AF_UNIX socket; on Windows the named
    pipe is opened as a binary file.
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._stop = threading.Event()

        self._rx_thread: Optional[threading.Thread] = None
        self._rx_queue: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._tx_lock = threading.Lock()

        self._pipe_fh = None
        self._sock: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return not self._stop.is_set() and (self._sock is not None or self._pipe_fh is not None)

    def connect(self, timeout_s: float = 3.0) -> None:
        deadline = time.time() + timeout_s
        last_err: Optional[Exception] = None

        while time.time() < deadline:
            try:
                if _is_windows():
                    self._pipe_fh = open(self.endpoint, "r+b", buffering=0)
                else:
                    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                    try:
                        s.connect(self.endpoint)
                    except OSError:
                        s.close()
                        raise
                    self._sock = s
                last_err = None
                break
            except OSError as e:
                last_err = e
                time.sleep(0.05)

        if self._sock is None and self._pipe_fh is None:
            raise OSError(f"Failed to connect to mpv IPC at {self.endpoint}. Last error: {last_err!r}")

        self._stop.clear()
        self._rx_thread = threading.Thread(target=self._rx_loop, name="mpv-ipc-rx", daemon=True)
        self._rx_thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()
            self._sock = None
        if self._pipe_fh is not None:
            self._pipe_fh.close()
            self._pipe_fh = None

    def send(self, payload: dict[str, Any]) -> None:
        line = (json.dumps(payload) + "\n").encode("utf-8")

        with self._tx_lock:
            if self._pipe_fh is not None:
                self._pipe_fh.write(line)
                self._pipe_fh.flush()
            elif self._sock is not None:
                self._sock.sendall(line)
            else:
                raise ConnectionError("mpv IPC not connected")

    def recv_nowait(self) -> Optional[dict[str, Any]]:
        try:
            return self._rx_queue.get_nowait()
        except queue.Empty:
            return None

    def _rx_loop(self) -> None:
        buf = b""
        try:
            while not self._stop.is_set():
                try:
                    if self._pipe_fh is not None:
                        chunk = self._pipe_fh.read(4096)
                    elif self._sock is not None:
                        chunk = self._sock.recv(4096)
                    else:
                        break
                except (OSError, ValueError):
                    break

                if not chunk:
                    # EOF, mpv went away
                    break

                buf += chunk
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        msg = json.loads(line.decode("utf-8", errors="replace"))
                    except json.JSONDecodeError:
                        logger.debug("Ignoring malformed mpv line: %r", line)
                        continue
                    if isinstance(msg, dict):
                        self._rx_queue.put(msg)
        finally:
            self._stop.set()


# -----------------------------
# Backend (mpv process + JSON protocol)
# -----------------------------

@dataclass
class MpvBackendConfig:
    mpv_path: Optional[str] = None
    ipc_endpoint: Optional[str] = None

    # Connect to an mpv that is already running instead of spawning one
    attach_only: bool = False

    audio_only: bool = True


class MpvIpcBackend:
    """
    mpv controlled through JSON IPC. Started with --idle=yes so the process
    stays up with an empty playlist and appended files start playing.
    """

    def __init__(self, config: Optional[MpvBackendConfig] = None):
        self.config = config or MpvBackendConfig()
        self.ipc = self.config.ipc_endpoint or _default_ipc_endpoint()

        self._proc: Optional[subprocess.Popen] = None
        self._req_id = 0
        self._pending: dict[int, "queue.Queue[dict[str, Any]]"] = {}
        self._req_lock = threading.Lock()

        self._transport = _MpvJsonIpcTransport(self.ipc)

    # ---- lifecycle ----

    def start(self) -> None:
        if self.config.attach_only:
            self._transport.connect(timeout_s=3.0)
            return

        if self._proc is not None:
            return

        mpv_bin = _find_mpv_binary(self.config.mpv_path)
        if not mpv_bin:
            raise FileNotFoundError("mpv binary not found (configured path or PATH).")

        _remove_unix_socket_if_exists(self.ipc)

        args = [mpv_bin, "--idle=yes", "--keep-open=no", f"--input-ipc-server={self.ipc}"]
        if self.config.audio_only:
            args += ["--no-video", "--audio-display=no"]
        args += ["--terminal=no", "--msg-level=all=warn"]

        creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if _is_windows() else 0

        logger.info("Starting mpv: %s", " ".join(args))
        self._proc = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=creationflags,
        )

        self._transport.connect(timeout_s=3.0)

    def stop(self) -> None:
        self._transport.close()

        if self._proc is not None:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=3.0)
            except subprocess.TimeoutExpired:
                self._proc.kill()
            self._proc = None

    def reconnect(self) -> None:
        self._transport.close()
        self._transport = _MpvJsonIpcTransport(self.ipc)
        self._transport.connect(timeout_s=1.0)

    def is_connected(self) -> bool:
        return self._transport.connected

    # ---- protocol helpers ----

    def _next_id(self) -> int:
        self._req_id += 1
        return self._req_id

    def command_wait(self, *args: Any, timeout_s: float = 1.0) -> dict[str, Any]:
        """Send a command with request_id and wait for its reply."""
        with self._req_lock:
            rid = self._next_id()
            q: "queue.Queue[dict[str, Any]]" = queue.Queue()
            self._pending[rid] = q

            try:
                self._transport.send({"command": list(args), "request_id": rid})

                deadline = time.time() + timeout_s
                while time.time() < deadline:
                    self.process_messages(max_messages=50)
                    try:
                        return q.get_nowait()
                    except queue.Empty:
                        time.sleep(0.005)
            finally:
                self._pending.pop(rid, None)

        raise TimeoutError(f"mpv command timed out: {args!r}")

    def get_property(self, name: str, timeout_s: float = 1.0) -> Any:
        """None when mpv reports an error, e.g. 'property unavailable' while idle."""
        resp = self.command_wait("get_property", name, timeout_s=timeout_s)
        if resp.get("error") == "success":
            return resp.get("data")
        return None

    def process_messages(self, max_messages: int = 200) -> None:
        """Hand request replies to their waiters; events are dropped."""
        for _ in range(max_messages):
            msg = self._transport.recv_nowait()
            if msg is None:
                break

            rid = msg.get("request_id")
            if isinstance(rid, int) and rid in self._pending:
                self._pending[rid].put_nowait(msg)

    # ---- high-level controls ----

    def append(self, path: str, timeout_s: float = 1.0) -> None:
        # append-play starts playback when mpv sits idle
        resp = self.command_wait("loadfile", path, "append-play", timeout_s=timeout_s)
        if resp.get("error") != "success":
            raise RuntimeError(f"mpv refused {path}: {resp.get('error')}")

    def playlist_remove(self, index: int, timeout_s: float = 1.0) -> None:
        self.command_wait("playlist-remove", index, timeout_s=timeout_s)

    def playlist_clear(self, timeout_s: float = 1.0) -> None:
        self.command_wait("playlist-clear", timeout_s=timeout_s)

    def time_remaining(self, timeout_s: float = 1.0) -> Optional[float]:
        value = self.get_property("time-remaining", timeout_s=timeout_s)
        return float(value) if value is not None else None

    def playlist(self, timeout_s: float = 1.0) -> list[dict[str, Any]]:
        return self.get_property("playlist", timeout_s=timeout_s) or []
