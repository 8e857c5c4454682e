"""Stopping a served app while notification streams are open."""

from __future__ import annotations

import json
import os
import signal
import socket
import subprocess
import sys
import time
from pathlib import Path

import pytest

pytest.importorskip("uvicorn")
httpx = pytest.importorskip("httpx")

from notifyhub.domain.entities import RecipientKey
from notifyhub.infrastructure.security import create_recipient_token

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="relies on SIGTERM")

ROOT = Path(__file__).resolve().parents[1]
USER = RecipientKey.of("user", 7)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _wait_for_health(base_url: str, process: subprocess.Popen, timeout: float = 15.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if process.poll() is not None:
            raise AssertionError(process.stdout.read())
        try:
            if httpx.get(f"{base_url}/health", timeout=1).status_code == 200:
                return
        except httpx.TransportError:
            pass
        time.sleep(0.1)
    raise AssertionError("server did not come up in time")


@pytest.fixture()
def server(tmp_path):
    port = _free_port()
    env = {
        **os.environ,
        "DATABASE_URL": f"sqlite:///{tmp_path / 'shutdown.db'}",
        "LOG_LEVEL": "INFO",
    }
    process = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "main:app", "--host", "127.0.0.1", "--port", str(port)],
        cwd=ROOT,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )
    try:
        base_url = f"http://127.0.0.1:{port}"
        _wait_for_health(base_url, process)
        yield process, base_url
    finally:
        if process.poll() is None:
            process.kill()
            process.communicate()


def test_sigterm_closes_open_streams_and_exits(server) -> None:
    process, base_url = server
    headers = {"Authorization": f"Bearer {create_recipient_token(USER)}"}

    with httpx.stream(
        "GET", f"{base_url}/notifications/stream", headers=headers, timeout=10
    ) as response:
        assert response.status_code == 200
        lines = response.iter_lines()
        first = next(line for line in lines if line)
        assert json.loads(first[len("data: ") :])["type"] == "connected"

        process.send_signal(signal.SIGTERM)
        remaining = [line for line in lines if line]

    output, _ = process.communicate(timeout=10)
    assert process.returncode == 0
    assert remaining == []
    assert "reason=shutdown" in output
