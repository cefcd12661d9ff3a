import json
import subprocess
from pathlib import Path

import pytest

from larago.output import Output


def container_json(name: str, state: str = "running") -> str:
  return json.dumps({
    "ID": "0123456789ab",
    "Names": name,
    "Image": "laravel-app:latest",
    "State": state,
    "Status": "Up 5 minutes" if state == "running" else "Exited (0) 1 minute ago",
    "CreatedAt": "2025-01-01 10:00:00 +0000 UTC",
    "Ports": "0.0.0.0:8000->8000/tcp",
  })


def ss_output(*ports: int) -> str:
  lines = ["State  Recv-Q Send-Q Local Address:Port Peer Address:Port Process"]
  for port in ports:
    lines.append(f"LISTEN 0      4096         0.0.0.0:{port}      0.0.0.0:*")
  return "\n".join(lines) + "\n"


def _contains(cmd: list[str], tokens: tuple[str, ...]) -> bool:
  n = len(tokens)
  return any(tuple(cmd[i:i + n]) == tokens for i in range(len(cmd) - n + 1))


class FakeRun:
  """Stand-in for subprocess.run that records commands and answers from rules.

  A rule matches when its tokens appear contiguously in the command; the most
  recently added matching rule wins. Unmatched commands succeed with no output.
  """

  def __init__(self):
    self.calls: list[tuple[list[str], dict]] = []
    self.rules: list[tuple[tuple[str, ...], int, object, str]] = []

  def on(self, *tokens: str, returncode: int = 0, stdout="", stderr: str = "") -> "FakeRun":
    self.rules.append((tokens, returncode, stdout, stderr))
    return self

  def container_running(self, name: str, state: str = "running") -> "FakeRun":
    return self.on("ps", "-a", "--filter", f"name={name}", stdout=container_json(name, state) + "\n")

  def __call__(self, cmd, **kwargs):
    cmd = [str(c) for c in cmd]
    self.calls.append((cmd, kwargs))
    returncode, stdout, stderr = 0, "", ""
    for tokens, rc, out, err in reversed(self.rules):
      if _contains(cmd, tokens):
        returncode, stderr = rc, err
        # A list of outputs is consumed one call at a time
        stdout = out.pop(0) if isinstance(out, list) else out
        break
    if kwargs.get("check") and returncode != 0:
      raise subprocess.CalledProcessError(returncode, cmd, stdout, stderr)
    return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

  @property
  def commands(self) -> list[list[str]]:
    return [cmd for cmd, _ in self.calls]

  def matching(self, *tokens: str) -> list[list[str]]:
    return [cmd for cmd in self.commands if _contains(cmd, tokens)]

  def kwargs_for(self, *tokens: str) -> dict:
    for cmd, kwargs in self.calls:
      if _contains(cmd, tokens):
        return kwargs
    raise AssertionError(f"no call matching {tokens}")


@pytest.fixture(autouse=True)
def fresh_output(monkeypatch):
  monkeypatch.setenv("COLUMNS", "200")
  Output.reset()
  yield
  Output.reset()


@pytest.fixture
def fake_run(monkeypatch) -> FakeRun:
  fake = FakeRun()
  monkeypatch.setattr(subprocess, "run", fake)
  return fake


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch) -> Path:
  build = tmp_path / "build"
  build.mkdir()
  (build / ".env").write_text(
    "# Local development\n"
    "PROJECT_NAME=blog\n"
    "CONTAINER_NAME=blog_app\n"
    "SERVER_PORT=8000\n"
    "DB_PASSWORD=secret\n"
  )
  (build / "docker-compose.yml").write_text("services: {}\n")
  node = build / "NODE.JS"
  node.mkdir()
  (node / ".env").write_text("PROJECT_NAME=blog\nCONTAINER_NAME=blog_app\n")
  (node / "docker-compose.yml").write_text("services: {}\n")
  monkeypatch.chdir(tmp_path)
  return tmp_path
