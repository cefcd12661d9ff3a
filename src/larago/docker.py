import json
import shlex
import socket
import subprocess
from subprocess import CompletedProcess
from pathlib import Path
from typing import Optional, Sequence

from larago.errors import CommandError, PreconditionError
from larago.models import DockerContainer
from larago.output import Output
from larago.wait import parse_listening_ports


##
# Docker client
##
class DockerClient:
  """Run docker, docker compose and host commands from argument lists"""

  def __init__(self, compose_file: Optional[Path] = None):
    self.output = Output()
    self.compose_file = compose_file
    self._daemon_checked = False

  def run(self, cmd: Sequence[str],
          text: bool = True,
          capture_output: bool = True,
          check: bool = False,
          input: Optional[str] = None,
          cwd: Optional[Path] = None,
          timeout: Optional[float] = None) -> CompletedProcess:
    cmd = [str(arg) for arg in cmd]
    self.output.debug(f"Running: {shlex.join(cmd)}")
    try:
      return subprocess.run(
        cmd,
        capture_output=capture_output,
        timeout=timeout,
        check=check,
        text=text,
        input=input,
        cwd=cwd,
      )
    except FileNotFoundError:
      raise PreconditionError(f"Command not found: {cmd[0]}", [f"Install {cmd[0]} and make sure it is on PATH"])
    except subprocess.CalledProcessError as e:
      raise CommandError(f"Command failed with exit code {e.returncode}: {shlex.join(cmd)}",
                         cmd, e.returncode)

  def is_running(self):
    """Check if the Docker daemon is running"""
    if self._daemon_checked:
      return
    try:
      subprocess.run(
        ["docker", "info"],
        capture_output=True, check=True, timeout=5
      )
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
      raise PreconditionError("Docker daemon is not running", ["Start Docker and try again"])
    self._daemon_checked = True

  def docker(self, args: Sequence[str], **kwargs) -> CompletedProcess:
    self.is_running()
    return self.run(["docker", *args], **kwargs)

  def compose(self, args: Sequence[str], compose_file: Optional[Path] = None, **kwargs) -> CompletedProcess:
    compose_file = compose_file or self.compose_file
    if compose_file is None:
      raise PreconditionError("No docker-compose.yml configured")
    return self.docker(["compose", "-f", str(compose_file), *args], **kwargs)

  def exec(self, container: str, command: Sequence[str],
           workdir: Optional[str] = None,
           interactive: bool = False,
           detach: bool = False,
           **kwargs) -> CompletedProcess:
    """Run `command` inside an already running container"""
    args = ["exec"]
    if detach:
      args.append("-d")
    if workdir:
      args += ["-w", workdir]
    if interactive:
      args.append("-it")
      kwargs.setdefault("capture_output", False)
    args += [container, *command]
    return self.docker(args, **kwargs)

  # --------------------------------------
  # Container information
  # --------------------------------------
  def get_container(self, name: str) -> Optional[DockerContainer]:
    result = self.docker(["ps", "-a", "--filter", f"name={name}", "--format", "{{json .}}"])
    if result.returncode != 0:
      self.output.debug(f"docker ps failed: {result.stderr.strip()}")
      return None
    for line in result.stdout.strip().split('\n'):
      if not line:
        continue
      try:
        container = DockerContainer.from_dict(json.loads(line))
      except json.JSONDecodeError:
        self.output.debug(f"Skipping unparsable docker ps line: {line}")
        continue
      if container.has_name(name):
        self.output.debug(f"Container {name}: {container.status}, created {container.created_date()}")
        return container
    return None

  def is_container_running(self, name: str) -> bool:
    container = self.get_container(name)
    return bool(container and container.is_running)

  def path_exists(self, container: str, path: str, kind: str = "d") -> bool:
    """`test -d` / `test -f` inside the container"""
    return self.exec(container, ["test", f"-{kind}", path]).returncode == 0

  def list_dirs(self, container: str, path: str) -> list[str]:
    result = self.exec(container, ["ls", "-1", "-p", path])
    if result.returncode != 0:
      return []
    return [line.rstrip('/') for line in result.stdout.split('\n') if line.endswith('/')]

  def port_listening(self, container: str, port: int) -> bool:
    """Check the container's listening TCP sockets for `port`"""
    result = self.exec(container, ["ss", "-nlt"])
    if result.returncode != 0:
      return False
    return port in parse_listening_ports(result.stdout)

  def host_port_listening(self, port: int, host: str = "127.0.0.1") -> bool:
    """Check for a listener on the host, then for a `_node` container exposing the port"""
    try:
      with socket.create_connection((host, port), timeout=1):
        return True
    except OSError:
      pass
    result = self.docker(["ps", "--filter", f"expose={port}", "--format", "{{.Names}}"])
    return result.returncode == 0 and any(
      name.endswith("_node") for name in result.stdout.split()
    )
