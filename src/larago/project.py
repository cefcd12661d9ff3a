import os
import posixpath
import re
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Dict

from rich.markup import escape

from larago.config import config
from larago.errors import PreconditionError, UsageError
from larago.output import Output

KEY_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
QUOTED_RE = re.compile(r'^(["\'])(.*)\1(\s+#.*)?$')
INLINE_COMMENT_RE = re.compile(r'\s+#.*$')


##
# Env file helpers
##
def parse_env(text: str) -> Dict[str, str]:
  """Parse `KEY=value` lines, skipping blanks, comments and malformed keys"""
  values: Dict[str, str] = {}
  for line in text.splitlines():
    line = line.strip()
    if not line or line.startswith('#') or '=' not in line:
      continue
    key, value = line.split('=', 1)
    key = key.strip()
    if not KEY_RE.match(key):
      continue
    value = value.strip()
    quoted = QUOTED_RE.match(value)
    if quoted:
      value = quoted.group(2)
    else:
      # Unquoted values end at a whitespace-prefixed `#`, as in `source`
      value = INLINE_COMMENT_RE.sub('', value)
    values[key] = value
  return values


def read_env_file(path: Path) -> Dict[str, str]:
  return parse_env(path.read_text())


def update_env_file(path: Path, values: Dict[str, str]) -> None:
  """Replace `KEY=` lines in place and append the keys that are missing"""
  lines = path.read_text().splitlines() if path.exists() else []
  pending = dict(values)
  updated = []
  for line in lines:
    key = line.split('=', 1)[0].strip() if '=' in line else None
    if key in pending and not line.lstrip().startswith('#'):
      updated.append(f"{key}={pending.pop(key)}")
    else:
      updated.append(line)
  for key, value in pending.items():
    updated.append(f"{key}={value}")

  fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
  try:
    with os.fdopen(fd, 'w') as f:
      f.write("\n".join(updated) + "\n")
    if path.exists():
      os.chmod(tmp_name, path.stat().st_mode)
    os.replace(tmp_name, path)
  except OSError:
    if os.path.exists(tmp_name):
      os.remove(tmp_name)
    raise


def validate_project_name(name: str) -> str:
  name = name.strip()
  if not name or name in ('.', '..') or '/' in name or '\\' in name:
    raise UsageError(f"Invalid project name: '{name}' (path separators are not allowed)")
  return name


def node_container_name(name: str) -> str:
  """Force exactly one `_node` suffix"""
  base = name
  while base.endswith(config.node_suffix):
    base = base[:-len(config.node_suffix)]
  return f"{base}{config.node_suffix}"


##
# Immutable runtime settings
##
@dataclass(frozen=True)
class Settings:
  project_name: str = config.defaults['project_name']
  container_name: str = config.defaults['container_name']
  server_port: int = config.defaults['server_port']
  mysql_container: str = config.defaults['mysql_container']
  vite_port: int = config.defaults['vite_port']
  wait_timeout: float = config.defaults['wait_timeout']
  wait_interval: float = config.defaults['wait_interval']
  base_dir: str = config.base_dir

  @property
  def project_path(self) -> str:
    return posixpath.join(self.base_dir, self.project_name)

  def with_project(self, name: str) -> 'Settings':
    return replace(self, project_name=validate_project_name(name))

  def with_container(self, name: str) -> 'Settings':
    if not name.strip():
      raise UsageError("Container name cannot be empty")
    return replace(self, container_name=name.strip())

  def with_port(self, port: int) -> 'Settings':
    if port not in config.server_ports:
      allowed = ", ".join(str(p) for p in config.server_ports)
      raise UsageError(f"Unsupported server port {port} (allowed: {allowed})")
    return replace(self, server_port=port)

  def with_timeout(self, timeout: float) -> 'Settings':
    if timeout <= 0:
      raise UsageError("Timeout must be a positive number of seconds")
    return replace(self, wait_timeout=timeout)


##
# Project configuration helper class
##
class ProjectConfig:
  """Handle project-specific paths and settings"""

  def __init__(self, root: Path, build_dir: Optional[Path] = None):
    self.output = Output()
    self.root_dir: Path = root
    self.build_dir: Path = build_dir or root / config.build_dir
    self.env_file: Path = self.build_dir / config.env_file
    self.compose_file: Path = self.build_dir / config.compose_file
    self.node_dir: Path = self.build_dir / config.node_dir
    self.node_env_file: Path = self.node_dir / config.env_file
    self.node_compose_file: Path = self.node_dir / config.compose_file

    icon = f"[bold green]{escape(self.output.icon('ok'))}[/bold green]"
    self.output.verbose_panel(
      content=f"{icon} Project root: {escape(str(self.root_dir))}\n"
              f"{icon} Build dir: {escape(str(self.build_dir))}\n"
              f"{icon} Env file: {escape(str(self.env_file))}\n"
              f"{icon} Compose file: {escape(str(self.compose_file))}\n"
              f"{icon} Node compose file: {escape(str(self.node_compose_file))}\n",
      title="[bold green]Project Config[/bold green]",
    )

  def load_settings(self, node: bool = False) -> Settings:
    """Build settings from defaults, then the env file"""
    env_file = self.node_env_file if node else self.env_file
    env: Dict[str, str] = {}
    if env_file.exists():
      env = read_env_file(env_file)
    else:
      self.output.warning(f"No env file found at {escape(str(env_file))}, using defaults")

    names = config.env_name
    defaults = config.defaults

    project_name = env.get(names['project_name']) or defaults['project_name']
    try:
      project_name = validate_project_name(project_name)
    except UsageError as e:
      raise PreconditionError(e.message, [f"Fix {names['project_name']} in {env_file}"])

    container_name = env.get(names['container_name']) or defaults['container_name']
    if node:
      container_name = node_container_name(container_name)

    server_port = self._int_env(env, 'server_port')
    if server_port not in config.server_ports:
      self.output.warning(
        f"{names['server_port']}={server_port} is not one of {config.server_ports}, "
        f"using {defaults['server_port']}"
      )
      server_port = defaults['server_port']

    wait_timeout = defaults['wait_timeout']
    raw_timeout = env.get(names['wait_timeout'])
    if raw_timeout:
      try:
        wait_timeout = float(raw_timeout)
        if wait_timeout <= 0:
          raise ValueError(raw_timeout)
      except ValueError:
        self.output.warning(f"Invalid {names['wait_timeout']}='{escape(raw_timeout)}', using {defaults['wait_timeout']}")
        wait_timeout = defaults['wait_timeout']

    settings = Settings(
      project_name=project_name,
      container_name=container_name,
      server_port=server_port,
      mysql_container=env.get(names['mysql_container']) or defaults['mysql_container'],
      vite_port=self._int_env(env, 'vite_port'),
      wait_timeout=wait_timeout,
    )
    self.output.debug(f"Settings: {settings}")
    return settings

  def _int_env(self, env: Dict[str, str], key: str) -> int:
    raw = env.get(config.env_name[key])
    if not raw:
      return config.defaults[key]
    try:
      return int(raw)
    except ValueError:
      self.output.warning(f"Invalid {config.env_name[key]}='{escape(raw)}', using {config.defaults[key]}")
      return config.defaults[key]


def configure_env(env_file: Path, node: bool = False) -> Dict[str, str]:
  """Interactively edit PROJECT_NAME and CONTAINER_NAME in `env_file`"""
  output = Output()
  if not env_file.exists():
    raise PreconditionError(
      f"File {env_file} not found",
      ["Create the .env file first with PROJECT_NAME and CONTAINER_NAME"],
    )

  names = config.env_name
  current = read_env_file(env_file)
  current_project = current.get(names['project_name']) or config.defaults['project_name']
  current_container = current.get(names['container_name']) or config.defaults['container_name']

  output.header("Project name configuration")
  project_name = validate_project_name(output.ask("Project name", current_project))

  if node:
    base = node_container_name(current_container)[:-len(config.node_suffix)]
    output.info(f"'{config.node_suffix}' will be added to the container name automatically")
    container_name = node_container_name(output.ask("Container base name", base))
  else:
    container_name = output.ask("Container name", current_container)

  values = {
    names['project_name']: project_name,
    names['container_name']: container_name,
  }
  update_env_file(env_file, values)

  output.success(f"File {escape(str(env_file))} updated:")
  for key, value in values.items():
    output.console.print(f"   {key}={escape(value)}")
  return values


def find_root(start: Optional[Path] = None) -> Path:
  """Find the project root by looking for the build directory"""
  current = (start or Path.cwd()).resolve()
  probe = current
  while True:
    build = probe / config.build_dir
    if (build / config.env_file).is_file() or (build / config.compose_file).is_file():
      return probe
    if probe == probe.parent:
      return current
    probe = probe.parent


def load_project(build_dir: Optional[Path] = None) -> ProjectConfig:
  if build_dir:
    build_dir = build_dir.resolve()
    return ProjectConfig(build_dir.parent, build_dir)
  return ProjectConfig(find_root())
