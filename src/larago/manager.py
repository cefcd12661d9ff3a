import shlex
from pathlib import Path
from subprocess import CompletedProcess
from typing import Callable, Optional

from rich.markup import escape

from larago.config import config
from larago.dispatch import Action, display_help
from larago.docker import DockerClient
from larago.errors import CommandError, PreconditionError
from larago.gitsync import GitSync
from larago.node import NodeManager
from larago.output import Output
from larago.project import ProjectConfig, Settings, configure_env
from larago.wait import wait_until


##
# Laravel manager class
##
class CliManager:
  """Main larago application class"""

  def __init__(self, version: str, project: ProjectConfig):
    self.version = version
    self.output = Output()
    self.project = project
    self.docker = DockerClient(project.compose_file)
    self.handlers: dict[str, Callable[..., Optional[Settings]]] = {
      "project":  self.set_project,
      "port":     self.set_port,
      "run":      self.run_server,
      "kill":     self.kill_server,
      "new":      self.new_project,
      "clone":    self.clone,
      "init":     self.init,
      "migrate":  self.migrate,
      "make_mmc": self.make_mmc,
      "clear":    self.clear,
      "composer": self.composer_install,
      "shell":    self.shell,
      "node":     self.node,
      "help":     self.help,
    }

  def dispatch(self, actions: list[Action], settings: Settings) -> Settings:
    """Run actions in order; each one sees the settings left by the previous one"""
    for action in actions:
      self.output.debug(f"Action: {action.flag} {' '.join(action.args)}".rstrip())
      settings = self.handlers[action.name](settings, *action.args) or settings
    return settings

  # --------------------------------------
  # Command proxies
  # --------------------------------------
  def artisan(self, settings: Settings, *args: str) -> CompletedProcess:
    return self.docker.exec(settings.container_name, ["php", "artisan", *args],
                            workdir=settings.project_path, capture_output=False)

  def composer(self, settings: Settings, *args: str) -> CompletedProcess:
    return self.docker.exec(settings.container_name, ["composer", *args],
                            workdir=settings.project_path, capture_output=False)

  @staticmethod
  def check(result: CompletedProcess, message: str):
    if result.returncode != 0:
      raise CommandError(f"{message} (exit code {result.returncode})", result.args, result.returncode)

  def wait_for_port(self, container: str, port: int, description: str, settings: Settings) -> int:
    self.output.info(f"Waiting for {description}...")
    try:
      attempts = wait_until(
        lambda: self.docker.port_listening(container, port),
        timeout=settings.wait_timeout,
        interval=settings.wait_interval,
        on_attempt=lambda _: self.output.tick(),
        description=description,
      )
    finally:
      self.output.newline()
    return attempts

  # --------------------------------------
  # Context
  # --------------------------------------
  def set_project(self, settings: Settings, name: str) -> Settings:
    settings = settings.with_project(name)
    self.output.info(f"Context switched to project: [bold]{escape(settings.project_name)}[/bold]")
    return settings

  def set_port(self, settings: Settings, port: str) -> Settings:
    settings = settings.with_port(int(port))
    self.output.info(f"Server port set to: {settings.server_port}")
    return settings

  def validate_project(self, settings: Settings):
    """Ensure the container runs and the project directory exists"""
    container = settings.container_name
    if not self.docker.is_container_running(container):
      raise PreconditionError(
        f"Container '{container}' is not running",
        [f"Start it with: {config.bin_name} --init"],
      )

    path = settings.project_path
    if not self.docker.path_exists(container, path, "d"):
      projects = self.docker.list_dirs(container, settings.base_dir)
      listing = ", ".join(projects) if projects else "(none found)"
      raise PreconditionError(
        f"Project '{settings.project_name}' doesn't exist at {path}",
        [
          f"Available projects in {settings.base_dir}: {listing}",
          f"Create project: {config.bin_name} --new {settings.project_name}",
          f"Switch project: {config.bin_name} -p existing_project_name",
          f"Clone from Git: {config.bin_name} --clone user/repo",
        ],
      )

    if not self.docker.path_exists(container, f"{path}/{config.marker_file}", "f"):
      self.output.warning(
        f"Project '{settings.project_name}' exists but doesn't look like a Laravel project "
        f"({config.marker_file} not found)"
      )

  # --------------------------------------
  # Development server
  # --------------------------------------
  def serve_command(self, settings: Settings) -> list[str]:
    return ["php", "artisan", "serve", "--host=0.0.0.0", f"--port={settings.server_port}"]

  def run_server(self, settings: Settings):
    """Start `artisan serve` detached inside the container"""
    self.validate_project(settings)
    self.output.info(
      f"Starting the development server for '{settings.project_name}' on port {settings.server_port}..."
    )
    result = self.docker.exec(settings.container_name, self.serve_command(settings),
                              workdir=settings.project_path, detach=True)
    self.check(result, "Error starting the development server")
    self.output.success(f"Development server started in the background for '{escape(settings.project_name)}'")
    self.output.info(f"URL: http://localhost:{settings.server_port}")
    self.output.info(
      f"Use: {config.bin_name} -p {settings.project_name} --port{settings.server_port} -k to stop it"
    )

  def kill_server(self, settings: Settings):
    self.validate_project(settings)
    self.output.info(
      f"Stopping the development server for '{settings.project_name}' on port {settings.server_port}..."
    )
    pattern = " ".join(self.serve_command(settings))
    result = self.docker.exec(settings.container_name, ["pkill", "-f", pattern])
    if result.returncode == 0:
      self.output.success("Server stopped successfully")
    else:
      self.output.warning(f"No 'php artisan serve' process was found running on port {settings.server_port}")

  # --------------------------------------
  # Project initialization
  # --------------------------------------
  def new_project(self, settings: Settings, name: str):
    """Scaffold a Laravel project under the container base dir"""
    target = settings.with_project(name)
    container = target.container_name
    path = target.project_path

    if self.docker.path_exists(container, path, "f"):
      self.output.warning(f"Found conflicting file at {escape(path)}. Removing it...")
      self.check(self.docker.exec(container, ["rm", "-f", path]), f"Could not remove {path}")

    if self.docker.path_exists(container, path, "d"):
      self.output.success(f"Project directory '{escape(target.project_name)}' already exists, skipping creation")
      return

    self.output.info(f"Creating new Laravel project: '{escape(target.project_name)}'...")
    result = self.docker.exec(
      container,
      ["composer", "create-project", "--prefer-dist", "laravel/laravel", target.project_name],
      workdir=target.base_dir, capture_output=False,
    )
    self.check(result, "Error creating the project")
    self.output.success(f"Project created at: ./{escape(target.project_name)} (on your host)")

    self.output.info("Generating application key...")
    self.check(self.artisan(target, "key:generate"), "Failed to generate application key")

    self.output.info("Configuring permissions...")
    for command in (["chown", "-R", "www-data:www-data", "storage", "bootstrap/cache"],
                    ["chmod", "-R", "775", "storage", "bootstrap/cache"]):
      self.check(self.docker.exec(container, command, workdir=path), "Failed to configure permissions")

    self.output.success(f"The project '{escape(target.project_name)}' is ready!")

  def clone(self, settings: Settings, repo: str):
    GitSync(self.docker).sync(repo, Path.cwd())
    self.output.info("Running 'composer install' inside the container...")
    self.check(self.composer(settings, "install"), "composer install failed")
    self.output.success("Clone and setup completed!")

  def init(self, settings: Settings) -> Settings:
    """Configure, start containers, wait for services and seed a fresh database"""
    names = config.env_name
    values = configure_env(self.project.env_file)
    settings = settings.with_project(values[names['project_name']]) \
                       .with_container(values[names['container_name']])

    with self.output.status("Building and starting containers..."):
      result = self.docker.compose(["up", "-d", "--build", "--quiet-pull"])
    if result.returncode != 0:
      self.output.error(escape(result.stderr.strip()))
    self.check(result, "Failed to start containers")

    self.wait_for_port(settings.container_name, settings.server_port,
                       f"Laravel (artisan serve on port {settings.server_port})", settings)
    self.output.success(f"Laravel is up and running on http://localhost:{settings.server_port}")

    self.output.info(f"Executing initial setup for '{escape(settings.project_name)}': migrate:fresh and seed")
    result = self.docker.exec(settings.container_name, ["cp", ".env", settings.project_path],
                              workdir=settings.base_dir)
    self.check(result, f"Failed to copy .env into {settings.project_path}")

    self.wait_for_port(settings.mysql_container, config.mysql_port, "MariaDB", settings)
    self.output.success("MariaDB is ready!")

    self.check(self.artisan(settings, "migrate:fresh", "--seed"), "Migrations failed")

    self.output.panel(
      f"Project [bold]{escape(settings.project_name)}[/bold] is ready\n"
      f"  URL: http://localhost:{settings.server_port}\n"
      f"  Container: {escape(settings.container_name)}",
      title="[bold green]All done[/bold green]",
      border_style="green",
    )
    return settings

  def migrate(self, settings: Settings):
    self.validate_project(settings)
    self.output.info(f"Executing migrations and seeders for '{escape(settings.project_name)}'...")
    self.check(self.artisan(settings, "migrate", "--seed"), "Migrations failed")

  # --------------------------------------
  # Code generation & maintenance
  # --------------------------------------
  def make_mmc(self, settings: Settings, *models: str):
    self.validate_project(settings)
    for model in models:
      self.output.info(f"Creating model: {escape(model)} (with migration, controller, resource)")
      self.check(self.artisan(settings, "make:model", model, "-mcr"), f"Failed to create model {model}")

  def clear(self, settings: Settings):
    self.validate_project(settings)
    self.output.info(f"Clearing all Laravel cache in '{escape(settings.project_name)}'...")
    for command in ("cache:clear", "config:clear", "view:clear", "route:clear"):
      self.check(self.artisan(settings, command), f"artisan {command} failed")
    self.output.success("Cache cleared")

  def composer_install(self, settings: Settings):
    self.validate_project(settings)
    self.output.info(f"Executing composer install in '{escape(settings.project_name)}'...")
    self.check(self.composer(settings, "install"), "composer install failed")

  def shell(self, settings: Settings):
    self.validate_project(settings)
    self.output.info(f"Entering the container shell at path '{escape(settings.project_path)}'...")
    result = self.docker.exec(settings.container_name, ["bash"],
                              workdir=settings.project_path, interactive=True)
    self.output.debug(f"Shell exited with code {result.returncode}: {shlex.join(result.args)}")

  # --------------------------------------
  # Node.js / Help
  # --------------------------------------
  def node(self, settings: Settings, *args: str):
    NodeManager(self.project, self.docker).run(list(args))

  def help(self, settings: Settings):
    display_help(settings.project_name)
