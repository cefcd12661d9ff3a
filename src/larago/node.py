import posixpath
from subprocess import CompletedProcess
from typing import Optional

from rich import box
from rich.markup import escape
from rich.table import Table

from larago.config import config
from larago.docker import DockerClient
from larago.errors import CommandError, PreconditionError, RouteMergeError, UsageError
from larago.output import Output
from larago.project import ProjectConfig, Settings, configure_env
from larago.routes import merge_routes
from larago.vite import needs_patch, render_vite_config
from larago.wait import wait_until

BREEZE_STACKS = {"1": "blade", "2": "react", "3": "vue"}


##
# Node.js + Vite container manager
##
class NodeManager:
  """Drive the Node.js/Vite companion container"""

  def __init__(self, project: ProjectConfig, docker: DockerClient):
    self.output = Output()
    self.project = project
    self.docker = docker
    self.compose_file = project.node_compose_file
    self.settings: Optional[Settings] = None
    self.commands = {
      "start":   self.start,
      "dev":     self.start,
      "stop":    self.stop,
      "down":    self.stop,
      "restart": self.restart,
      "status":  self.status,
      "build":   self.build,
      "install": self.install,
      "config":  self.configure,
      "logs":    self.logs,
      "sh":      self.shell,
      "shell":   self.shell,
      "npm":     self.npm,
      "clean":   self.clean,
      "setup":   self.setup,
    }

  def run(self, args: list[str]):
    if not args or args[0] not in self.commands:
      if args and args[0] not in ("help", "--help", "-h"):
        self.output.warning(f"Unknown node command: {escape(args[0])}")
      self.help()
      return

    name, rest = args[0], args[1:]
    self.settings = self.project.load_settings(node=True)
    if name == "npm":
      self.npm(*rest)
    elif rest:
      raise UsageError(f"'--node {name}' takes no arguments")
    else:
      self.commands[name]()

  def compose(self, *args: str, **kwargs) -> CompletedProcess:
    return self.docker.compose(list(args), compose_file=self.compose_file, **kwargs)

  def node_exec(self, *args: str, **kwargs) -> CompletedProcess:
    return self.compose("exec", "-T", config.node_service, *args, **kwargs)

  def is_running(self) -> bool:
    return self.docker.host_port_listening(self.settings.vite_port)

  def require_running(self):
    if not self.is_running():
      raise PreconditionError(
        "Node.js container is not running",
        [f"Start it with: {config.bin_name} --node dev"],
      )

  @staticmethod
  def check(result: CompletedProcess, message: str):
    if result.returncode != 0:
      raise CommandError(message, result.args, result.returncode,
                         hints=[f"Check logs: {config.bin_name} --node logs"])

  # --------------------------------------
  # Vite config
  # --------------------------------------
  def vite_config_path(self) -> str:
    return posixpath.join(config.node_app_dir, "vite.config.js")

  def ensure_vite_config(self):
    """Make sure vite.config.js inside the container serves HMR to the host"""
    path = self.vite_config_path()
    self.output.info("Checking vite.config.js inside container...")

    if self.node_exec("test", "-f", path).returncode == 0:
      current = self.node_exec("cat", path)
      if current.returncode == 0 and not needs_patch(current.stdout):
        self.output.success("vite.config.js already configured")
        return
      self.output.info("Patching vite.config.js with Docker fixes...")
      self.check(self.node_exec("cp", path, f"{path}.bak"), "Could not back up vite.config.js")
    else:
      self.output.info("Creating vite.config.js...")

    result = self.node_exec("sh", "-c", f"cat > {path}", input=render_vite_config(self.settings.vite_port))
    self.check(result, "Could not write vite.config.js")
    self.output.success("vite.config.js is configured inside container")

  def wait_for_container(self):
    """Wait until the node service accepts exec calls"""
    try:
      wait_until(
        lambda: self.node_exec("true").returncode == 0,
        timeout=min(self.settings.wait_timeout, 60.0),
        interval=self.settings.wait_interval,
        on_attempt=lambda _: self.output.tick(),
        description="the Node.js container",
      )
    finally:
      self.output.newline()

  # --------------------------------------
  # Container management
  # --------------------------------------
  def start(self, follow_logs: bool = True):
    self.output.info("Starting Node.js development server...")
    self.check(self.compose("up", "-d", capture_output=False), "Failed to start Node.js container")
    self.wait_for_container()
    self.ensure_vite_config()

    table = Table(box=box.ROUNDED, show_header=False, title="[bold green]Vite development server started[/bold green]")
    table.add_column("Key", style="yellow")
    table.add_column("Value")
    table.add_row("Project", escape(self.settings.project_name))
    table.add_row("Container", escape(self.settings.container_name))
    table.add_row("Dev Server", f"[green]http://localhost:{self.settings.vite_port}[/green]")
    table.add_row("Hot Reload", "[green]Enabled[/green]")
    self.output.console.print(table)
    self.output.info("Changes in resources/ will trigger automatic rebuild")

    if follow_logs:
      self.output.info("Tip: press Ctrl+C to stop watching logs")
      self.compose("logs", "-f", config.node_service, capture_output=False)

  def stop(self):
    self.output.info("Stopping Node.js container...")
    self.check(self.compose("down"), "Failed to stop Node.js container")
    self.output.success("Node.js container stopped")

  def restart(self):
    self.output.info(f"Restarting Node.js container ({escape(self.settings.container_name)})...")
    self.check(self.compose("restart", config.node_service), "Failed to restart Node.js container")
    self.output.success("Node.js container restarted successfully")
    self.output.info(f"Vite dev server available at http://localhost:{self.settings.vite_port}")

  def status(self):
    running = self.is_running()
    suffix = config.node_suffix
    table = Table(box=box.ROUNDED, show_header=False, title="[bold cyan]Node.js container status[/bold cyan]")
    table.add_column("Key", style="yellow")
    table.add_column("Value")
    table.add_row("Container", "[green]RUNNING[/green]" if running else "[red]STOPPED[/red]")
    table.add_row("Project", escape(self.settings.project_name))
    table.add_row("Container Base", escape(self.settings.container_name[:-len(suffix)]))
    table.add_row("Container Full", escape(self.settings.container_name))
    table.add_row("Vite Dev Server", f"http://localhost:{self.settings.vite_port}")
    self.output.console.print(table)

    if running:
      self.output.success("Ready for development!")
    else:
      self.output.warning(f"Container is stopped - use '{config.bin_name} --node start'")

  # --------------------------------------
  # Development
  # --------------------------------------
  def install(self):
    self.output.info("Installing/updating Node.js dependencies...")
    self.compose("up", "-d", "--no-deps", config.node_service)

    node_modules = posixpath.join(config.node_app_dir, "node_modules")
    if self.node_exec("test", "-d", node_modules).returncode == 0 and \
       self.node_exec("npm", "install", "--quiet", capture_output=False).returncode == 0:
      self.output.success("Dependencies updated successfully (exec)")
    elif self.compose("run", "--rm", config.node_service, "npm", "install", "--quiet",
                      capture_output=False).returncode == 0:
      self.output.success("Dependencies installed successfully (run)")
    else:
      raise CommandError("Failed to install Node.js dependencies",
                         hints=[f"Check logs: {config.bin_name} --node logs"])

    self.ensure_vite_config()
    self.output.success("Node.js environment ready")

  def build(self):
    self.output.info("Building production assets...")
    result = self.compose("run", "--rm", config.node_service, "npm", "run", "build", capture_output=False)
    self.check(result, "Build failed")
    self.output.success("Assets ready in: public/build/")

  def configure(self):
    configure_env(self.project.node_env_file, node=True)
    self.settings = self.project.load_settings(node=True)

  # --------------------------------------
  # Debug
  # --------------------------------------
  def logs(self):
    self.require_running()
    self.output.info("Showing logs (Ctrl+C to exit)...")
    self.compose("logs", "-f", config.node_service, capture_output=False)

  def shell(self):
    self.require_running()
    self.output.info("Entering container shell...")
    self.compose("exec", config.node_service, "sh", capture_output=False)

  def npm(self, *args: str):
    self.require_running()
    if not args:
      raise UsageError(
        "No npm command provided",
        [f"{config.bin_name} --node npm run dev",
         f"{config.bin_name} --node npm install",
         f"{config.bin_name} --node npm run lint"],
      )
    self.output.info(f"npm {escape(' '.join(args))}")
    self.check(self.compose("exec", config.node_service, "npm", *args, capture_output=False),
               f"npm {args[0]} failed")

  # --------------------------------------
  # Utilities
  # --------------------------------------
  def clean(self):
    self.output.warning("This will stop and remove the Node.js container and volumes")
    if not self.output.confirm("Are you sure?"):
      self.output.info("Clean cancelled")
      return
    self.output.info("Cleaning Node.js environment...")
    self.check(self.compose("down", "-v"), "Failed to clean Node.js environment")
    self.output.success("Clean completed")

  def setup(self):
    self.output.header("Node.js initial setup")
    self.configure()

    self.output.info("Existing project detection")
    has_breeze = self.output.confirm("Is this an existing Laravel project that already had Breeze?")

    self.install()
    self.start(follow_logs=False)
    if has_breeze:
      self.install_breeze()
    self.status()

  def install_breeze(self):
    """Install Breeze into the Laravel service, keeping the project's own routes"""
    self.output.panel(
      "Your current routes/web.php will be preserved.\n"
      "Breeze routes are added at the end without modifying your existing code.",
      title="[bold green]Breeze install[/bold green]",
      border_style="green",
    )

    self.output.console.print("Which Breeze stack do you prefer?")
    self.output.console.print(" 1) Blade with Alpine (recommended)\n 2) React\n 3) Vue")
    stack = BREEZE_STACKS.get(self.output.ask("Option", "1"), "blade")
    dark = self.output.confirm("Do you want dark mode support?")

    project_path = posixpath.join(config.base_dir, self.settings.project_name)

    def laravel(*cmd: str, **kwargs) -> CompletedProcess:
      return self.docker.compose(
        ["exec", "-T", "-w", project_path, config.laravel_service, *cmd],
        compose_file=self.project.compose_file, **kwargs,
      )

    self.output.info("Installing Breeze in Laravel container...")
    custom = laravel("cat", "routes/web.php")
    self.check(custom, "Could not read routes/web.php")
    self.check(laravel("cp", "routes/web.php", "routes/web.php.MY_CUSTOM"), "Could not back up routes/web.php")

    self.check(laravel("composer", "require", "laravel/breeze", "--dev", capture_output=False),
               "composer require laravel/breeze failed")
    install = ["php", "artisan", "breeze:install", stack, *(["--dark"] if dark else []), "--pest", "--no-interaction"]
    self.check(laravel(*install, capture_output=False), "breeze:install failed")

    generated = laravel("cat", "routes/web.php")
    self.check(generated, "Could not read generated routes/web.php")
    try:
      merged = merge_routes(custom.stdout, generated.stdout)
    except RouteMergeError as e:
      e.hints.append("Your original routes are saved in routes/web.php.MY_CUSTOM")
      raise

    self.check(laravel("sh", "-c", "cat > routes/web.php", input=merged), "Could not write routes/web.php")
    laravel("rm", "-f", "routes/web.php.MY_CUSTOM")
    laravel("chown", "1000:1000", "routes/web.php")

    self.output.info("Installing and building Node dependencies...")
    self.check(self.node_exec("npm", "install", capture_output=False), "npm install failed")
    self.check(self.node_exec("npm", "run", "build", capture_output=False), "npm run build failed")
    self.output.success("Breeze installed successfully")

  def help(self):
    bin_name = config.bin_name
    table = Table(box=box.SIMPLE, show_header=False, pad_edge=False)
    table.add_column("Command", style="cyan", no_wrap=True)
    table.add_column("Description")
    rows = (
      ("[bold]CONTAINER MANAGEMENT[/bold]", ""),
      ("  start, dev", "Start Node.js container"),
      ("  stop, down", "Stop Node.js container"),
      ("  restart", "Restart Node.js container"),
      ("  status", "Show container status"),
      ("[bold]DEVELOPMENT[/bold]", ""),
      ("  build", "Build for production"),
      ("  npm <cmd>", "Run any npm command"),
      ("  install", "Install/update Node.js dependencies"),
      ("[bold]CONFIGURATION[/bold]", ""),
      ("  config", "Interactive configuration"),
      ("[bold]DEBUGGING[/bold]", ""),
      ("  logs", "Show container logs"),
      ("  sh, shell", "Enter container shell"),
      ("[bold]UTILITIES[/bold]", ""),
      ("  clean", "Stop and remove containers/volumes"),
      ("  setup", "Initial setup (install + start)"),
      ("  help", "Show this help"),
    )
    for command, description in rows:
      table.add_row(command, description)
    self.output.panel(table, title=f"[bold]NODE.JS DEVELOPMENT[/bold]  usage: {bin_name} --node COMMAND")
