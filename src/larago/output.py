from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel


class SingletonMeta(type):
  _instances = {}

  def __call__(cls, *args, **kwargs):
    if cls not in cls._instances:
      cls._instances[cls] = super().__call__(*args, **kwargs)
    return cls._instances[cls]

  def reset(cls):
    """Drop the shared instance so the next call builds a fresh one"""
    cls._instances.pop(cls, None)

##
# Output utilities with Rich.Console
##
class Output(metaclass=SingletonMeta):
  """Handle formatted output using Rich."""

  def __init__(self, verbose: bool = False, no_color: Optional[bool] = None):
    # Only initialize once
    if not hasattr(self, '_initialized'):
      self.is_verbose = verbose
      self.colors = not no_color
      self.console = Console(no_color=no_color, highlight=False)
      self.error_console = Console(stderr=True, no_color=no_color, highlight=False)
      self._initialized = True

  def icon(self, icon: str) -> str:
    """Return a formatted icon"""
    c = self.colors
    match icon:
      case "info": return "ℹ" if c else "[i]"
      case "status": return "◌" if c else "[i]"
      case "ok": return "✓" if c else "[ok]"
      case "error": return "✗" if c else "[x]"
      case "warning": return "⚠" if c else "[!]"
      case "debug": return "⚙" if c else "[d]"
      case "hint": return "›" if c else "[>]"
    return ""

  def success(self, message: str):
    self.console.print(f"[bold green]{escape(self.icon('ok'))} {message}[/bold green]")

  def error(self, message: str):
    self.error_console.print(f"[bold red]{escape(self.icon('error'))} {message}[/bold red]")

  def warning(self, message: str):
    self.console.print(f"[bold yellow]{escape(self.icon('warning'))} {message}[/bold yellow]")

  def info(self, message: str):
    self.console.print(f"[bold blue]{escape(self.icon('info'))}[/bold blue] {message}")

  def hint(self, message: str):
    self.console.print(f"  [cyan]{escape(self.icon('hint'))}[/cyan] {message}")

  def debug(self, message: str):
    if self.is_verbose:
      self.console.print(f"[dim]{escape(self.icon('debug'))} {escape(message)}[/dim]")

  def verbose_panel(self, content: str, title: str = "", border_style: str = "cyan"):
    if self.is_verbose:
      self.console.print(Panel(content, title=title, border_style=border_style, width=80))

  def panel(self, content, title: str = "", border_style: str = "cyan"):
    self.console.print(Panel(content, title=title, border_style=border_style))

  def status(self, message: str):
    return self.console.status(f"[bold green]{message}")

  def header(self, message: str):
    self.console.rule(f"[bold cyan]{message}[/bold cyan]")

  def separator(self):
    self.console.print("[dim]" + "-" * 40 + "[/dim]")

  def tick(self):
    """Print a single progress mark without a newline"""
    self.console.print(".", end="")

  def newline(self):
    self.console.print()

  # --------------------------------------
  # Prompts
  # --------------------------------------
  def ask(self, question: str, default: str = "") -> str:
    """Read a line from the operator, keeping `default` on empty input"""
    suffix = f" [current: {default}] (Enter = keep): " if default else ": "
    try:
      response = input(f"{question}{suffix}")
    except EOFError:
      response = ""
    return response.strip() or default

  def confirm(self, question: str) -> bool:
    try:
      response = input(f"{question} [y/N] ")
    except EOFError:
      return False
    return response.strip().lower() in ("y", "yes")
