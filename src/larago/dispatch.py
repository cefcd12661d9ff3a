from dataclasses import dataclass
from typing import Optional

from rich import box
from rich.markup import escape
from rich.table import Table

from larago.config import config
from larago.errors import UsageError
from larago.output import Output

# Arity kinds
NONE = "none"
ONE = "one"
MANY = "many"
REST = "rest"


@dataclass(frozen=True)
class Flag:
  names: tuple[str, ...]
  action: str
  help: str
  section: str
  arity: str = NONE
  metavar: str = ""
  value: Optional[str] = None

  @property
  def label(self) -> str:
    label = ", ".join(self.names)
    return f"{label} {self.metavar}" if self.metavar else label


@dataclass(frozen=True)
class Action:
  name: str
  flag: str
  args: tuple[str, ...] = ()


FLAGS: tuple[Flag, ...] = (
  Flag(("-p", "--project"), "project", "Switch to project context", "Project & context", ONE, "<name>"),

  Flag(("-r", "--run"), "run", "Start Laravel development server (background)", "Development server"),
  Flag(("-k", "--kill"), "kill", "Stop development server", "Development server"),
  Flag(("--port8000",), "port", "Use port 8000 (default)", "Development server", value="8000"),
  Flag(("--port8080",), "port", "Use port 8080", "Development server", value="8080"),
  Flag(("--port8008",), "port", "Use port 8008", "Development server", value="8008"),

  Flag(("--new",), "new", "Create new Laravel project", "Project initialization", ONE, "<name>"),
  Flag(("--clone",), "clone", "Clone & set up a project from GitHub", "Project initialization", ONE, "<user/repo>"),
  Flag(("-i", "--init"), "init", "Full setup: env, containers, migrations", "Project initialization"),
  Flag(("-m", "--migrate"), "migrate", "Run migrations + seeders", "Project initialization"),

  Flag(("-M", "--make-MMC"), "make_mmc", "Create Model+Migration+Controller per name",
       "Code generation & maintenance", MANY, "<models...>"),
  Flag(("-c", "--clear"), "clear", "Clear cache, config, view and route caches", "Code generation & maintenance"),
  Flag(("--composer",), "composer", "Run composer install", "Code generation & maintenance"),
  Flag(("-s", "--shell"), "shell", "Enter container shell", "Code generation & maintenance"),

  Flag(("--node",), "node", "Node.js/Vite container commands (see --node help)", "Node.js & Vite", REST, "<command...>"),

  Flag(("-h", "--help"), "help", "Show this help", "Help"),
)

EXAMPLES = (
  ("--init", "Initial project setup"),
  ("-p blog --new blog", "Create & switch to 'blog'"),
  ("-p api -r", "Run server on 'api' project"),
  ("--port8080 -r", "Run on port 8080"),
  ("-M User Post Category", "Generate multiple models"),
  ("--clone owner/myapp", "Clone from GitHub"),
  ("--node setup", "First-time Node.js/Vite setup"),
)


def find_flag(token: str) -> Optional[Flag]:
  for flag in FLAGS:
    if token in flag.names:
      return flag
  return None


def _is_value(token: str) -> bool:
  return bool(token) and not token.startswith('-')


def parse(argv: list[str]) -> list[Action]:
  """Turn the argument vector into an ordered list of actions.

  Parsing happens before any action runs, so a malformed vector never
  leaves partial effects behind. Parsing stops at -h/--help.
  """
  if not argv:
    raise UsageError("No arguments provided.")

  actions: list[Action] = []
  i = 0
  while i < len(argv):
    token = argv[i]
    inline: Optional[str] = None
    if token.startswith('--') and '=' in token:
      token, inline = token.split('=', 1)

    flag = find_flag(token)
    if flag is None:
      raise UsageError(f"Invalid option: {argv[i]}")
    if inline is not None and flag.arity != ONE:
      raise UsageError(f"Option {token} does not take a value")
    i += 1

    if flag.arity == NONE:
      args = (flag.value,) if flag.value else ()

    elif flag.arity == ONE:
      if inline is not None:
        value = inline
      elif i < len(argv) and _is_value(argv[i]):
        value = argv[i]
        i += 1
      else:
        value = ""
      if not value:
        raise UsageError(f"Missing {flag.metavar} after {'/'.join(flag.names)}.")
      args = (value,)

    elif flag.arity == MANY:
      start = i
      while i < len(argv) and _is_value(argv[i]):
        i += 1
      args = tuple(argv[start:i])
      if not args:
        raise UsageError(
          f"No {flag.metavar.strip('<>.')} provided after {'/'.join(flag.names)}.",
          [f"Example: {config.bin_name} {flag.names[0]} User Post Category"],
        )

    else:
      args = tuple(argv[i:])
      i = len(argv)

    actions.append(Action(flag.action, token, args))
    if flag.action == "help":
      break

  return actions


def display_help(project_name: str = config.defaults['project_name']):
  output = Output()
  bin_name = config.bin_name

  table = Table(box=box.SIMPLE, show_header=False, pad_edge=False)
  table.add_column("Option", style="cyan", no_wrap=True)
  table.add_column("Description")

  section = None
  for flag in FLAGS:
    if flag.section != section:
      section = flag.section
      table.add_row(f"[bold]{section.upper()}[/bold]", "")
    description = flag.help
    if flag.action == "project":
      description += f" (current: {project_name})"
    table.add_row(f"  {escape(flag.label)}", escape(description))

  table.add_row("", "")
  table.add_row("[bold]EXAMPLES[/bold]", "")
  for example, description in EXAMPLES:
    table.add_row(f"  {bin_name} {escape(example)}", description)

  output.panel(table, title=f"[bold]LARAVEL DEV TOOL[/bold]  usage: {bin_name} {escape('[OPTIONS] [FLAGS...]')}")
