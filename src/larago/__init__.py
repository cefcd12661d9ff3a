#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Script Name: larago
Name: Laravel Docker development CLI tool
Description: A Python-based tool for driving Laravel development inside Docker containers.

Copyright (c) 2025 Alex Sytnyk <opensource@banesbyte.com>

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

##
# Metadata
##

__version__ = "1.0.0-alpha.1"
__status__ = "Prototype" # Options: "Development", "Production", "Prototype"

__license__ = "MIT"
__copyright__ = "Copyright, 2025 Alex Sytnyk <opensource@banesbyte.com>"
__maintainer__ = "Alex Sytnyk"
__author__ = "Alex Sytnyk, Artem Taranyuk"
__email__ = "opensource@banesbyte.com"

##
# Imports
##
import sys
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape

from larago.dispatch import display_help, parse
from larago.errors import LaragoError, UsageError
from larago.manager import CliManager
from larago.output import Output
from larago.project import Settings, load_project


def report(output: Output, error: LaragoError) -> None:
  output.error(escape(error.message))
  for hint in error.hints:
    output.hint(escape(hint))


##
# Click-based CLI
##
@click.command(
  help="Laravel Docker development tool. Run with -h for the list of flags.",
  add_help_option=False,
  context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.version_option(version=__version__, prog_name="larago")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output for debugging")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--build-dir", type=click.Path(path_type=Path, file_okay=False), default=None,
              help="Directory holding .env and docker-compose.yml (default: ./build of the project root)")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for services to come up")
@click.argument("flags", nargs=-1, type=click.UNPROCESSED)
def main(verbose: bool, no_color: bool, build_dir: Optional[Path], timeout: Optional[float],
         flags: tuple[str, ...]) -> None:
  """larago command-line interface"""
  output = Output(verbose, no_color)
  output.debug("Verbose mode enabled")

  settings = Settings()
  try:
    project = load_project(build_dir)
    settings = project.load_settings()
    if timeout is not None:
      settings = settings.with_timeout(timeout)
    actions = parse(list(flags))
    CliManager(__version__, project).dispatch(actions, settings)
  except UsageError as e:
    report(output, e)
    display_help(settings.project_name)
    sys.exit(e.exit_code)
  except LaragoError as e:
    report(output, e)
    sys.exit(e.exit_code)
  except KeyboardInterrupt:
    # click would turn this into "Aborted!" with exit code 1
    output.newline()
    output.error("Interrupted by user")
    sys.exit(130)

# --------------------------------------


def custom_excepthook(exc_type, exc_value, exc_traceback):
  if exc_type == KeyboardInterrupt:
    click.echo("\n\nInterrupted by user", err=True)
    sys.exit(130)
  sys.__excepthook__(exc_type, exc_value, exc_traceback)


sys.excepthook = custom_excepthook

##
# Entry point
##
if __name__ == '__main__':
  try:
    main()
  except KeyboardInterrupt:
    click.echo("\nInterrupted by user", err=True)
    sys.exit(130)
  except Exception as e:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)
