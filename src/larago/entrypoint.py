#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Script Name: larago-entrypoint
Name: Laravel container entrypoint
Description: Prepares the Laravel project inside the container, then runs the container command.

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

import os
import shlex
import subprocess
import sys
from pathlib import Path

import click
from rich.markup import escape

from larago.config import config
from larago.errors import LaragoError
from larago.output import Output
from larago.project import validate_project_name


def step(cmd: list[str], cwd: Path) -> bool:
  """Run one boot step; a failure is reported and boot carries on"""
  output = Output()
  output.debug(f"Running: {shlex.join(cmd)} (in {cwd})")
  try:
    returncode = subprocess.run(cmd, cwd=cwd).returncode
  except OSError as e:
    output.warning(f"Could not run {escape(shlex.join(cmd))}: {escape(str(e))}")
    return False
  if returncode != 0:
    output.warning(f"Command failed with exit code {returncode}: {escape(shlex.join(cmd))}")
    return False
  return True


def prepare_project(base_dir: Path, project_name: str) -> bool:
  """Create the project on first boot, install vendors on later boots.

  Returns False when any step failed. Permissions and the config cache are
  always handled, whatever happened before.
  """
  output = Output()
  project_dir = base_dir / project_name
  ok = True

  if not (project_dir / config.marker_file).is_file():
    output.info(f"Project '{escape(project_name)}' not found. Creating Laravel application...")
    ok &= step(["composer", "create-project", "--prefer-dist", "laravel/laravel", project_name], base_dir)
    ok &= step(["php", "artisan", "key:generate"], project_dir)
    if ok:
      output.success(f"Project '{escape(project_name)}' created and configured")
  else:
    output.info(f"Project '{escape(project_name)}' already exists. Checking dependencies...")
    if not (project_dir / "vendor").is_dir():
      output.warning("'vendor' folder missing. Running optimized composer install...")
      ok &= step(["composer", "install", "--no-dev", "--optimize-autoloader"], project_dir)

  output.info("Configuring permissions and clearing cache...")
  ok &= step(["chmod", "-R", "775", "storage", "bootstrap/cache"], project_dir)
  # Stale cached config from a previous image would override the mounted .env
  ok &= step(["php", "artisan", "config:clear"], project_dir)
  return ok


@click.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
               help="Prepare the Laravel project, then exec COMMAND")
@click.option("--project", "project_name", envvar="PROJECT_NAME", default=config.defaults['project_name'],
              show_default=True, help="Project directory name under the base dir")
@click.option("--base-dir", type=click.Path(path_type=Path, file_okay=False), default=config.base_dir,
              show_default=True, help="Web root inside the container")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output for debugging")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def main(project_name: str, base_dir: Path, verbose: bool, command: tuple[str, ...]) -> None:
  output = Output(verbose)
  try:
    ok = prepare_project(base_dir, validate_project_name(project_name))
  except LaragoError as e:
    output.error(escape(e.message))
    sys.exit(e.exit_code)

  if not ok:
    output.warning("Some boot steps failed, starting the container command anyway")
  if command:
    sys.stdout.flush()
    os.execvp(command[0], list(command))
  sys.exit(0 if ok else 1)


if __name__ == '__main__':
  main()
