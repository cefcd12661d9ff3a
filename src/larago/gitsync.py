import getpass
import re
import shutil
from pathlib import Path

from rich.markup import escape

from larago.config import config
from larago.docker import DockerClient
from larago.errors import AbortedError, CommandError, UsageError
from larago.output import Output

REPO_RE = re.compile(r'^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$')


class GitSync:
  """Turn the current host directory into a checkout of a GitHub repository"""

  def __init__(self, runner: DockerClient):
    self.output = Output()
    self.runner = runner

  def git(self, directory: Path, *args: str, **kwargs):
    return self.runner.run(["git", *args], cwd=directory, **kwargs)

  def sync(self, repo: str, directory: Path) -> str:
    """Run the clone/sync flow in `directory` and return the checked out branch.

    Local changes in `directory` are discarded by a hard reset.
    """
    self.output.warning("You are about to clone/sync a Laravel project.")
    if not self.output.confirm(f"Are you sure you are inside the target project directory ({directory})?"):
      raise AbortedError("Aborted. Please navigate to the correct project folder.")

    if not REPO_RE.match(repo):
      raise UsageError(
        f"Invalid repository '{repo}'",
        [f"Example: {config.bin_name} --clone user/repo"],
      )
    repo_url = config.repo_url.format(repo=repo)

    self.output.header("Starting Git clone and synchronization process")

    user = getpass.getuser()
    self.output.info("Fixing file ownership for the current directory...")
    result = self.runner.run(["sudo", "chown", "-R", f"{user}:{user}", str(directory)], capture_output=False)
    if result.returncode != 0:
      self.output.warning(f"Could not change ownership of {escape(str(directory))}, continuing")

    git_dir = directory / ".git"
    if git_dir.is_dir():
      self.output.info("Existing .git folder found. Checking integrity...")
      if self.git(directory, "status").returncode != 0:
        self.output.warning("The .git directory is corrupted. Removing it...")
        shutil.rmtree(git_dir)

    if not git_dir.is_dir():
      self.output.info("Initializing local Git repository...")
      result = self.git(directory, "init")
      if result.returncode != 0:
        raise CommandError("git init failed", result.args, result.returncode)

    remotes = self.git(directory, "remote").stdout.split()
    if "origin" in remotes:
      self.output.info(f"Remote 'origin' already exists. Updating URL to {repo_url}")
      result = self.git(directory, "remote", "set-url", "origin", repo_url)
    else:
      self.output.info(f"Adding remote 'origin': {repo_url}")
      result = self.git(directory, "remote", "add", "origin", repo_url)
    if result.returncode != 0:
      raise CommandError(f"Could not configure remote 'origin': {result.stderr.strip()}",
                         result.args, result.returncode)

    self.output.info(f"Marking directory as safe for Git: {escape(str(directory))}")
    self.git(directory, "config", "--global", "--add", "safe.directory", str(directory))

    self.output.info("Fetching remote branch information...")
    branch = None
    for candidate in config.git_branches:
      if self.git(directory, "fetch", "origin", candidate, capture_output=False).returncode == 0:
        branch = candidate
        break
    if branch is None:
      raise CommandError(
        "Could not fetch remote repository branches",
        ["git", "fetch", "origin"],
        hints=["Verify SSH keys or repository name"],
      )

    self.output.info(f"Resetting local files to match origin/{branch}...")
    result = self.git(directory, "reset", "--hard", f"origin/{branch}", capture_output=False)
    if result.returncode != 0:
      raise CommandError(f"git reset to origin/{branch} failed", result.args, result.returncode)

    self.output.success("Git repository synchronized successfully!")
    return branch
