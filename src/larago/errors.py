from typing import Optional, Sequence


class LaragoError(Exception):
  """Base error for every failure reported to the operator"""
  exit_code = 1

  def __init__(self, message: str, hints: Optional[Sequence[str]] = None):
    super().__init__(message)
    self.message = message
    self.hints = list(hints or [])


class UsageError(LaragoError):
  """Missing or malformed command-line arguments"""


class PreconditionError(LaragoError):
  """The environment is not in a state the command can work with"""


class AbortedError(LaragoError):
  """The operator declined a confirmation prompt"""


class CommandError(LaragoError):
  """A wrapped external command exited with a non-zero status"""

  def __init__(self, message: str, command: Sequence[str] = (), returncode: int = 1,
               hints: Optional[Sequence[str]] = None):
    super().__init__(message, hints)
    self.command = list(command)
    self.returncode = returncode


class ReadinessTimeout(LaragoError):
  """A readiness poll gave up before the service came up"""

  def __init__(self, message: str, attempts: int, elapsed: float):
    super().__init__(message)
    self.attempts = attempts
    self.elapsed = elapsed


class RouteMergeError(LaragoError):
  """Generated routes file does not have the expected layout"""
