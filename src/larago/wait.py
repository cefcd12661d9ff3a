import time
from typing import Callable, Optional

from larago.errors import ReadinessTimeout


def wait_until(probe: Callable[[], bool],
               timeout: Optional[float] = 300.0,
               interval: float = 1.0,
               max_attempts: Optional[int] = None,
               on_attempt: Optional[Callable[[int], None]] = None,
               description: str = "service",
               sleep: Callable[[float], None] = time.sleep,
               clock: Callable[[], float] = time.monotonic) -> int:
  """Poll `probe` until it returns True.

  `on_attempt` is called once per failed probe, before sleeping `interval`
  seconds. Returns the number of probes made, including the successful one.
  Raises ReadinessTimeout once `timeout` seconds have elapsed or
  `max_attempts` probes have failed; at least one of the two must be set.
  """
  if timeout is None and max_attempts is None:
    raise ValueError("wait_until needs a timeout or max_attempts bound")

  started = clock()
  attempts = 0
  while True:
    attempts += 1
    if probe():
      return attempts

    if on_attempt:
      on_attempt(attempts)

    elapsed = clock() - started
    if max_attempts is not None and attempts >= max_attempts:
      raise ReadinessTimeout(
        f"Gave up waiting for {description} after {attempts} attempts",
        attempts, elapsed,
      )
    if timeout is not None and elapsed + interval > timeout:
      raise ReadinessTimeout(
        f"Timed out waiting for {description} after {elapsed:.0f}s",
        attempts, elapsed,
      )
    sleep(interval)


def parse_listening_ports(ss_output: str) -> set[int]:
  """Extract local ports from `ss -nlt` output"""
  ports: set[int] = set()
  for line in ss_output.splitlines():
    fields = line.split()
    if len(fields) < 4 or fields[0] == 'State':
      continue
    # Local address column, e.g. 0.0.0.0:8000, [::]:8000, *:3306
    _, _, port = fields[3].rpartition(':')
    if port.isdigit():
      ports.add(int(port))
  return ports
