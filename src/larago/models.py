from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class DockerContainer:
  id: str
  names: str
  image: str
  state: str
  status: str
  created: Optional[datetime]
  ports: str = ""

  @classmethod
  def from_dict(cls, data: dict[str, str]) -> 'DockerContainer':
    # `docker ps` reports e.g. "2025-01-01 10:00:00 +0000 UTC"
    str_created = data.get('CreatedAt', '').rsplit(' ', 1)[0]
    try:
      created = datetime.strptime(str_created, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
      created = None
    return cls(
      id=data.get('ID', ''),
      names=data.get('Names', ''),
      image=data.get('Image', ''),
      state=data.get('State', ''),
      status=data.get('Status', ''),
      created=created,
      ports=data.get('Ports', '')
    )

  @property
  def is_running(self) -> bool:
    if self.state:
      return self.state == 'running'
    return self.status.startswith('Up')

  def has_name(self, name: str) -> bool:
    """Exact match against any of the comma separated container names"""
    return name in [n.strip() for n in self.names.split(',')]

  def created_date(self, format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Get formatted creation date."""
    dt = self.created
    return dt.strftime(format_str) if dt else "Unknown"
