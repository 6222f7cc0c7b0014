from typing import NamedTuple

from rich.pretty import pretty_repr


class Pretty(NamedTuple):
  value: object

  def __str__(self) -> str:
    return pretty_repr(self.value)


class Unit(NamedTuple):
  value: float


class Seconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.3f}s"


class Milliseconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.1f}ms"


class Samples(Unit):
  def __str__(self) -> str:
    return f"{int(self.value)} samples"


class Chars(Unit):
  def __str__(self) -> str:
    return f"{int(self.value)} chars"


def preview(text: str, limit: int = 40) -> str:
  """Shorten transcript text for log fields."""
  return text if len(text) <= limit else text[:limit] + "..."
