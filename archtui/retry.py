"""Bounded retries for recoverable input validation."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Accepted(Generic[T]):
  value: T
  attempts: int


@dataclass(frozen=True)
class Exhausted:
  attempts: int


def bounded_retry(
  attempt: Callable[[], T],
  accept: Callable[[T], bool],
  limit: int,
  on_reject: Callable[[int], None] | None = None,
) -> Accepted[T] | Exhausted:
  """
  Call attempt until accept approves its result or limit attempts were made.

  on_reject receives the number of the rejected attempt. It is not called
  for the final rejection, which yields Exhausted instead.
  """
  if limit < 1:
    raise ValueError("limit must be at least 1")

  for number in range(1, limit + 1):
    value = attempt()
    if accept(value):
      return Accepted(value, number)
    if on_reject is not None and number < limit:
      on_reject(number)

  return Exhausted(limit)
