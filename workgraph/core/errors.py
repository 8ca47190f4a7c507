from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional


EXIT_PERSISTENCE = 1
EXIT_USAGE = 2
EXIT_NOT_FOUND = 3
EXIT_CYCLE = 4
EXIT_INVALID_ATTRIBUTE = 5
EXIT_INTERNAL = 70


@dataclass(frozen=True)
class GraphError(Exception):
    """Base error envelope. Carries the error kind (class + code) and the offending ids."""

    code: str
    message: str
    ids: tuple[str, ...] = ()
    file: Optional[str] = None

    exit_code: ClassVar[int] = EXIT_USAGE

    def __str__(self) -> str:
        loc = self.file or "<graph>"
        out = f"{loc}: {self.code}: {self.message}"
        if self.ids:
            out += f" [{', '.join(self.ids)}]"
        return out


class NotFoundError(GraphError):
    exit_code = EXIT_NOT_FOUND


class CycleDetectedError(GraphError):
    exit_code = EXIT_CYCLE


class InvalidAttributeError(GraphError):
    exit_code = EXIT_INVALID_ATTRIBUTE


class InternalInvariantViolation(GraphError):
    """Raised when the graph reaches a state its invariants forbid. Indicates a bug."""

    exit_code = EXIT_INTERNAL


class PersistenceError(GraphError):
    exit_code = EXIT_PERSISTENCE


def not_found(node_id: str) -> NotFoundError:
    return NotFoundError(
        code="E_NOT_FOUND",
        message=f"no node with id: {node_id}",
        ids=(node_id,),
    )


def invalid_attribute(message: str, node_id: Optional[str] = None) -> InvalidAttributeError:
    return InvalidAttributeError(
        code="E_INVALID_ATTRIBUTE",
        message=message,
        ids=(node_id,) if node_id else (),
    )
