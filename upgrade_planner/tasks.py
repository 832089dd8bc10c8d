"""Follow-up tasks: install and migrations.

The planner only decides what has to run and in which order. A TaskRunner
receives those decisions; TaskQueue is the built-in runner that records
them, so an external executor can pick them up from a JSON file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from .models import MigrationStep


class TaskRunner(Protocol):
    def run_install(self) -> None: ...

    def run_migration(self, step: MigrationStep) -> None: ...


class ScheduledTask(BaseModel):
    """A task handed to the executor.

    Attributes:
        id: Position in the queue.
        kind: "install" or "migrate".
        step: The migration to run (migrate tasks only).
        depends_on: Ids of tasks that must finish first.
    """

    id: int
    kind: Literal["install", "migrate"]
    step: MigrationStep | None = None
    depends_on: list[int] = Field(default_factory=list)


class TaskQueue(BaseModel):
    """Records scheduled tasks in order.

    Migrations scheduled after an install depend on it, since they need the
    new package versions on disk.
    """

    tasks: list[ScheduledTask] = Field(default_factory=list)

    def _install_ids(self) -> list[int]:
        return [t.id for t in self.tasks if t.kind == "install"]

    def run_install(self) -> None:
        self.tasks.append(ScheduledTask(id=len(self.tasks), kind="install"))

    def run_migration(self, step: MigrationStep) -> None:
        self.tasks.append(
            ScheduledTask(
                id=len(self.tasks),
                kind="migrate",
                step=step,
                depends_on=self._install_ids(),
            )
        )

    def dump(self, path: Path) -> None:
        path.write_text(self.model_dump_json(indent=2))
