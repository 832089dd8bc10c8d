"""Tests for upgrade_planner.tasks."""

from __future__ import annotations

import json
from pathlib import Path

from upgrade_planner.models import MigrationStep
from upgrade_planner.tasks import TaskQueue

STEP = MigrationStep(
    package="pkg", collection="pkg/./m.toml", from_version="1.0.0", to_version="2.0.0"
)


class TestTaskQueue:
    def test_migrations_depend_on_install(self) -> None:
        """Every migration waits for the install task."""
        queue = TaskQueue()

        queue.run_install()
        queue.run_migration(STEP)
        queue.run_migration(STEP)

        assert [t.kind for t in queue.tasks] == ["install", "migrate", "migrate"]
        assert queue.tasks[1].depends_on == [0]
        assert queue.tasks[2].step == STEP

    def test_migrations_without_install(self) -> None:
        """Migrate-only runs schedule migrations with nothing to wait on."""
        queue = TaskQueue()
        queue.run_migration(STEP)
        assert queue.tasks[0].depends_on == []

    def test_dump(self, tmp_path: Path) -> None:
        """The queue is dumped as JSON."""
        queue = TaskQueue()
        queue.run_install()
        queue.run_migration(STEP)
        path = tmp_path / "plan.json"

        queue.dump(path)

        data = json.loads(path.read_text())
        assert data["tasks"][1]["step"]["collection"] == "pkg/./m.toml"
        assert data["tasks"][1]["depends_on"] == [0]
