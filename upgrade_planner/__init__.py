"""upgrade-planner: plan safe upgrades of a project's dependencies."""
