from upgrade_planner.cli import cli

cli()
