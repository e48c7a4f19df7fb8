"""
Command-line interface for screwmotion.

Provides commands for planning screw motions from request files and for
inspecting the available robot and planner configurations.
"""

import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from screwmotion import __version__
from screwmotion.core.config import ConfigManager
from screwmotion.core.exceptions import ScrewMotionError
from screwmotion.core.geometry import FrameRegistry
from screwmotion.core.logging import configure_logging
from screwmotion.core.robot import RobotLoader
from screwmotion.motion.collision import CollisionChecker
from screwmotion.motion.kinematics import CompasKinematicModel
from screwmotion.motion.messages import PlanningRequest, PlanningResult
from screwmotion.motion.planner import ScrewPlanner

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default="config",
    help="Configuration directory",
)
@click.option("--log-level", default="WARNING", help="Minimum log level")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.pass_context
def main(ctx: click.Context, config_dir: Path, log_level: str, json_logs: bool) -> None:
    """screwmotion - Constrained screw motion planning."""
    configure_logging(level=log_level, json_output=json_logs)
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


# =============================================================================
# Planning Commands
# =============================================================================


@main.command("plan")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
@click.option("--robot", "-r", required=True, help="Robot configuration name")
@click.option("--planner", "-p", default=None, help="Planner configuration name")
@click.option("--collision/--no-collision", default=True, help="Check collisions with PyBullet")
@click.option(
    "--output", "-o", type=click.Path(path_type=Path), default=None, help="Write response JSON"
)
@click.pass_context
def plan(
    ctx: click.Context,
    request_file: Path,
    robot: str,
    planner: Optional[str],
    collision: bool,
    output: Optional[Path],
) -> None:
    """Plan a screw motion for REQUEST_FILE (YAML or JSON)."""
    try:
        config_mgr = ConfigManager(ctx.obj["config_dir"])
        robot_config = config_mgr.get_robot(robot)
        planner_config = config_mgr.get_planner(planner)
        request = PlanningRequest.from_file(request_file)

        instance = RobotLoader.load_from_config(robot_config)
        checker = CollisionChecker(robot_config.urdf_path) if collision else None
        try:
            model = CompasKinematicModel(
                instance,
                collision_checker=checker,
                ik_max_iterations=planner_config.ik_max_iterations,
            )
            frames = FrameRegistry.from_config(
                robot_config.base_frame, robot_config.static_frames
            )
            screw_planner = ScrewPlanner(
                model, request.move_group, config=planner_config, frames=frames
            )
            result, response = screw_planner.plan(request)
        finally:
            if checker is not None:
                checker.close()
    except ScrewMotionError as e:
        console.print(f"[red]✗[/red] Planning setup failed: {e}")
        raise SystemExit(1)

    table = Table(title=f"Screw plan: {request_file.name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Result", result.name)
    table.add_row("Waypoints", str(len(response.joint_trajectory.points)))
    table.add_row("Trajectory valid", "✓" if response.trajectory_is_valid else "-")
    table.add_row("Complete", f"{response.percentage_complete * 100:.1f}%")
    table.add_row("Path length", f"{response.path_length:.4f}")
    console.print(table)

    if output is not None:
        payload = {"result": result.name, "response": response.to_dict()}
        output.write_text(json.dumps(payload, indent=2))
        console.print(f"[green]✓[/green] Wrote response to {output}")

    if result is not PlanningResult.SUCCESS:
        raise SystemExit(2)


# =============================================================================
# Configuration Commands
# =============================================================================


@main.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("list-robots")
@click.pass_context
def config_list_robots(ctx: click.Context) -> None:
    """List available robot configurations."""
    try:
        config_mgr = ConfigManager(ctx.obj["config_dir"])
        robots = config_mgr.list_robots()

        if not robots:
            console.print("[yellow]No robot configurations found.[/yellow]")
            return

        table = Table(title="Available Robots")
        table.add_column("Name", style="cyan")
        table.add_column("Base frame")
        table.add_column("Groups")

        for name in robots:
            robot = config_mgr.get_robot(name)
            table.add_row(name, robot.base_frame, ", ".join(robot.groups) or robot.name)

        console.print(table)

    except ScrewMotionError as e:
        console.print(f"[red]✗[/red] Failed to list robots: {e}")
        raise SystemExit(1)


@config.command("list-planners")
@click.pass_context
def config_list_planners(ctx: click.Context) -> None:
    """List available planner configurations."""
    try:
        config_mgr = ConfigManager(ctx.obj["config_dir"])
        planners = config_mgr.list_planners()

        if not planners:
            console.print("[yellow]No planner configurations found.[/yellow]")
            return

        table = Table(title="Available Planners")
        table.add_column("Name", style="cyan")
        table.add_column("Algorithm")
        table.add_column("Planning time (s)")

        for name in planners:
            planner = config_mgr.get_planner(name)
            table.add_row(name, planner.search_algorithm, f"{planner.planning_time:g}")

        console.print(table)

    except ScrewMotionError as e:
        console.print(f"[red]✗[/red] Failed to list planners: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
