"""Main CLI entry point for skillroute command."""

import json
import click
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from typing import Optional

from ..core.config import RoutingConfigManager
from ..core.models import RoutingOutcome, RoutingValidationError, SkillCategory
from ..core.settings import settings
from ..core.skills import STANDARD_SKILLS, get_skills_by_category, standard_hierarchy
from ..routing.loader import Scenario, decision_to_dict, load_scenario, to_jsonable
from ..routing.memory import InMemoryAgentSource, InMemoryRoutingQueue, InMemoryRuleSource
from ..routing.router import SkillRouter

console = Console()


def get_config_manager(config_path: Optional[str] = None) -> RoutingConfigManager:
    """Get config manager instance."""
    return RoutingConfigManager(Path(config_path) if config_path else settings.config_path)


def read_scenario(path: str) -> Scenario:
    try:
        return load_scenario(Path(path))
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise click.ClickException(f"Invalid scenario {path}: {e}")


def build_router(scenario: Scenario, config_path: Optional[str], use_standard_hierarchy: bool) -> SkillRouter:
    """Wire a router over in-memory stores seeded from a scenario."""
    manager = get_config_manager(config_path)
    try:
        config = manager.config.merged(scenario.config)
    except (ValueError, TypeError) as e:
        raise click.ClickException(f"Invalid scenario config: {e}")

    router = SkillRouter(
        agent_source=InMemoryAgentSource(scenario.agents),
        rule_source=InMemoryRuleSource(scenario.rules),
        queue=InMemoryRoutingQueue(default_queue_id=config.default_queue_id),
        config=config,
    )
    if use_standard_hierarchy:
        router.hierarchy.register_many(standard_hierarchy())
    router.hierarchy.register_many(scenario.hierarchy)
    return router


@click.group()
@click.version_option(version="1.0.0", prog_name="skillroute")
@click.option("--log-level", default=None, help="Logging level (default from SKILL_ROUTER_LOG_LEVEL)")
def cli(log_level: Optional[str]):
    """Skill Router - skill-based task routing diagnostics.

    \b
    Quick Start:
      skillroute skills                                 # Browse the skill catalog
      skillroute route scenario.json                    # Dry-run a routing decision
      skillroute check scenario.json agent-1            # Check one agent
      skillroute config show                            # View engine configuration
    """
    settings.configure_logging(log_level)


# ============================================================================
# ROUTING COMMANDS
# ============================================================================

@cli.command()
@click.argument("scenario_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON")
@click.option("--standard-hierarchy", "use_standard", is_flag=True, help="Also register the standard catalog hierarchy")
@click.option("--config", "config_path", help="Custom config path")
def route(scenario_path: str, as_json: bool, use_standard: bool, config_path: Optional[str]):
    """Dry-run routing for the task described in a scenario file."""
    scenario = read_scenario(scenario_path)
    router = build_router(scenario, config_path, use_standard)

    try:
        decision = router.route(scenario.requirements, scenario.context)
    except RoutingValidationError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(decision_to_dict(decision), indent=2))
        return

    outcome_colors = {
        RoutingOutcome.ROUTED: "green",
        RoutingOutcome.QUEUED: "yellow",
        RoutingOutcome.REJECTED: "red",
    }
    color = outcome_colors[decision.outcome]

    lines = [f"[{color}]{decision.outcome.value.upper()}[/{color}]"]
    if decision.selected_agent_id:
        lines.append(f"Agent: [cyan]{decision.selected_agent_name}[/cyan] ({decision.selected_agent_id})")
    if decision.applied_rule_id:
        lines.append(f"Rule: {decision.applied_rule_name} ({decision.applied_rule_id})")
    if decision.queue_position is not None:
        lines.append(f"Queue: {decision.queue_id} #{decision.queue_position} "
                     f"(~{decision.estimated_wait_seconds}s wait)")
    lines.append(f"Strategy: {decision.strategy.value}")
    lines.append(f"Reason: {decision.selection_reason}")
    lines.append(f"[dim]{decision.decision_id} in {decision.processing_time_ms}ms[/dim]")

    console.print(Panel.fit("\n".join(lines), title=f"Routing decision - {decision.task_id or 'task'}"))

    if not decision.candidates:
        console.print("[yellow]No candidates were scored.[/yellow]")
        return

    table = Table(title=f"Candidates ({len(decision.candidates)})")
    table.add_column("Agent", style="cyan")
    table.add_column("Total", justify="right", style="bold")
    table.add_column("Skill", justify="right")
    table.add_column("Avail.", justify="right")
    table.add_column("Pref.", justify="right")
    table.add_column("Load", justify="center")
    table.add_column("Match", justify="center")
    table.add_column("Missing", max_width=30)

    for candidate in decision.candidates:
        marker = "[green]✓[/green]" if candidate.matches else "[red]✗[/red]"
        name = candidate.agent_name
        if candidate.agent_id == decision.selected_agent_id:
            name = f"[bold]{name} *[/bold]"
        table.add_row(
            name,
            f"{candidate.total_score:.1f}",
            f"{candidate.skill_score:.1f}",
            f"{candidate.availability_score:.1f}",
            f"{candidate.preference_score:.1f}",
            f"{candidate.current_load}/{candidate.max_concurrent_tasks}",
            marker,
            ", ".join(candidate.missing_skills),
        )

    console.print(table)


@cli.command()
@click.argument("scenario_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("agent_id")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--standard-hierarchy", "use_standard", is_flag=True, help="Also register the standard catalog hierarchy")
@click.option("--config", "config_path", help="Custom config path")
def check(scenario_path: str, agent_id: str, as_json: bool, use_standard: bool, config_path: Optional[str]):
    """Check whether one agent satisfies the scenario's task requirements."""
    scenario = read_scenario(scenario_path)
    router = build_router(scenario, config_path, use_standard)

    try:
        result = router.check_agent_match(agent_id, scenario.requirements)
    except RoutingValidationError as e:
        raise click.ClickException(str(e))

    if as_json:
        from dataclasses import asdict
        click.echo(json.dumps(to_jsonable(asdict(result)), indent=2))
        return

    if result.reason == "agent_not_found":
        console.print(f"[red]Agent {agent_id} not found in scenario[/red]")
        return

    verdict = "[green]MATCH[/green]" if result.matches else "[red]NO MATCH[/red]"
    output = f"{verdict}\n"
    if result.missing_skills:
        output += f"Missing: {', '.join(result.missing_skills)}\n"
    if result.reason:
        output += f"Reason: {result.reason}\n"
    if result.score:
        output += f"Score: {result.score.total_score:.1f}"

    console.print(Panel.fit(output.rstrip(), title=f"Agent {agent_id}"))

    if result.score and result.score.matched_skills:
        table = Table(title="Skills")
        table.add_column("Skill", style="cyan")
        table.add_column("Required")
        table.add_column("Held")
        table.add_column("Via")
        table.add_column("Points", justify="right")

        for matched in result.score.matched_skills:
            held = matched.agent_proficiency.value if matched.agent_proficiency else "[red]-[/red]"
            table.add_row(
                matched.skill_id + ("" if matched.is_required else " (preferred)"),
                matched.required_proficiency.value,
                held,
                matched.inherited_from or "",
                f"{matched.score:.1f}",
            )

        console.print(table)


@cli.command()
@click.option("--category", "-c", type=click.Choice([c.value for c in SkillCategory]), help="Filter by category")
def skills(category: Optional[str]):
    """List the standard skill catalog."""
    if category:
        catalog = get_skills_by_category(SkillCategory(category))
    else:
        catalog = list(STANDARD_SKILLS.values())

    table = Table(title=f"Skills ({len(catalog)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Parent", style="dim")

    for skill in catalog:
        table.add_row(skill.skill_id, skill.name, skill.category.value, skill.parent_skill_id or "")

    console.print(table)


# ============================================================================
# CONFIGURATION
# ============================================================================

@cli.group()
def config():
    """View and edit the persisted routing configuration."""
    pass


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.option("--config", "config_path", help="Custom config path")
def config_show(as_json: bool, config_path: Optional[str]):
    """Show the effective routing configuration."""
    manager = get_config_manager(config_path)
    data = manager.config.to_dict()

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title=f"Routing config ({manager.config_path})")
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")

    for key, value in data.items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                table.add_row(f"{key}.{sub_key}", str(sub_value))
        else:
            table.add_row(key, str(value))

    console.print(table)


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--config", "config_path", help="Custom config path")
def config_set(key: str, value: str, config_path: Optional[str]):
    """Set a value, e.g. thresholds.minimum_match_score 40."""
    manager = get_config_manager(config_path)

    # Numbers, booleans and null arrive as JSON; anything else is a plain string
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = value

    try:
        manager.set_value(key, parsed)
    except (ValueError, TypeError) as e:
        raise click.ClickException(str(e))

    console.print(f"[green]✓ {key} = {value}[/green]")


@config.command("reset")
@click.option("--config", "config_path", help="Custom config path")
@click.confirmation_option(prompt="Reset routing configuration to defaults?")
def config_reset(config_path: Optional[str]):
    """Restore the default configuration."""
    manager = get_config_manager(config_path)
    manager.reset()
    console.print("[green]✓ Routing configuration reset to defaults[/green]")


if __name__ == "__main__":
    cli()
