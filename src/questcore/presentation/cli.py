from datetime import datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from questcore.application.dtos import CharacterSummaryView, RewardResult
from questcore.application.services.catalog import goblin_caves, starter_missions
from questcore.domain.models.dungeon import DungeonCompletionResult
from questcore.domain.models.task import GameTask, TaskCategory


_CONSOLE = Console()
_BORDER_CHARACTER = "yellow"
_BORDER_REWARD = "green"
_BORDER_DUNGEON = "magenta"
_BORDER_MISSION = "cyan"


def _ornate_title(title: str) -> str:
    core = str(title or "").strip() or "Panel"
    return f"[bold yellow]{core}[/bold yellow]"


def render_character(view: CharacterSummaryView, console: Console = _CONSOLE) -> None:
    table = Table(show_header=False, box=None)
    table.add_row("Level", str(view.level))
    table.add_row("EXP", f"{view.exp} ({view.exp_to_next} to next)")
    table.add_row("Gold", str(view.gold))
    table.add_row("Gems", str(view.gems))
    table.add_row("Class", view.class_name or "-")
    table.add_row("Streak", f"{view.streak} day(s)")
    table.add_row("Achievements", str(view.unlocked_achievements))
    console.print(Panel(table, title=_ornate_title(view.name), border_style=_BORDER_CHARACTER))


def render_reward(task: GameTask, result: RewardResult, console: Console = _CONSOLE) -> None:
    table = Table(title=f"{task.title} [{result.verification_tier.value}]")
    table.add_column("Stage")
    table.add_column("EXP", justify="right")
    table.add_column("Gold", justify="right")
    for stage in result.stages:
        table.add_row(stage.name, str(stage.exp), str(stage.gold))
    lines = [f"Total: {result.total_exp} EXP, {result.total_gold} gold"]
    if result.bonus_stats:
        lines.append("Bonus stats: " + ", ".join(f"+{v} {k}" for k, v in result.bonus_stats.items()))
    if result.loot is not None:
        lines.append(f"Loot: {result.loot.label}")
    if result.pending_partner_confirmation:
        lines.append("[dim]Held until your partner confirms.[/dim]")
    console.print(table)
    console.print(Panel("\n".join(lines), border_style=_BORDER_REWARD))


def render_dungeon(result: DungeonCompletionResult, console: Console = _CONSOLE) -> None:
    table = Table(title=f"{result.dungeon_name} ({result.performance_rating})")
    table.add_column("Room")
    table.add_column("Outcome")
    table.add_column("Power", justify="right")
    table.add_column("HP lost", justify="right")
    for room in result.room_results:
        outcome = "[green]cleared[/green]" if room.success else "[red]failed[/red]"
        table.add_row(room.room_name, outcome, f"{room.player_power}/{room.required_power}", str(room.hp_lost))
    console.print(table)
    summary = (
        f"Cleared {result.rooms_cleared}/{result.total_rooms} rooms, "
        f"{result.total_exp} EXP, {result.total_gold} gold, {len(result.loot_drops)} item(s)"
    )
    if result.secret_discovery:
        summary += "\nA hidden cache was discovered!"
    console.print(Panel(summary, border_style=_BORDER_DUNGEON))


def run_demo(game_service, console: Console = _CONSOLE) -> None:
    """Walk one character through a task, a mission and a dungeon run."""
    now = datetime.now()
    hero = game_service.create_character("Aria", character_class="warrior")
    task = game_service.add_task(GameTask(title="Morning run", category=TaskCategory.PHYSICAL, owner_id=hero.id))

    result = game_service.complete_task(hero.id, task.id, now)
    if result is not None:
        render_reward(task, result, console)

    mission = starter_missions()[0]
    if game_service.start_mission(hero.id, mission, now) is not None:
        resolution = game_service.check_mission(hero.id, mission, now + timedelta(seconds=mission.duration_seconds))
        if resolution is not None:
            outcome = "succeeded" if resolution.success else "failed"
            console.print(
                Panel(
                    f"{mission.name} {outcome}: {resolution.exp_earned} EXP, {resolution.gold_earned} gold",
                    border_style=_BORDER_MISSION,
                )
            )

    dungeon_result = game_service.run_dungeon(goblin_caves(), [hero.id], now)
    if dungeon_result is not None:
        render_dungeon(dungeon_result, console)

    summary = game_service.get_character_summary(hero.id)
    if summary is not None:
        render_character(summary, console)


def main() -> None:
    from questcore.__main__ import main as runtime_main

    runtime_main()


if __name__ == "__main__":
    main()
