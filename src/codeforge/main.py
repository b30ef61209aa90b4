"""CLI entrypoint for the typing lesson player."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from pathlib import Path

from .content_loader import load_lessons_from_dir
from .decorations import RegionKind, plan_regions
from .interceptor import KeyEvent, KeyOutcome
from .matching import TargetText
from .player import LessonPlayer, PlayerConfig
from .progress import DEFAULT_USER_ID
from .reporter import PAYLOAD_MODES
from .service import PlayerService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
HINT_COMMANDS = {":hint", ":h"}
RESET_COMMANDS = {":reset"}
DEFAULT_DB_PATH = Path(".codeforge") / "progress.db"
PROGRESS_BAR_WIDTH = 24
STAGE_MARKERS = {"completed": "[x]", "started": "[~]", "new": "[ ]"}


def _service(args: argparse.Namespace) -> PlayerService:
    """Create app service from parsed CLI options."""
    lessons = load_lessons_from_dir(Path(args.lessons_dir)) if args.lessons_dir else None
    config = PlayerConfig(payload_mode=args.payload, strict=bool(getattr(args, "strict", False)))
    return PlayerService(db_path=Path(args.db), user_id=args.user, lessons=lessons, config=config)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(prog="codeforge", description="Type your way through coding lessons")
    parser.add_argument("--db", default=str(DEFAULT_DB_PATH), help="progress database path")
    parser.add_argument("--user", default=DEFAULT_USER_ID, help="user id for saved progress")
    parser.add_argument("--lessons-dir", default=None, help="load lesson JSON files from this directory")
    parser.add_argument("--payload", default="code", choices=PAYLOAD_MODES, help="what debounced saves store")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("lessons", help="list lessons")
    commands.add_parser("status", help="show progress summary")
    play = commands.add_parser("play", help="practice one lesson")
    play.add_argument("lesson_id")
    play.add_argument("--strict", action="store_true", help="reject any keystroke that does not match")
    check = commands.add_parser("check", help="match a file against a lesson target")
    check.add_argument("lesson_id")
    check.add_argument("file")
    return parser


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    command = args.command or "lessons"
    try:
        service = _service(args)
    except (OSError, ValueError) as exc:
        print_fn(f"Could not start: {exc}")
        return 1
    try:
        if command == "lessons":
            return _lessons_flow(service, print_fn)
        if command == "status":
            return _status_flow(service, print_fn)
        if command == "play":
            return play_lesson(service, args.lesson_id, input_fn=input_fn, print_fn=print_fn, strict=args.strict)
        return _check_flow(service, args.lesson_id, Path(args.file), print_fn)
    except (KeyError, ValueError, OSError) as exc:
        print_fn(f"Error: {exc}")
        return 1
    finally:
        service.close()


def _lessons_flow(service: PlayerService, print_fn: PrintFn) -> int:
    """Print the lesson catalog with completion markers."""
    print_fn("\n=== Lessons ===")
    statuses = service.lesson_statuses()
    if not statuses:
        print_fn("No lessons available.")
        return 0
    id_width = max(len(status.lesson.id) for status in statuses)
    for status in statuses:
        marker = STAGE_MARKERS[status.stage]
        print_fn(f"{marker} {status.lesson.id:<{id_width}}  {status.lesson.title}")
    return 0


def _status_flow(service: PlayerService, print_fn: PrintFn) -> int:
    """Print completed/started counts and saved lessons."""
    statuses = service.lesson_statuses()
    completed = [status for status in statuses if status.stage == "completed"]
    started = [status for status in statuses if status.stage == "started"]
    print_fn("\n=== Status ===")
    print_fn(f"User: {service.user_id}")
    print_fn(f"Completed: {len(completed)}/{len(statuses)}")
    print_fn(f"In progress: {len(started)}")
    for status in started:
        saved = " (saved code)" if status.has_saved_code else ""
        print_fn(f"- {status.lesson.id}: {status.lesson.title}{saved}")
    return 0


def _check_flow(service: PlayerService, lesson_id: str, file_path: Path, print_fn: PrintFn) -> int:
    """Match a file against a lesson target without touching saved progress."""
    lesson = service.get_lesson(lesson_id)
    if lesson is None:
        raise KeyError(lesson_id)
    target = TargetText(lesson.target_code)
    text = file_path.read_text(encoding="utf-8").replace("\r\n", "\n")
    state = target.match(text)
    print_fn(f"{lesson.id}: {_progress_bar(state.matched_chars, state.total_chars)}")
    for region in plan_regions(state.matched_chars, target.strip_index, len(target), line_table=target.lines):
        start = target.lines.position(region.start)
        end = target.lines.position(region.end)
        print_fn(f"  {region.kind.value:<9} L{start.line}:C{start.column} - L{end.line}:C{end.column}")
    if state.total_chars == 0:
        print_fn("This lesson has nothing to type.")
        return 1
    if state.completed:
        print_fn("Complete.")
        return 0
    _print_hint(_lenient_preview(target, state.matched_chars), print_fn)
    return 1


def play_lesson(
    service: PlayerService,
    lesson_id: str,
    *,
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    strict: bool = False,
) -> int:
    """Run the line-based practice loop for one lesson."""
    lesson = service.get_lesson(lesson_id)
    if lesson is None:
        print_fn(f"Unknown lesson: {lesson_id}")
        return 1
    player = service.open_lesson(lesson_id, strict=strict)
    mode = "strict" if player.strict else "lenient"
    print_fn(f"\n=== {lesson.title} ({mode}) ===")
    if lesson.instructions:
        print_fn(lesson.instructions)
    if player.state.total_chars == 0:
        print_fn("Nothing to type in this lesson.")
        return 0

    print_fn("Type the code line by line. Commands: :hint, :reset, :quit")
    shown_notes: set[tuple[int, str]] = set()
    _print_annotations(player, shown_notes, print_fn)
    _print_progress(player, print_fn)
    while not player.state.completed:
        try:
            line = input_fn("> ")
        except EOFError:
            break
        command = line.strip()
        if command in FLOW_EXIT_COMMANDS:
            break
        if command in HINT_COMMANDS:
            _print_hint(_current_line_rest(player), print_fn)
            continue
        if command in RESET_COMMANDS:
            service.reset_lesson(lesson_id)
            shown_notes.clear()
            print_fn("Lesson reset.")
            _print_progress(player, print_fn)
            continue

        if player.strict:
            _type_strict_line(player, line, print_fn)
        else:
            player.update_text(player.text + line + "\n")
        service.poll()
        _print_annotations(player, shown_notes, print_fn)
        _print_progress(player, print_fn)

    if player.state.completed:
        print_fn("Lesson complete!")
    return 0


def _type_strict_line(player: LessonPlayer, line: str, print_fn: PrintFn) -> None:
    """Feed one input line as keystrokes, stopping at the first rejection."""
    if _at_line_start(player):
        line = line.lstrip(" \t")
    for char in line:
        result = player.press(KeyEvent(char))
        if result.outcome is KeyOutcome.REJECTED:
            _print_rejection(player, char, print_fn)
            return
        if player.state.completed:
            return
    if _expected_char(player) == "\n":
        player.press(KeyEvent("Enter"))


def _print_rejection(player: LessonPlayer, char: str, print_fn: PrintFn) -> None:
    """Describe a rejected keystroke with its target position."""
    signal = player.error_signal
    if signal is None:
        return
    position = player.target.lines.position(signal.at_offset)
    expected = _expected_char(player)
    print_fn(f"x {char!r} rejected at L{position.line}:C{position.column}, expected {expected!r}")


def _expected_char(player: LessonPlayer) -> str | None:
    """Return the next target character at the player's offset."""
    if player.offset >= len(player.target):
        return None
    return player.target.text[player.offset]


def _at_line_start(player: LessonPlayer) -> bool:
    """Return whether only indentation precedes the offset on its line."""
    start, _ = player.target.lines.line_span(player.offset)
    return player.target.text[start : player.offset].strip(" \t") == ""


def _current_line_rest(player: LessonPlayer) -> str:
    """Return the untyped remainder of the target line at the player's offset."""
    offset = player.offset
    if not player.strict:
        return _lenient_preview(player.target, player.state.matched_chars)
    _, end = player.target.lines.line_span(offset)
    return player.target.text[offset:end]


def _lenient_preview(target: TargetText, matched: int) -> str:
    """Return the ghost text of the line holding the first unmatched character."""
    offset = target.split_offset(matched)
    _, end = target.lines.line_span(offset)
    return target.text[offset:end]


def _print_hint(rest: str, print_fn: PrintFn) -> None:
    """Print the next expected text."""
    if rest.strip():
        print_fn(f"Next: {rest.strip()}")
    else:
        print_fn("Next: (new line)")


def _print_annotations(player: LessonPlayer, shown: set[tuple[int, str]], print_fn: PrintFn) -> None:
    """Print instructor comments the learner has just reached."""
    for region in player.annotations():
        key = (region.start, region.text)
        if key in shown:
            continue
        shown.add(key)
        line = player.target.lines.position(region.start).line
        print_fn(f"  note (line {line}): {region.text}")


def _print_progress(player: LessonPlayer, print_fn: PrintFn) -> None:
    """Print the progress bar and the error line marker when present."""
    print_fn(_progress_bar(player.state.matched_chars, player.state.total_chars))
    for region in player.regions():
        if region.kind is RegionKind.ERROR:
            line = player.target.lines.position(region.start).line
            print_fn(f"  error on line {line}")


def _progress_bar(matched: int, total: int) -> str:
    """Render a fixed-width text progress bar."""
    filled = 0 if total == 0 else (PROGRESS_BAR_WIDTH * matched) // total
    pct = 0.0 if total == 0 else (100.0 * matched / total)
    return f"[{'#' * filled}{'-' * (PROGRESS_BAR_WIDTH - filled)}] {matched}/{total} ({pct:.0f}%)"


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())
