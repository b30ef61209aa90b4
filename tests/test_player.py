from typing import Any

from conftest import FakeClock

from codeforge.decorations import RegionKind
from codeforge.interceptor import KeyEvent, KeyOutcome
from codeforge.models import InstructorComment
from codeforge.player import LessonPlayer, PlayerConfig
from codeforge.reporter import ProgressReporter


class Host:
    def __init__(self) -> None:
        self.saves: list[tuple[str, str, Any]] = []
        self.progress: list[tuple[int, int]] = []
        self.completed: list[str] = []

    def save(self, lesson_id: str, user_id: str, payload: Any) -> None:
        self.saves.append((lesson_id, user_id, payload))


def _player(clock: FakeClock, host: Host, strict: bool = False) -> LessonPlayer:
    reporter = ProgressReporter(
        user_id="u1",
        save=host.save,
        on_progress=lambda matched, total: host.progress.append((matched, total)),
        on_complete=host.completed.append,
        clock=clock,
    )
    return LessonPlayer(reporter, config=PlayerConfig(strict=strict), clock=clock)


def test_idle_player_is_total(clock: FakeClock) -> None:
    player = _player(clock, Host())
    assert player.update_text("anything").completed is False
    assert player.regions() == []
    player.poll()


def test_lenient_paste_completes_once(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host)
    player.load_lesson("l1", "x = 1")
    state = player.update_text("x=1")
    assert state.matched_chars == state.total_chars == 3
    assert state.completed is True
    player.update_text("x=1 ")
    assert host.completed == ["l1"]
    regions = player.regions()
    assert [(region.kind, region.start, region.end) for region in regions] == [(RegionKind.CONFIRMED, 0, 5)]


def test_lenient_keystrokes_pass_through(clock: FakeClock) -> None:
    player = _player(clock, Host())
    player.load_lesson("l1", "ab")
    assert player.press(KeyEvent("z")).outcome is KeyOutcome.PASS_THROUGH
    assert player.error_signal is None


def test_strict_end_to_end_typing(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host, strict=True)
    player.load_lesson("l1", "const a = 1;")
    for char in "const a = 1;":
        assert player.press(KeyEvent(char)).outcome is KeyOutcome.ACCEPTED
        clock.advance(0.05)
    assert player.state.completed is True
    assert player.state.matched_chars == player.state.total_chars == 9
    assert player.text == "const a = 1;"
    assert host.completed == ["l1"]
    assert player.press(KeyEvent("x")).outcome is KeyOutcome.IGNORED
    assert host.completed == ["l1"]


def test_strict_crlf_target_completes_with_enter(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host, strict=True)
    player.load_lesson("l1", "a\r\nb")
    assert player.target.text == "a\nb"
    assert player.press(KeyEvent("a")).outcome is KeyOutcome.ACCEPTED
    assert player.press(KeyEvent("Enter")).outcome is KeyOutcome.ACCEPTED
    assert player.press(KeyEvent("b")).outcome is KeyOutcome.ACCEPTED
    assert player.state.completed is True
    assert host.completed == ["l1"]


def test_strict_rejection_shows_error_region_until_expiry(clock: FakeClock) -> None:
    player = _player(clock, Host(), strict=True)
    player.load_lesson("l1", "ab\ncd")
    player.press(KeyEvent("a"))
    player.press(KeyEvent("b"))
    player.press(KeyEvent("Enter"))
    assert player.press(KeyEvent("x")).outcome is KeyOutcome.REJECTED
    assert player.text == "ab\n"
    errors = [region for region in player.regions() if region.kind is RegionKind.ERROR]
    assert [(region.start, region.end) for region in errors] == [(3, 5)]

    clock.advance(0.5)
    player.poll()
    assert player.error_signal is None
    assert all(region.kind is not RegionKind.ERROR for region in player.regions())
    assert player.text == "ab\n"


def test_strict_load_resumes_from_starting_text(clock: FakeClock) -> None:
    player = _player(clock, Host(), strict=True)
    player.load_lesson("l1", "if (x) {\n  y();\n}", starting_text="if (x) {\n")
    assert player.text == "if (x) {"
    assert player.press(KeyEvent("Enter")).inserted == "\n  "
    assert player.offset == 11


def test_strict_full_text_update_resyncs(clock: FakeClock) -> None:
    player = _player(clock, Host(), strict=True)
    player.load_lesson("l1", "abc")
    state = player.update_text("abZZ")
    assert state.matched_chars == 2
    assert player.text == "ab"


def test_debounced_save_of_latest_buffer(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host)
    player.load_lesson("l1", "abc")
    player.update_text("a")
    clock.advance(0.5)
    player.update_text("ab")
    clock.advance(0.5)
    player.poll()
    assert host.saves == []
    clock.advance(0.6)
    player.poll()
    assert host.saves == [("l1", "u1", "ab")]


def test_lesson_switch_resets_state_and_timers(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host, strict=True)
    player.load_lesson("l1", "ab")
    player.press(KeyEvent("a"))
    player.press(KeyEvent("x"))
    assert player.error_signal is not None

    player.load_lesson("l2", "cd")
    assert player.error_signal is None
    assert player.state.matched_chars == 0
    assert player.text == ""
    clock.advance(5)
    player.poll()
    assert host.saves == []


def test_close_flushes_pending_save(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host)
    player.load_lesson("l1", "abc")
    player.update_text("ab")
    player.close()
    assert host.saves == [("l1", "u1", "ab")]


def test_whitespace_only_target_never_completes(clock: FakeClock) -> None:
    host = Host()
    player = _player(clock, host)
    player.load_lesson("empty", "   \n ")
    assert player.update_text("").completed is False
    assert player.update_text("anything").completed is False
    assert host.completed == []


def test_annotations_appear_as_lines_are_reached(clock: FakeClock) -> None:
    player = _player(clock, Host())
    comments = [InstructorComment(1, "one"), InstructorComment(2, "two")]
    player.load_lesson("l1", "a\nb", comments=comments)
    assert [region.text for region in player.annotations()] == ["one"]
    player.update_text("a\n")
    assert [region.text for region in player.annotations()] == ["one", "two"]


def test_repeated_snapshot_is_idempotent(clock: FakeClock) -> None:
    player = _player(clock, Host())
    player.load_lesson("l1", "for (;;) {}")
    first = (player.update_text("for ("), player.regions())
    second = (player.update_text("for ("), player.regions())
    assert first == second
