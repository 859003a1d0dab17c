"""test_render.py - Unit tests for trace rendering.

Covers:
    - Header with and without message
    - One ``at`` line per frame in order, ``... n more`` only for trimmed causes
    - Package filtering: a lone elided frame, runs of elided frames, runs at
      the end of the list, and the ``... n more`` line surviving filtering
    - ``Caused by:`` chains, including the shared-frames scenario
    - Root-cause-first rendering with ``Wrapped by:``
    - Suppressed block: empty without suppressed errors, banner otherwise
"""

from packtrace.context import LiveFrame, LiveStackCursor
from packtrace.frames import CallFrame, RaisedError
from packtrace.proxy import EnrichedProxy
from packtrace.render import (
    SUPPRESSED_BANNER,
    render_extended,
    render_root_cause_first,
    render_suppressed,
)
from packtrace.resolver import ClassResolutionStrategy, ModuleRef


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class NoStrategy(ClassResolutionStrategy):
    def find(self, name, context):
        return None


def _frame(cls: str, method: str, line: int) -> CallFrame:
    return CallFrame(cls, method, f"{cls.rsplit('.', 1)[-1]}.py", line)


def _proxy(error: RaisedError) -> EnrichedProxy:
    return EnrichedProxy.build(error, cursor=LiveStackCursor(), strategy=NoStrategy())


def _at(frame: CallFrame) -> str:
    return f"\tat {frame} ~[?:?]"


A = _frame("A", "m1", 1)
B = _frame("B", "m2", 2)
D = _frame("D", "m3", 3)


# ---------------------------------------------------------------------------
# Plain rendering
# ---------------------------------------------------------------------------


class TestRenderExtended:
    def test_one_line_per_frame_in_order(self):
        frames = [_frame("shop.api", "checkout", 1), _frame("shop.orders", "pay", 2)]
        text = render_extended(_proxy(RaisedError("E", "boom", frames)))

        assert text.splitlines() == ["E: boom", _at(frames[0]), _at(frames[1])]
        assert text.endswith("\n")

    def test_header_without_message(self):
        assert render_extended(_proxy(RaisedError("E"))) == "E\n"

    def test_cause_with_shared_frames(self):
        """A cause sharing two outer frames prints only its own frame and a count."""
        error = RaisedError("E", frames=[A, B], cause=RaisedError("C", frames=[A, B, D]))

        assert render_extended(_proxy(error)) == (
            "E\n"
            f"{_at(A)}\n"
            f"{_at(B)}\n"
            "Caused by: C\n"
            f"{_at(D)}\n"
            "\t... 2 more\n"
        )

    def test_cause_without_shared_frames_has_no_count(self):
        error = RaisedError("E", frames=[A], cause=RaisedError("C", "why", frames=[D]))
        lines = render_extended(_proxy(error)).splitlines()
        assert lines[-2:] == ["Caused by: C: why", _at(D)]

    def test_nested_causes_are_all_rendered(self):
        inner = RaisedError("I", frames=[D])
        error = RaisedError("E", frames=[A], cause=RaisedError("M", frames=[B], cause=inner))
        text = render_extended(_proxy(error))
        assert text.count("Caused by: ") == 2
        assert text.index("Caused by: M") < text.index("Caused by: I")

    def test_exact_frames_have_no_tilde(self):
        proxy = EnrichedProxy.build(
            RaisedError("E", frames=[A, B]),
            cursor=LiveStackCursor([LiveFrame("A", ModuleRef("A"))]),
            strategy=NoStrategy(),
        )
        lines = render_extended(proxy).splitlines()
        assert lines[1] == "\tat A.m1(A.py:1) [?:?]"
        assert lines[2] == _at(B)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class TestFiltering:
    def _frames(self):
        return [
            _frame("shop.api", "checkout", 1),
            _frame("framework.dispatch", "call", 2),
            _frame("shop.orders", "pay", 3),
            _frame("framework.tx", "begin", 4),
            _frame("framework.tx", "run", 5),
            _frame("shop.db", "save", 6),
        ]

    def test_single_elided_frame(self):
        frames = self._frames()
        text = render_extended(_proxy(RaisedError("E", frames=frames[:3])), ["framework."])
        assert text.splitlines() == ["E", _at(frames[0]), "\t....", _at(frames[2])]

    def test_consecutive_elided_frames_are_counted(self):
        frames = self._frames()
        text = render_extended(_proxy(RaisedError("E", frames=frames)), ["framework."])
        assert text.splitlines() == [
            "E",
            _at(frames[0]),
            "\t....",
            _at(frames[2]),
            "\t... suppressed 2 lines",
            _at(frames[5]),
        ]

    def test_elided_run_at_end_is_flushed(self):
        frames = self._frames()[2:5]
        text = render_extended(_proxy(RaisedError("E", frames=frames)), ["framework."])
        assert text.splitlines()[-1] == "\t... suppressed 2 lines"

    def test_single_elided_frame_at_end(self):
        frames = self._frames()[:2]
        text = render_extended(_proxy(RaisedError("E", frames=frames)), ["framework."])
        assert text.splitlines()[-1] == "\t...."

    def test_any_prefix_matches(self):
        frames = self._frames()
        text = render_extended(
            _proxy(RaisedError("E", frames=frames)), ["framework.dispatch", "shop.db"]
        )
        assert text.count("\t....\n") == 2

    def test_common_count_survives_filtering(self):
        cause = RaisedError("C", frames=[A, B, _frame("framework.tx", "run", 5)])
        error = RaisedError("E", frames=[A, B], cause=cause)
        lines = render_extended(_proxy(error), ["framework."]).splitlines()
        assert lines[-2:] == ["\t....", "\t... 2 more"]

    def test_empty_prefix_list_disables_filtering(self):
        frames = self._frames()
        text = render_extended(_proxy(RaisedError("E", frames=frames)), [])
        assert text.count("\tat ") == len(frames)


# ---------------------------------------------------------------------------
# Root cause first
# ---------------------------------------------------------------------------


class TestRootCauseFirst:
    def test_innermost_cause_comes_first(self):
        inner = RaisedError("I", frames=[A, B, D])
        middle = RaisedError("M", frames=[A, B], cause=inner)
        error = RaisedError("E", frames=[A], cause=middle)

        assert render_root_cause_first(_proxy(error)) == (
            "I\n"
            f"{_at(D)}\n"
            "\t... 2 more\n"
            "Wrapped by: M\n"
            f"{_at(B)}\n"
            "\t... 1 more\n"
            "Wrapped by: E\n"
            f"{_at(A)}\n"
        )

    def test_without_cause_is_plain_block(self):
        proxy = _proxy(RaisedError("E", "x", frames=[A]))
        assert render_root_cause_first(proxy) == f"E: x\n{_at(A)}\n"

    def test_filtering_applies_to_every_block(self):
        cause = RaisedError("C", frames=[_frame("framework.tx", "run", 5)])
        error = RaisedError("E", frames=[_frame("framework.tx", "begin", 4)], cause=cause)
        text = render_root_cause_first(_proxy(error), ["framework."])
        assert text == "C\n\t....\nWrapped by: E\n\t....\n"


# ---------------------------------------------------------------------------
# Suppressed
# ---------------------------------------------------------------------------


class TestSuppressed:
    def test_no_suppressed_renders_nothing(self):
        assert render_suppressed(_proxy(RaisedError("E", frames=[A]))) == ""

    def test_suppressed_block_under_banner(self):
        error = RaisedError(
            "E",
            frames=[A],
            suppressed=[RaisedError("S1", frames=[B]), RaisedError("S2", frames=[D])],
        )
        assert render_suppressed(_proxy(error)) == (
            f"{SUPPRESSED_BANNER}\n"
            "S1\n"
            f"{_at(B)}\n"
            "S2\n"
            f"{_at(D)}\n"
        )

    def test_proxy_convenience_methods(self):
        proxy = _proxy(RaisedError("E", frames=[A], cause=RaisedError("C", frames=[D])))
        assert proxy.extended_stack_trace() == render_extended(proxy)
        assert proxy.cause_stack_trace() == render_root_cause_first(proxy)
        assert proxy.suppressed_stack_trace() == ""
