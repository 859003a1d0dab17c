"""context.py - Snapshot of the live call stack for exact frame attribution.

A traceback lists frames by module name only. Looking a module up by name can
find a different copy than the one that ran (a vendored duplicate, a second
entry on ``sys.path``). Frames that are *still executing* while the trace is
rendered are better: their module namespace is at hand, so packtrace can
describe the exact module and mark the frame's ArtifactInfo as exact.

LiveStackCursor holds that snapshot. It is taken once per rendered error,
handed by reference through the whole cause-chain build and popped as frames
are matched, so it must never be shared between two builds or two threads.
"""

import sys
from typing import Iterable, List, Optional

from .resolver import ModuleRef


class LiveFrame:
    """One executing frame: its module name and a reference to the module."""

    __slots__ = ("class_name", "ref")

    def __init__(self, class_name: str, ref: ModuleRef) -> None:
        self.class_name = class_name
        self.ref = ref

    @classmethod
    def of(cls, frame) -> "LiveFrame":
        module_globals = frame.f_globals
        name = module_globals.get("__name__") or "?"
        return cls(name, ModuleRef.from_globals(module_globals))

    def __repr__(self) -> str:  # pragma: no cover
        return f"LiveFrame({self.class_name!r})"


class LiveStackCursor:
    """Single-use cursor over a live call-stack snapshot, outermost frame on top.

    Example:
        >>> cursor = LiveStackCursor([LiveFrame("app", ModuleRef("app"))])
        >>> cursor.peek().class_name
        'app'
        >>> cursor.pop().class_name, len(cursor)
        ('app', 0)
    """

    def __init__(self, frames: Iterable[LiveFrame] = ()) -> None:
        # Stored innermost-first so the outermost frame pops off the end.
        self._frames: List[LiveFrame] = list(frames)
        self._frames.reverse()

    @classmethod
    def capture(cls, anchor=None, skip: int = 0) -> "LiveStackCursor":
        """Snapshot the calling thread's stack, oldest frame first.

        Args:
            anchor: Frame object to start the snapshot at, normally the
                outermost frame of the root error's traceback. Frames above
                it cannot occur in that traceback. Ignored when the anchor is
                no longer executing.
            skip: Number of innermost frames to leave out in addition to
                ``capture`` itself.

        Returns:
            A fresh cursor owned by the caller.
        """
        frames = []
        frame = sys._getframe(1 + skip)
        while frame is not None:
            frames.append(frame)
            frame = frame.f_back
        frames.reverse()

        if anchor is not None:
            for index, live in enumerate(frames):
                if live is anchor:
                    frames = frames[index:]
                    break

        return cls(LiveFrame.of(frame) for frame in frames)

    def peek(self) -> Optional[LiveFrame]:
        """Return the outermost unmatched frame, or None when exhausted."""
        return self._frames[-1] if self._frames else None

    def pop(self) -> LiveFrame:
        """Remove and return the outermost unmatched frame.

        Raises:
            IndexError: If the cursor is exhausted.
        """
        return self._frames.pop()

    def __len__(self) -> int:
        return len(self._frames)
