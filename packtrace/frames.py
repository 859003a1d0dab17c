"""frames.py - Value types for packaging-aware stack traces.

The rendering engine never touches ``BaseException`` or traceback objects
directly. It works on a small read-only view of a raised error:

    RaisedError:   type name, message, frames (oldest first), cause and
                   suppressed errors.
    CallFrame:     one traceback entry, compared by value.
    ArtifactInfo:  where the module behind a frame was loaded from and which
                   version of it is installed.
    EnrichedFrame: a CallFrame paired with its ArtifactInfo.

ExceptionView adapts a live exception to the RaisedError interface. Synthetic
RaisedError instances can be built by hand, which is how the test-suite feeds
frames that no interpreter would produce.
"""

import os
import traceback
from typing import Iterable, List, Optional, Sequence, Tuple

# Line number used by CallFrame for frames executed outside Python code.
NATIVE_METHOD_LINE = -2

UNKNOWN = "?"


class CallFrame:
    """A single traceback entry.

    Attributes:
        class_name (str): Dotted name of the module that owns the code.
        method (str): Qualified function name, e.g. ``"Order.pay"``.
        file (Optional[str]): Base name of the source file, if known.
        line (Optional[int]): Line number, ``NATIVE_METHOD_LINE`` for native
            frames, ``None`` if unknown.

    Example:
        >>> str(CallFrame("shop.orders", "Order.pay", "orders.py", 42))
        'shop.orders.Order.pay(orders.py:42)'
    """

    __slots__ = ("class_name", "method", "file", "line")

    def __init__(
        self,
        class_name: str,
        method: str,
        file: Optional[str] = None,
        line: Optional[int] = None,
    ) -> None:
        self.class_name = class_name
        self.method = method
        self.file = file
        self.line = line

    @classmethod
    def from_frame(cls, frame, lineno: Optional[int]) -> "CallFrame":
        """Build a CallFrame from a live frame object and its current line."""
        code = frame.f_code
        module = frame.f_globals.get("__name__") or UNKNOWN
        method = getattr(code, "co_qualname", code.co_name)
        file = os.path.basename(code.co_filename) if code.co_filename else None
        return cls(module, method, file, lineno)

    @property
    def is_native(self) -> bool:
        return self.line == NATIVE_METHOD_LINE

    def _key(self) -> Tuple:
        return (self.class_name, self.method, self.file, self.line)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CallFrame):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        if self.is_native:
            where = "Native Method"
        elif self.file is not None and self.line is not None and self.line >= 0:
            where = f"{self.file}:{self.line}"
        elif self.file is not None:
            where = self.file
        else:
            where = "Unknown Source"
        return f"{self.class_name}.{self.method}({where})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"CallFrame({str(self)!r})"


class ArtifactInfo:
    """Packaging metadata of the module behind a frame.

    ``exact`` is True only when the module was taken from a frame that was
    still executing when the trace was rendered; otherwise it was looked up
    by name and may not be the very module that raised.
    """

    __slots__ = ("location", "version", "exact")

    def __init__(
        self, location: str = UNKNOWN, version: str = UNKNOWN, exact: bool = False
    ) -> None:
        self.location = location
        self.version = version
        self.exact = exact

    def __eq__(self, other) -> bool:
        if not isinstance(other, ArtifactInfo):
            return NotImplemented
        return (self.location, self.version, self.exact) == (
            other.location,
            other.version,
            other.exact,
        )

    def __hash__(self) -> int:
        return hash((self.location, self.version, self.exact))

    def __str__(self) -> str:
        prefix = "" if self.exact else "~"
        return f"{prefix}[{self.location}:{self.version}]"

    def __repr__(self) -> str:  # pragma: no cover
        return f"ArtifactInfo({self.location!r}, {self.version!r}, exact={self.exact})"


class EnrichedFrame:
    """A CallFrame together with the ArtifactInfo of its module."""

    __slots__ = ("frame", "info")

    def __init__(self, frame: CallFrame, info: ArtifactInfo) -> None:
        self.frame = frame
        self.info = info

    def __eq__(self, other) -> bool:
        if not isinstance(other, EnrichedFrame):
            return NotImplemented
        return self.frame == other.frame and self.info == other.info

    def __hash__(self) -> int:
        return hash((self.frame, self.info))

    def __str__(self) -> str:
        return f"{self.frame} {self.info}"

    def __repr__(self) -> str:  # pragma: no cover
        return f"EnrichedFrame({str(self)!r})"


class RaisedError:
    """Read-only view of a raised error.

    Attributes:
        name (str): Type name, e.g. ``"ValueError"`` or ``"shop.PaymentError"``.
        message (Optional[str]): Error message, ``None`` when there is none.
        localized_message (Optional[str]): Defaults to ``message``.
        frames (Tuple[CallFrame, ...]): Traceback entries, oldest first.
        cause (Optional[RaisedError]): The wrapped error, if any.
        anchor: Live frame object of the outermost traceback entry, used to
            align the live call-stack snapshot. None for synthetic errors.
    """

    anchor = None

    def __init__(
        self,
        name: str,
        message: Optional[str] = None,
        frames: Iterable[CallFrame] = (),
        cause: Optional["RaisedError"] = None,
        suppressed: Iterable["RaisedError"] = (),
        localized_message: Optional[str] = None,
    ) -> None:
        self.name = name
        self.message = message
        self.localized_message = (
            localized_message if localized_message is not None else message
        )
        self.frames: Tuple[CallFrame, ...] = tuple(frames)
        self.cause = cause
        self._suppressed: Tuple["RaisedError", ...] = tuple(suppressed)

    @property
    def suppressed(self) -> Sequence["RaisedError"]:
        """Errors raised alongside this one (the members of an exception group)."""
        return self._suppressed

    def __str__(self) -> str:
        return self.name if self.message is None else f"{self.name}: {self.message}"

    def __repr__(self) -> str:  # pragma: no cover
        return f"{type(self).__name__}({str(self)!r})"


def type_name(exc_type: type) -> str:
    """Return the dotted type name used in trace headers.

    Builtin exceptions keep their bare name, like the interpreter prints them.
    """
    module = getattr(exc_type, "__module__", None)
    qualname = getattr(exc_type, "__qualname__", exc_type.__name__)
    if module in (None, "builtins", "__builtin__"):
        return qualname
    return f"{module}.{qualname}"


def _exception_message(exc: BaseException) -> Optional[str]:
    try:
        text = str(exc)
    except Exception:
        return "<exception str() failed>"
    return text or None


def cause_of(exc: BaseException) -> Optional[BaseException]:
    """Return the exception the interpreter would print under ``exc``."""
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def extract_frames(tb) -> List[CallFrame]:
    """Return the CallFrames of a traceback chain, oldest first."""
    return [CallFrame.from_frame(frame, lineno) for frame, lineno in traceback.walk_tb(tb)]


class ExceptionView(RaisedError):
    """RaisedError backed by a live exception.

    The cause chain follows the interpreter's rules: an explicit ``__cause__``
    wins, otherwise ``__context__`` is used unless ``__suppress_context__``
    is set. A cycle in that chain is cut at the first repeated exception.
    The chain is linked in a loop, so its length is not bounded by the
    recursion limit. Suppressed errors are only converted when first read.
    """

    def __init__(self, exc: BaseException, _link_causes: bool = True) -> None:
        message = _exception_message(exc)
        super().__init__(
            name=type_name(type(exc)),
            message=message,
            frames=extract_frames(exc.__traceback__),
        )
        self.exception = exc
        self.anchor = exc.__traceback__.tb_frame if exc.__traceback__ else None
        self._converted: Optional[Tuple[RaisedError, ...]] = None

        if _link_causes:
            seen = {id(exc)}
            view = self
            cause = cause_of(exc)
            while cause is not None and id(cause) not in seen:
                seen.add(id(cause))
                view.cause = ExceptionView(cause, _link_causes=False)
                view = view.cause
                cause = cause_of(cause)

    @classmethod
    def of(cls, exc: BaseException) -> "ExceptionView":
        return cls(exc)

    @property
    def suppressed(self) -> Sequence[RaisedError]:
        if self._converted is None:
            members = getattr(self.exception, "exceptions", None)
            if isinstance(members, (tuple, list)):
                self._converted = tuple(
                    ExceptionView(member)
                    for member in members
                    if isinstance(member, BaseException)
                )
            else:
                self._converted = ()
        return self._converted
