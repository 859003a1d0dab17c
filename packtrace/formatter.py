"""formatter.py - logging integration for packaging-aware tracebacks.

This module is the integration point between the standard ``logging``
machinery and packtrace's rendering engine:

    ThrowableFormatOptions      How much of a trace to print, how to join its
                                lines and which packages to elide.
    ThrowableConverter          Appends the bounded trace of a LogRecord's
                                exception to an output buffer.
    ThrowableFormatter          ``logging.Formatter`` that prints the extended
                                trace instead of the stock traceback.
    FilteredThrowableFormatter  The same, always eliding some packages.

Typical usage::

    import logging
    from packtrace import ThrowableFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(
        ThrowableFormatter("%(levelname)s %(name)s %(message)s",
                           ignore_packages=["unittest.", "pluggy."])
    )
    logging.getLogger().addHandler(handler)

With ``logging.config.dictConfig`` use the ``()`` factory key::

    "formatters": {
        "trace": {
            "()": "packtrace.ThrowableFormatter",
            "fmt": "%(levelname)s %(message)s",
            "options": ["20", "filters(unittest.,pluggy.)", "separator( | )"],
        }
    }
"""

import io
import logging
import re
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .proxy import EnrichedProxy
from .resolver import ClassResolutionStrategy

# Line separator of rendered traces; output in this separator with no line
# limit is passed through untouched.
NATIVE_SEPARATOR = "\n"

_OPTION_CALL = re.compile(r"^(\w+)\((.*)\)$", re.DOTALL)


class ThrowableFormatOptions:
    """Options consumed by ThrowableConverter.

    Attributes:
        lines (Optional[int]): Maximum number of trace lines to print. None
            prints everything; 0 disables trace output.
        separator (str): Joins the printed lines.
        ignore_packages (Tuple[str, ...]): Module-name prefixes whose frames
            are elided.
        root_cause_first (bool): Print the innermost cause first, followed by
            its wrappers.
        suppressed (bool): Append the members of exception groups.

    Example:
        >>> opts = ThrowableFormatOptions.parse(["short", "separator(|)"])
        >>> opts.lines, opts.separator
        (1, '|')
    """

    def __init__(
        self,
        lines: Optional[int] = None,
        separator: str = NATIVE_SEPARATOR,
        ignore_packages: Iterable[str] = (),
        root_cause_first: bool = False,
        suppressed: bool = False,
    ) -> None:
        if lines is not None and lines < 0:
            raise ValueError(f"lines must be >= 0, got {lines}")
        self.lines = lines
        self.separator = separator
        self.ignore_packages = tuple(p for p in ignore_packages if p)
        self.root_cause_first = root_cause_first
        self.suppressed = suppressed

    @classmethod
    def parse(cls, options: Union[str, Sequence[str]]) -> "ThrowableFormatOptions":
        """Build options from log4j-style pattern options.

        Recognised options: ``full``, ``short`` (one line), ``none`` (no
        output), a line count, ``filters(a.,b.)``, ``separator(text)``,
        ``rootcausefirst`` and ``suppressed``.

        Raises:
            ValueError: On an unknown option or a negative line count.
        """
        if isinstance(options, str):
            options = [options]

        kwargs = {}
        ignore_packages: List[str] = []
        for raw in options:
            option = raw.strip()
            lowered = option.lower()
            call = _OPTION_CALL.match(option)
            if lowered == "full":
                kwargs["lines"] = None
            elif lowered == "short":
                kwargs["lines"] = 1
            elif lowered == "none":
                kwargs["lines"] = 0
            elif lowered == "rootcausefirst":
                kwargs["root_cause_first"] = True
            elif lowered == "suppressed":
                kwargs["suppressed"] = True
            elif option.isdigit():
                kwargs["lines"] = int(option)
            elif call and call.group(1).lower() == "filters":
                ignore_packages.extend(p.strip() for p in call.group(2).split(","))
            elif call and call.group(1).lower() == "separator":
                # Separators are taken verbatim, surrounding spaces included.
                kwargs["separator"] = call.group(2)
            else:
                raise ValueError(f"unknown throwable option: {raw!r}")
        return cls(ignore_packages=ignore_packages, **kwargs)

    @property
    def all_lines(self) -> bool:
        return self.lines is None

    @property
    def any_lines(self) -> bool:
        return self.lines is None or self.lines > 0

    @property
    def multiline(self) -> bool:
        """True when more than one line is printed, each on its own line."""
        return self.separator == NATIVE_SEPARATOR and (self.lines is None or self.lines > 1)

    def min_lines(self, available: int) -> int:
        """Return how many of ``available`` lines to print."""
        return available if self.lines is None else min(self.lines, available)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"ThrowableFormatOptions(lines={self.lines!r}, separator={self.separator!r}, "
            f"ignore_packages={self.ignore_packages!r})"
        )


def exception_of(record: logging.LogRecord) -> Optional[BaseException]:
    """Return the exception carried by ``record``, if any."""
    exc_info = record.exc_info
    if isinstance(exc_info, BaseException):
        return exc_info
    if isinstance(exc_info, tuple) and len(exc_info) == 3:
        if isinstance(exc_info[1], BaseException):
            return exc_info[1]
    return None


def _split_lines(text: str) -> List[str]:
    lines = text.split(NATIVE_SEPARATOR)
    while lines and not lines[-1]:
        lines.pop()
    return lines


class ThrowableConverter:
    """Renders the exception of a LogRecord into an output buffer.

    Args:
        options: Output options; defaults to the full, unfiltered trace.
        strategy: Module lookup strategy; defaults to
            ``packtrace.resolver.default_strategy()``.
    """

    def __init__(
        self,
        options: Optional[ThrowableFormatOptions] = None,
        strategy: Optional[ClassResolutionStrategy] = None,
    ) -> None:
        self.options = options if options is not None else ThrowableFormatOptions()
        self.strategy = strategy

    def applies(self, record: logging.LogRecord) -> bool:
        """Return True if ``format()`` would write anything for ``record``."""
        return exception_of(record) is not None and self.options.any_lines

    def render(self, exc: BaseException) -> str:
        """Return the complete trace of ``exc`` as configured, without a line limit."""
        options = self.options
        proxy = EnrichedProxy.of(exc, strategy=self.strategy)
        if options.root_cause_first:
            text = proxy.cause_stack_trace(options.ignore_packages)
        else:
            text = proxy.extended_stack_trace(options.ignore_packages)
        if options.suppressed:
            text += proxy.suppressed_stack_trace()
        return text

    def format(self, record: logging.LogRecord, buffer: io.StringIO) -> None:
        """Append the trace of ``record``'s exception to ``buffer``.

        Nothing is written when the record carries no exception or the
        options print no lines. A space is written first when the buffer
        already holds text that does not end in whitespace.

        Args:
            record: The LogRecord being formatted.
            buffer: Output buffer; written at its end.
        """
        exc = exception_of(record)
        if exc is None or not self.options.any_lines:
            return

        options = self.options
        trace = self.render(exc)

        buffer.seek(0, io.SEEK_END)
        if buffer.tell():
            text = buffer.getvalue()
            if not text[-1].isspace():
                buffer.write(" ")

        if not options.all_lines or options.separator != NATIVE_SEPARATOR:
            lines = _split_lines(trace)
            buffer.write(options.separator.join(lines[: options.min_lines(len(lines))]))
        else:
            buffer.write(trace)


class ThrowableFormatter(logging.Formatter):
    """A logging.Formatter that prints exceptions with packaging data.

    Formatting keywords (``lines``, ``separator``, ``ignore_packages``,
    ``root_cause_first``, ``suppressed``) are forwarded to
    ThrowableFormatOptions. Alternatively pass ``options`` as a prepared
    ThrowableFormatOptions or as a list of log4j-style option strings.

    Example:
        >>> fmt = ThrowableFormatter("%(message)s", lines=5, separator=" | ")
        >>> fmt.throwable_converter.options.lines
        5
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: str = "%",
        validate: bool = True,
        *,
        defaults: Optional[Mapping[str, object]] = None,
        options: Union[None, ThrowableFormatOptions, str, Sequence[str]] = None,
        strategy: Optional[ClassResolutionStrategy] = None,
        **option_kwargs,
    ) -> None:
        super().__init__(fmt, datefmt, style, validate, defaults=defaults)
        if options is None:
            options = ThrowableFormatOptions(**option_kwargs)
        elif option_kwargs:
            raise TypeError("pass either options or formatting keywords, not both")
        elif not isinstance(options, ThrowableFormatOptions):
            options = ThrowableFormatOptions.parse(options)
        self.throwable_converter = ThrowableConverter(options, strategy)

    def format(self, record: logging.LogRecord) -> str:
        """Format ``record``, appending its exception trace as configured.

        Mirrors ``logging.Formatter.format`` except for the exception text,
        which is rendered by ``throwable_converter`` on every call instead of being
        cached on the record: other handlers keep their own formatting. Records
        that arrive with only ``exc_text`` (unpickled from a SocketHandler) get
        that text appended unchanged.
        """
        record.message = record.getMessage()
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)
        s = self.formatMessage(record)

        buffer = io.StringIO()
        buffer.write(s)
        if self.throwable_converter.applies(record):
            if self.throwable_converter.options.multiline and s and s[-1:] != "\n":
                buffer.write("\n")
            self.throwable_converter.format(record, buffer)
        elif record.exc_text and exception_of(record) is None:
            if s[-1:] != "\n":
                buffer.write("\n")
            buffer.write(record.exc_text)
        if record.stack_info:
            if buffer.getvalue()[-1:] != "\n":
                buffer.write("\n")
            buffer.write(self.formatStack(record.stack_info))
        return buffer.getvalue()

    def formatException(self, ei) -> str:
        """Return the full trace for an ``exc_info`` tuple, without the final newline."""
        exc = ei[1] if isinstance(ei, tuple) else ei
        if not isinstance(exc, BaseException):
            return super().formatException(ei)
        text = self.throwable_converter.render(exc)
        if text.endswith("\n"):
            text = text[:-1]
        return text


class FilteredThrowableFormatter(ThrowableFormatter):
    """ThrowableFormatter that must elide at least one package.

    Raises:
        ValueError: If no ignored package prefix is configured.

    Example:
        >>> fmt = FilteredThrowableFormatter("%(message)s", ignore_packages=["pytest"])
        >>> fmt.throwable_converter.options.ignore_packages
        ('pytest',)
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if not self.throwable_converter.options.ignore_packages:
            raise ValueError("FilteredThrowableFormatter needs ignore_packages")
