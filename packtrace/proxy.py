"""proxy.py - Enriched, render-ready view of an error and its cause chain.

EnrichedProxy pairs every frame of an error with the ArtifactInfo of its
module and links to proxies for the error's cause and suppressed errors.

Building a proxy tree:
    - The live call stack is captured once, when the root proxy is built,
      and the same cursor is consumed by the whole cause chain.
    - One ArtifactResolver, and with it one per-name cache, serves the whole
      chain. Modules that recur across frames and causes are looked up once.
    - A cause is trimmed against the error that wraps it. Their shared outer
      frames are dropped and only counted, in ``common_element_count``.
    - Suppressed errors are siblings, not continuations. Their proxies are
      built on first access, each as its own root.

Typical usage::

    from packtrace.proxy import EnrichedProxy

    try:
        checkout()
    except Exception as exc:
        print(EnrichedProxy.of(exc).extended_stack_trace(["unittest."]))
"""

from typing import Iterable, Optional, Sequence, Tuple

from .context import LiveStackCursor
from .frames import CallFrame, EnrichedFrame, ExceptionView, RaisedError
from .render import render_extended, render_root_cause_first, render_suppressed
from .resolver import ArtifactResolver, ClassResolutionStrategy
from .status import logger

# Causes nested deeper than this are not rendered.
MAX_CAUSE_DEPTH = 64


def count_common_frames(
    frames: Sequence[CallFrame], reference: Sequence[CallFrame]
) -> int:
    """Return how many outer frames ``frames`` shares with ``reference``.

    Both sequences are oldest first, so the shared run is a common prefix.
    """
    count = 0
    for mine, theirs in zip(frames, reference):
        if mine != theirs:
            break
        count += 1
    return count


def enrich(
    frames: Sequence[CallFrame],
    reference: Optional[Sequence[CallFrame]],
    cursor: LiveStackCursor,
    resolver: ArtifactResolver,
) -> Tuple[int, Tuple[EnrichedFrame, ...]]:
    """Attach ArtifactInfo to the frames an error does not share with its parent.

    Frames are walked from the outermost inward. While the top of ``cursor``
    belongs to the same module as the current frame, the frame is described
    from the live module and marked exact, and the cursor is popped. From the
    first mismatch on, frames are resolved by name through ``resolver``,
    hinted with the import root of the frame before.

    Args:
        frames: The error's frames, oldest first.
        reference: Frames of the wrapping error, or None for a root error.
        cursor: Live call-stack snapshot shared by the whole build.
        resolver: Per-build resolver and cache.

    Returns:
        ``(common_element_count, enriched_frames)`` where the enriched frames
        are ``frames[common_element_count:]``.
    """
    common = count_common_frames(frames, reference) if reference is not None else 0

    enriched = []
    context = None
    matching = True
    for frame in frames[common:]:
        live = cursor.peek() if matching else None
        if live is not None and live.class_name == frame.class_name:
            entry = resolver.describe(live.ref, exact=True)
            cursor.pop()
        else:
            matching = False
            entry = resolver.lookup(frame.class_name, context)
        if entry.context is not None:
            context = entry.context
        enriched.append(EnrichedFrame(frame, entry.info))
    return common, tuple(enriched)


class EnrichedProxy:
    """Render-ready view of a RaisedError and its causes.

    Attributes:
        error (RaisedError): The wrapped error. Rendering reads the untrimmed
            frames from it. It is not part of equality.
        name, message, localized_message: Copied from ``error``.
        frames (Tuple[EnrichedFrame, ...]): Own frames, oldest first.
        common_element_count (int): Outer frames shared with the wrapping
            error and left out of ``frames``; 0 for a root proxy.
        cause_proxy (Optional[EnrichedProxy]): Proxy of the error's cause.
    """

    def __init__(
        self,
        error: RaisedError,
        frames: Iterable[EnrichedFrame] = (),
        common_element_count: int = 0,
        cause_proxy: Optional["EnrichedProxy"] = None,
        strategy: Optional[ClassResolutionStrategy] = None,
    ) -> None:
        self.error = error
        self.name = error.name
        self.message = error.message
        self.localized_message = error.localized_message
        self.frames: Tuple[EnrichedFrame, ...] = tuple(frames)
        self.common_element_count = common_element_count
        self.cause_proxy = cause_proxy
        self._strategy = strategy
        # None until first read of suppressed_proxies.
        self._suppressed_proxies: Optional[Tuple["EnrichedProxy", ...]] = None

    # ---------------------------------------------------------------------- #
    # Construction
    # ---------------------------------------------------------------------- #

    @classmethod
    def of(
        cls, exc: BaseException, strategy: Optional[ClassResolutionStrategy] = None
    ) -> "EnrichedProxy":
        """Build the proxy tree for a live exception."""
        view = ExceptionView.of(exc)
        cursor = LiveStackCursor.capture(anchor=view.anchor, skip=1)
        return cls.build(view, cursor=cursor, strategy=strategy)

    @classmethod
    def build(
        cls,
        error: RaisedError,
        parent: Optional[RaisedError] = None,
        cursor: Optional[LiveStackCursor] = None,
        resolver: Optional[ArtifactResolver] = None,
        strategy: Optional[ClassResolutionStrategy] = None,
        max_depth: int = MAX_CAUSE_DEPTH,
        _depth: int = 0,
    ) -> "EnrichedProxy":
        """Build the proxy for ``error`` and, recursively, for its causes.

        Args:
            error: The error to wrap.
            parent: The error wrapping ``error``; its frames are the trimming
                reference. None for a root error.
            cursor: Live stack snapshot. Captured here when not supplied;
                consumed by this build and its causes.
            resolver: Resolver shared by the chain. A fresh one (using
                ``strategy``) is created when not supplied.
            strategy: Lookup strategy for a fresh resolver.
            max_depth: Maximum number of causes below the root.

        Returns:
            The proxy for ``error``.
        """
        if cursor is None:
            cursor = LiveStackCursor.capture(anchor=error.anchor, skip=1)
        if resolver is None:
            resolver = ArtifactResolver(strategy)

        reference = parent.frames if parent is not None else None
        common, frames = enrich(error.frames, reference, cursor, resolver)

        cause_proxy = None
        if error.cause is not None:
            if _depth < max_depth:
                cause_proxy = cls.build(
                    error.cause,
                    parent=error,
                    cursor=cursor,
                    resolver=resolver,
                    max_depth=max_depth,
                    _depth=_depth + 1,
                )
            else:
                logger.warning(
                    "cause chain of %s exceeds %d levels; deeper causes omitted",
                    error.name,
                    max_depth,
                )
        return cls(error, frames, common, cause_proxy, resolver.strategy)

    # ---------------------------------------------------------------------- #
    # Suppressed errors
    # ---------------------------------------------------------------------- #

    @property
    def suppressed_proxies(self) -> Tuple["EnrichedProxy", ...]:
        """Proxies of the suppressed errors, built and cached on first access."""
        if self._suppressed_proxies is None:
            self._suppressed_proxies = self._build_suppressed()
        return self._suppressed_proxies

    def _build_suppressed(self) -> Tuple["EnrichedProxy", ...]:
        try:
            suppressed = tuple(self.error.suppressed)
        except Exception:
            logger.error(
                "could not read suppressed errors of %s", self.name, exc_info=True
            )
            return ()
        return tuple(
            EnrichedProxy.build(error, strategy=self._strategy) for error in suppressed
        )

    # ---------------------------------------------------------------------- #
    # Rendering
    # ---------------------------------------------------------------------- #

    def extended_stack_trace(self, ignore_packages: Sequence[str] = ()) -> str:
        """Format this error, then its causes under ``Caused by:``."""
        return render_extended(self, ignore_packages)

    def cause_stack_trace(self, ignore_packages: Sequence[str] = ()) -> str:
        """Format the innermost cause first, then each wrapper under ``Wrapped by:``."""
        return render_root_cause_first(self, ignore_packages)

    def suppressed_stack_trace(self) -> str:
        return render_suppressed(self)

    # ---------------------------------------------------------------------- #
    # Value semantics
    # ---------------------------------------------------------------------- #

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, EnrichedProxy):
            return NotImplemented
        return (
            self.name == other.name
            and self.common_element_count == other.common_element_count
            and self.frames == other.frames
            and self.cause_proxy == other.cause_proxy
            and self.suppressed_proxies == other.suppressed_proxies
        )

    def __hash__(self) -> int:
        return hash(
            (self.name, self.common_element_count, self.frames, self.cause_proxy)
        )

    def __str__(self) -> str:
        return self.name if self.message is None else f"{self.name}: {self.message}"

    def __repr__(self) -> str:  # pragma: no cover
        return f"EnrichedProxy({str(self)!r}, frames={len(self.frames)})"
