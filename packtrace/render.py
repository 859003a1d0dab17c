"""render.py - Text rendering of EnrichedProxy trees.

Output format (every line ends with ``\\n``)::

    shop.PaymentError: card declined
    \tat shop.api.checkout(api.py:12) [src:?]
    \tat shop.orders.Order.pay(orders.py:42) ~[src:?]
    Caused by: TimeoutError: gateway
    \tat shop.gateway.charge(gateway.py:7) ~[src:?]
    \t... 2 more

Frames whose module starts with an ignored prefix are elided. A single
elided frame leaves ``\\t....``; a run of them collapses into
``\\t... suppressed <n> lines``. The ``\\t... <n> more`` line counts frames a
cause shares with its wrapper and is printed whether or not filtering is on.
"""

from typing import TYPE_CHECKING, List, Sequence, Tuple

if TYPE_CHECKING:
    from .proxy import EnrichedProxy

SUPPRESSED_BANNER = "Suppressed Stack Trace Elements:"


def _is_ignored(class_name: str, prefixes: Tuple[str, ...]) -> bool:
    return class_name.startswith(prefixes)


def _flush_elided(out: List[str], count: int) -> None:
    if count == 1:
        out.append("\t....\n")
    elif count > 1:
        out.append(f"\t... suppressed {count} lines\n")


def _format_elements(
    out: List[str],
    proxy: "EnrichedProxy",
    common_count: int,
    ignore_packages: Sequence[str],
) -> None:
    if not ignore_packages:
        for enriched in proxy.frames:
            out.append(f"\tat {enriched}\n")
    else:
        prefixes = tuple(ignore_packages)
        # Filter on the error's own frames, aligned with the enriched ones.
        original = proxy.error.frames[proxy.common_element_count :]
        elided = 0
        for frame, enriched in zip(original, proxy.frames):
            if _is_ignored(frame.class_name, prefixes):
                elided += 1
                continue
            _flush_elided(out, elided)
            elided = 0
            out.append(f"\tat {enriched}\n")
        _flush_elided(out, elided)

    if common_count:
        out.append(f"\t... {common_count} more\n")


def render_extended(
    proxy: "EnrichedProxy", ignore_packages: Sequence[str] = ()
) -> str:
    """Render ``proxy`` and then each cause under ``Caused by:``.

    The top-level block never prints a ``... n more`` line.

    Args:
        proxy: Root of the tree to render.
        ignore_packages: Module-name prefixes whose frames are elided.

    Returns:
        The rendered trace, one ``\\n``-terminated line per entry.
    """
    out = [f"{proxy}\n"]
    _format_elements(out, proxy, 0, ignore_packages)

    cause = proxy.cause_proxy
    while cause is not None:
        out.append(f"Caused by: {cause}\n")
        _format_elements(out, cause, cause.common_element_count, ignore_packages)
        cause = cause.cause_proxy
    return "".join(out)


def render_root_cause_first(
    proxy: "EnrichedProxy", ignore_packages: Sequence[str] = ()
) -> str:
    """Render the innermost cause first, then each wrapper under ``Wrapped by:``.

    Wrapper context ends the output, so the error that was actually logged is
    the last block. Like the top-level block of ``render_extended``, it
    prints all of its frames without a ``... n more`` line.
    """
    chain = []
    current = proxy
    while current is not None:
        chain.append(current)
        current = current.cause_proxy

    out: List[str] = []
    for position, item in enumerate(reversed(chain)):
        if position:
            out.append("Wrapped by: ")
        out.append(f"{item}\n")
        common = 0 if item is proxy else item.common_element_count
        _format_elements(out, item, common, ignore_packages)
    return "".join(out)


def render_suppressed(proxy: "EnrichedProxy") -> str:
    """Render the suppressed errors of ``proxy`` under a banner line.

    Returns an empty string when there are none. Suppressed errors are
    rendered in full, without filtering.
    """
    suppressed = proxy.suppressed_proxies
    if not suppressed:
        return ""
    out = [f"{SUPPRESSED_BANNER}\n"]
    out.extend(render_extended(item) for item in suppressed)
    return "".join(out)
