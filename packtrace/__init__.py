"""packtrace/__init__.py - Public API for the packtrace package.

packtrace renders exception traces with packaging data: for every frame it
prints where the frame's module was loaded from and which version of its
distribution is installed. Frames of uninteresting packages can be elided,
and a cause's frames that repeat its wrapper's are collapsed into a count.

Quick start:
    import logging
    from packtrace import ThrowableFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(ThrowableFormatter("%(levelname)s %(message)s"))
    logging.getLogger().addHandler(handler)

    try:
        checkout()
    except Exception:
        logging.getLogger(__name__).exception("checkout failed")

Output:
    ERROR checkout failed
    shop.PaymentError: card declined
    \tat __main__.<module>(app.py:14) [app:?]
    \tat shop.orders.Order.pay(orders.py:42) ~[site-packages:1.4.2]
    Caused by: TimeoutError: gateway
    \tat shop.gateway.charge(gateway.py:7) ~[site-packages:1.4.2]

Exported names:
    ThrowableFormatter:         logging.Formatter printing extended traces.
    FilteredThrowableFormatter: The same, eliding configured packages.
    ThrowableFormatOptions:     Line limit, separator and elided packages.
    ThrowableConverter:         Appends a bounded trace to a text buffer.
    EnrichedProxy:              Render-ready view of an error and its causes.
    RaisedError:                Read-only error view the engine works on.
    ArtifactResolver:           Resolves module names to packaging data.
"""

from .formatter import (
    FilteredThrowableFormatter,
    ThrowableConverter,
    ThrowableFormatOptions,
    ThrowableFormatter,
)
from .frames import ArtifactInfo, CallFrame, EnrichedFrame, ExceptionView, RaisedError
from .proxy import EnrichedProxy
from .resolver import ArtifactResolver, ClassResolutionStrategy, default_strategy

__all__ = [
    "ThrowableFormatter",
    "FilteredThrowableFormatter",
    "ThrowableFormatOptions",
    "ThrowableConverter",
    "EnrichedProxy",
    "RaisedError",
    "ExceptionView",
    "CallFrame",
    "ArtifactInfo",
    "EnrichedFrame",
    "ArtifactResolver",
    "ClassResolutionStrategy",
    "default_strategy",
]
__version__ = "0.1.0"
