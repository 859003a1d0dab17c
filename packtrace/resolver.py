"""resolver.py - Frame metadata resolution: which artifact defines a module.

For every frame in a trace packtrace prints where the frame's module was
loaded from and which version of its distribution is installed::

    at shop.orders.Order.pay(orders.py:42) ~[site-packages:1.4.2]

Resolution is best-effort. A module that cannot be found, a name that is not a
valid dotted identifier, or any error while probing the file system or the
installed distributions all degrade to ``[?:?]``; nothing here may raise into
the render path.

Lookups never import anything. A module is located by walking
``importlib.machinery.PathFinder`` one package level at a time, so resolving a
traceback cannot execute module code as a side effect.

Lookup contexts are import roots (``sys.path`` entries). They are tried in
order by ``default_strategy()``:

    1. the import root of the previously resolved frame (the caller's hint),
    2. the interpreter-wide view: ``sys.modules``, then ``sys.path``,
    3. the import root packtrace itself was loaded from.
"""

import functools
import os
import pathlib
import sys
from abc import ABC, abstractmethod
from importlib import metadata
from importlib.machinery import ModuleSpec, PathFinder
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .frames import UNKNOWN, ArtifactInfo
from .status import logger

_NAME_PUNCTUATION = frozenset(".$_[]")


def is_valid_class_name(name: str) -> bool:
    """Return True if ``name`` may be handed to a lookup strategy.

    Only letters, digits and ``. $ _ [ ]`` are accepted. Frames produced by
    embedded interpreters or template engines often carry descriptors such as
    ``MonitorMixin::ConditionVariable`` that are not identifiers at all, and
    some import hooks raise on them instead of reporting "not found".

    Example:
        >>> is_valid_class_name("org.jruby.RubyKernel$INVOKER$s$send19")
        True
        >>> is_valid_class_name("MonitorMixin::ConditionVariable")
        False
    """
    if not name:
        return False
    return all(ch.isalnum() or ch in _NAME_PUNCTUATION for ch in name)


# --------------------------------------------------------------------------- #
# Module references
# --------------------------------------------------------------------------- #


def _import_root(name: str, origin: Optional[str], is_package: bool) -> Optional[str]:
    """Return the sys.path entry a module with ``origin`` was imported from."""
    if not origin:
        return None
    levels = name.count(".") + (1 if is_package else 0)
    root = os.path.dirname(origin)
    for _ in range(levels):
        root = os.path.dirname(root)
    return root or None


class ModuleRef:
    """A located module: the packtrace counterpart of a loaded class.

    Attributes:
        name (str): Dotted module name.
        origin (Optional[str]): Path of the module's source or extension file.
        root (Optional[str]): Import root the module lives under. It doubles
            as the lookup context handed to the next resolution.
        is_package (bool): True for packages (``__init__`` modules).
    """

    __slots__ = ("name", "origin", "root", "is_package")

    def __init__(
        self,
        name: str,
        origin: Optional[str] = None,
        root: Optional[str] = None,
        is_package: bool = False,
    ) -> None:
        self.name = name
        self.origin = origin
        self.root = root
        self.is_package = is_package

    @classmethod
    def from_spec(cls, spec: ModuleSpec) -> "ModuleRef":
        origin = spec.origin if spec.has_location else None
        is_package = spec.submodule_search_locations is not None
        return cls(spec.name, origin, _import_root(spec.name, origin, is_package), is_package)

    @classmethod
    def from_globals(cls, module_globals: Mapping) -> "ModuleRef":
        """Build a ref from a module namespace, e.g. a live frame's ``f_globals``.

        ``__spec__`` is preferred because it keeps the real dotted name of
        modules run with ``python -m``. Scripts have no spec, so the import
        root is derived from ``__file__`` instead.
        """
        spec = module_globals.get("__spec__")
        if isinstance(spec, ModuleSpec):
            return cls.from_spec(spec)
        name = module_globals.get("__name__") or UNKNOWN
        origin = module_globals.get("__file__")
        is_package = "__path__" in module_globals
        return cls(name, origin, _import_root(name, origin, is_package), is_package)

    def __repr__(self) -> str:  # pragma: no cover
        return f"ModuleRef({self.name!r}, root={self.root!r})"


def find_spec_under(name: str, search_path: Iterable[str]) -> Optional[ModuleSpec]:
    """Locate ``name`` below ``search_path`` without importing anything.

    Each dotted level is looked up in the submodule search locations of the
    level above it.
    """
    parts = name.split(".")
    path: Optional[List[str]] = list(search_path)
    spec = None
    for depth in range(1, len(parts) + 1):
        if not path:
            return None
        spec = PathFinder.find_spec(".".join(parts[:depth]), path)
        if spec is None:
            return None
        locations = spec.submodule_search_locations
        path = list(locations) if locations is not None else None
    return spec


# --------------------------------------------------------------------------- #
# Resolution strategies
# --------------------------------------------------------------------------- #


class ClassResolutionStrategy(ABC):
    """A way of locating a module by name.

    Subclasses may raise from ``find()``; FallbackStrategy and ArtifactResolver
    treat any exception as "not found here".
    """

    @abstractmethod
    def find(self, name: str, context: Optional[str]) -> Optional[ModuleRef]:
        """Return a ModuleRef for ``name``, or None if it cannot be located.

        Args:
            name: Dotted module name taken from a frame.
            context: Import root of the previously resolved frame, if any.
        """


class ContextStrategy(ClassResolutionStrategy):
    """Look below the import root of the previously resolved frame."""

    def find(self, name: str, context: Optional[str]) -> Optional[ModuleRef]:
        if context is None:
            return None
        spec = find_spec_under(name, [context])
        return ModuleRef.from_spec(spec) if spec is not None else None


class GlobalStrategy(ClassResolutionStrategy):
    """Use modules that are already imported, then search ``sys.path``."""

    def find(self, name: str, context: Optional[str]) -> Optional[ModuleRef]:
        module = sys.modules.get(name)
        if module is not None:
            return ModuleRef.from_globals(vars(module))
        spec = find_spec_under(name, sys.path)
        return ModuleRef.from_spec(spec) if spec is not None else None


class OwnContextStrategy(ClassResolutionStrategy):
    """Look below the import root packtrace itself was loaded from."""

    def __init__(self) -> None:
        self._root = ModuleRef.from_globals(globals()).root

    def find(self, name: str, context: Optional[str]) -> Optional[ModuleRef]:
        if self._root is None:
            return None
        spec = find_spec_under(name, [self._root])
        return ModuleRef.from_spec(spec) if spec is not None else None


class FallbackStrategy(ClassResolutionStrategy):
    """Try each strategy in order and return the first hit."""

    def __init__(self, strategies: Sequence[ClassResolutionStrategy]) -> None:
        self.strategies = tuple(strategies)

    def find(self, name: str, context: Optional[str]) -> Optional[ModuleRef]:
        for strategy in self.strategies:
            try:
                ref = strategy.find(name, context)
            except Exception:
                logger.debug(
                    "lookup of %r via %s failed", name, type(strategy).__name__,
                    exc_info=True,
                )
                continue
            if ref is not None:
                return ref
        return None


def default_strategy() -> ClassResolutionStrategy:
    """Return the standard lookup order: hinted root, interpreter, packtrace."""
    return FallbackStrategy([ContextStrategy(), GlobalStrategy(), OwnContextStrategy()])


# --------------------------------------------------------------------------- #
# Artifact metadata
# --------------------------------------------------------------------------- #


def location_url(root: str) -> str:
    """Return the ``file:`` URL of an import root; directories end with ``/``."""
    url = pathlib.Path(root).absolute().as_uri()
    if os.path.isdir(root):
        url += "/"
    return url


def location_label(url: str) -> str:
    """Return the last path segment of ``url``.

    A trailing slash marks a directory, whose own name is used.

    Example:
        >>> location_label("file:///opt/app/lib/vendor.zip")
        'vendor.zip'
        >>> location_label("file:///opt/app/src/")
        'src'
    """
    path = url.replace("\\", "/")
    if path.endswith("/"):
        path = path[:-1]
    return path[path.rfind("/") + 1 :] or UNKNOWN


@functools.lru_cache(maxsize=None)
def _distributions_by_package() -> Mapping[str, List[str]]:
    return metadata.packages_distributions()


def distribution_version(module_name: str) -> Optional[str]:
    """Return the installed version of the distribution providing ``module_name``.

    Falls back to a ``__version__`` string on the top-level package when it is
    already imported.
    """
    top = module_name.split(".", 1)[0]
    for dist in _distributions_by_package().get(top, ()):
        try:
            return metadata.version(dist)
        except metadata.PackageNotFoundError:
            continue
    package = sys.modules.get(top)
    version = getattr(package, "__version__", None)
    return version if isinstance(version, str) else None


class ClassInfoCacheEntry:
    """A resolved ArtifactInfo and the lookup context that produced it."""

    __slots__ = ("info", "context")

    def __init__(self, info: ArtifactInfo, context: Optional[str]) -> None:
        self.info = info
        self.context = context


class ArtifactResolver:
    """Resolves module names to ArtifactInfo, memoising per name.

    One resolver serves a single trace build: its cache is never shared
    between renders, so it needs no locking.

    Example:
        >>> resolver = ArtifactResolver()
        >>> resolver.resolve("MonitorMixin::ConditionVariable")
        ArtifactInfo('?', '?', exact=False)
    """

    def __init__(self, strategy: Optional[ClassResolutionStrategy] = None) -> None:
        self._strategy = strategy if strategy is not None else default_strategy()
        self._cache: Dict[str, ClassInfoCacheEntry] = {}

    @property
    def strategy(self) -> ClassResolutionStrategy:
        return self._strategy

    def lookup(self, name: str, context: Optional[str] = None) -> ClassInfoCacheEntry:
        """Return the cached entry for ``name``, resolving it on first use.

        Args:
            name: Dotted module name taken from a frame.
            context: Import root of the previously resolved frame, tried first.
        """
        entry = self._cache.get(name)
        if entry is None:
            entry = self.describe(self._find(name, context), exact=False)
            self._cache[name] = entry
        return entry

    def resolve(self, name: str, context: Optional[str] = None) -> ArtifactInfo:
        return self.lookup(name, context).info

    def describe(self, ref: Optional[ModuleRef], exact: bool) -> ClassInfoCacheEntry:
        """Derive location and version for ``ref`` without touching the cache."""
        if ref is None:
            return ClassInfoCacheEntry(ArtifactInfo(exact=exact), None)

        location = UNKNOWN
        version = UNKNOWN
        try:
            if ref.root:
                location = location_label(location_url(ref.root))
        except Exception:
            logger.debug("no location for %r", ref.name, exc_info=True)
        try:
            version = distribution_version(ref.name) or UNKNOWN
        except Exception:
            logger.debug("no version for %r", ref.name, exc_info=True)
        return ClassInfoCacheEntry(ArtifactInfo(location, version, exact), ref.root)

    def _find(self, name: str, context: Optional[str]) -> Optional[ModuleRef]:
        if not is_valid_class_name(name):
            return None
        try:
            return self._strategy.find(name, context)
        except Exception:
            logger.debug("lookup of %r failed", name, exc_info=True)
            return None

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, name: str) -> bool:
        return name in self._cache
