"""Multi-component application state.

A ``Context`` is a fixed, ordered set of named ``ContextContainer``
components.  The default layout is::

    schema, constants, manifest, flags, state, data, settings

``schema``, ``constants`` and ``manifest`` are read-only by convention and
are frozen once populated.  Paths addressed through a context start with
the component name, e.g. ``"data.player.name"``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .core.container import ContextContainer
from .validators import extract_first_segment_and_remainder

if TYPE_CHECKING:
    from .config_schema import ContextConfig

logger = logging.getLogger(__name__)

DEFAULT_COMPONENTS: tuple[str, ...] = (
    "schema",
    "constants",
    "manifest",
    "flags",
    "state",
    "data",
    "settings",
)
READ_ONLY_COMPONENTS: tuple[str, ...] = ("schema", "constants", "manifest")


class Context:
    """Named-component state tree.

    Args:
        initial: Mapping of component name to initial container value.
        components: Ordered component names.
        read_only_components: Components frozen after initial population.
        metadata: Context-level metadata.
        timestamp: Explicit creation time for every component.

    Raises:
        ValueError: If *initial* names a component not in *components*.
    """

    def __init__(
        self,
        initial: Mapping[str, Any] | None = None,
        *,
        components: Iterable[str] = DEFAULT_COMPONENTS,
        read_only_components: Iterable[str] = READ_ONLY_COMPONENTS,
        metadata: dict | None = None,
        timestamp: Any = None,
    ) -> None:
        names = tuple(components)
        initial = dict(initial or {})
        unknown = sorted(set(initial) - set(names))
        if unknown:
            raise ValueError(
                f"Unknown context components: {unknown}. "
                f"Valid components: {list(names)}"
            )

        read_only = set(read_only_components)
        self.metadata: dict = dict(metadata or {})
        self._components: dict[str, ContextContainer] = {
            name: ContextContainer(
                initial.get(name),
                frozen=name in read_only,
                timestamp=timestamp,
            )
            for name in names
        }

    @classmethod
    def from_components(
        cls,
        components: Mapping[str, ContextContainer],
        metadata: dict | None = None,
    ) -> Context:
        """Build a context around existing containers (no copying)."""
        context = cls(components=(), read_only_components=(), metadata=metadata)
        context._components = dict(components)
        return context

    @classmethod
    def from_config(
        cls,
        config: ContextConfig,
        initial: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Context:
        """Build a context with the layout described by a ``ContextConfig``."""
        return cls(
            initial,
            components=config.components,
            read_only_components=config.read_only_components,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def components(self) -> tuple[str, ...]:
        return tuple(self._components)

    def get_component(self, name: str) -> ContextContainer | None:
        """Return the component container, or ``None`` if absent."""
        return self._components.get(name)

    def __getitem__(self, name: str) -> ContextContainer:
        return self._components[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._components)

    # ------------------------------------------------------------------
    # Path access
    # ------------------------------------------------------------------

    def _split(self, path: str) -> tuple[ContextContainer | None, str]:
        name, remaining = extract_first_segment_and_remainder(path)
        return self._components.get(name), remaining

    def get_item(self, path: str) -> Any:
        """Return the value at ``"component.path"``, or ``None``."""
        component, remaining = self._split(path)
        if component is None:
            return None
        if not remaining:
            return component.value
        return component.get_item(remaining)

    def has_item(self, path: str) -> bool:
        component, remaining = self._split(path)
        if component is None:
            return False
        if not remaining:
            return True
        return component.has_item(remaining)

    def set_item(self, path: str, value: Any, **options: Any) -> Context:
        """Set ``"component.path"``; options are passed to ``set_item``.

        Raises:
            KeyError: If the component does not exist.
            ValueError: If *path* names only a component.
        """
        name, remaining = extract_first_segment_and_remainder(path)
        component = self._components.get(name)
        if component is None:
            raise KeyError(f"Unknown context component: '{name}'")
        if not remaining:
            raise ValueError(
                f"Path '{path}' must address an item inside a component"
            )
        component.set_item(remaining, value, **options)
        return self

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @property
    def created_at(self) -> datetime | None:
        if not self._components:
            return None
        return min(c.created_at for c in self._components.values())

    @property
    def modified_at(self) -> datetime | None:
        if not self._components:
            return None
        return max(c.modified_at for c in self._components.values())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Plain-dict projection of every component."""
        return {name: c.value for name, c in self._components.items()}

    def __repr__(self) -> str:
        return f"Context(components={list(self._components)!r})"
