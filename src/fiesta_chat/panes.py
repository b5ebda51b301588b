"""Bounded, insertion-ordered set of active panes."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import ModelDescriptor, get_model

DEFAULT_MAX_PANES = 5


class PaneSet:
    """Active model bindings, unique by model id, at most ``max_panes`` long."""

    def __init__(
        self, pane_ids: Iterable[str] = (), max_panes: int = DEFAULT_MAX_PANES
    ) -> None:
        self.max_panes = max(1, max_panes)
        self._panes: dict[str, ModelDescriptor] = {}
        for pane_id in pane_ids:
            self.add(pane_id)

    def __contains__(self, pane_id: object) -> bool:
        return pane_id in self._panes

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._panes))

    def __len__(self) -> int:
        return len(self._panes)

    @property
    def is_full(self) -> bool:
        return len(self._panes) >= self.max_panes

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._panes)

    def models(self) -> list[ModelDescriptor]:
        return list(self._panes.values())

    def add(self, pane_id: str) -> bool:
        """Add a pane; already-present ids and additions past capacity are no-ops."""
        model = get_model(pane_id)
        if pane_id in self._panes or self.is_full:
            return False
        self._panes[pane_id] = model
        return True

    def remove(self, pane_id: str) -> bool:
        return self._panes.pop(pane_id, None) is not None
