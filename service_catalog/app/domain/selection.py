"""
Per-request selection state handed from the preload stage to route handlers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..versioning import VersionContext
from .translators import translate_image, translate_package


PACKAGE = "package"
IMAGE = "image"


class PreloadState(str, Enum):
    """Preload state machine: INIT -> SKIPPED | SINGLE_RESOLVED | LIST_RESOLVED -> DONE."""

    INIT = "init"
    SKIPPED = "skipped"
    SINGLE_RESOLVED = "single_resolved"
    LIST_RESOLVED = "list_resolved"
    DONE = "done"


_TRANSITIONS = {
    PreloadState.INIT: {PreloadState.SKIPPED, PreloadState.SINGLE_RESOLVED, PreloadState.LIST_RESOLVED},
    PreloadState.SKIPPED: {PreloadState.DONE},
    PreloadState.SINGLE_RESOLVED: {PreloadState.DONE},
    PreloadState.LIST_RESOLVED: {PreloadState.DONE},
    PreloadState.DONE: set(),
}


@dataclass
class ResolvedSelection:
    """At most one selected entity plus the candidates it was chosen from.

    ``candidate_list`` is ``None`` when no list was loaded (skipped or
    targeted by-id lookup); the selected entity then stands alone.
    """

    entity_type: str
    version: VersionContext
    selected_entity: Optional[Dict[str, Any]] = None
    candidate_list: Optional[List[Dict[str, Any]]] = None
    state: PreloadState = PreloadState.INIT
    outcome: PreloadState = PreloadState.INIT

    def advance(self, state: PreloadState) -> "ResolvedSelection":
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"invalid preload transition {self.state.value} -> {state.value}")
        self.state = state
        if state is not PreloadState.DONE:
            self.outcome = state
        return self

    def skip(self) -> "ResolvedSelection":
        return self.advance(PreloadState.SKIPPED)

    def resolve_single(self, entity: Optional[Dict[str, Any]]) -> "ResolvedSelection":
        self.selected_entity = entity
        return self.advance(PreloadState.SINGLE_RESOLVED)

    def resolve_list(
        self,
        candidates: List[Dict[str, Any]],
        selected: Optional[Dict[str, Any]] = None,
    ) -> "ResolvedSelection":
        if selected is not None and not any(c is selected for c in candidates):
            raise ValueError("selected entity must come from the candidate list")
        self.candidate_list = candidates
        self.selected_entity = selected
        return self.advance(PreloadState.LIST_RESOLVED)

    def finish(self) -> "ResolvedSelection":
        return self.advance(PreloadState.DONE)

    @property
    def has_selection(self) -> bool:
        return self.selected_entity is not None

    def translate(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        """Shape ``entity`` for this request's version context."""
        if self.entity_type == PACKAGE:
            return translate_package(self.version, entity)
        return translate_image(self.version, entity, self.selected_entity)
