"""Lifecycle state machine for surface status transitions."""

from __future__ import annotations

from .errors import InvalidTransitionError
from .surfaces import DeliverableSurface, SurfaceKind, SurfaceStatus

_TRANSITIONS: dict[SurfaceStatus, frozenset[SurfaceStatus]] = {
    SurfaceStatus.draft: frozenset({SurfaceStatus.active, SurfaceStatus.archived}),
    SurfaceStatus.active: frozenset({SurfaceStatus.paused, SurfaceStatus.archived}),
    SurfaceStatus.paused: frozenset({SurfaceStatus.active, SurfaceStatus.archived}),
    SurfaceStatus.archived: frozenset(),
}

# Tours have no archived state; they are paused or deleted instead.
_ARCHIVABLE_KINDS = frozenset({SurfaceKind.survey, SurfaceKind.carousel, SurfaceKind.message})

REMOVABLE_STATUSES = frozenset({SurfaceStatus.draft, SurfaceStatus.paused, SurfaceStatus.archived})

ACTION_TARGETS = {
    "activate": SurfaceStatus.active,
    "pause": SurfaceStatus.paused,
    "archive": SurfaceStatus.archived,
}


def _label(surface: DeliverableSurface) -> str:
    return surface.kind.value.capitalize()


class LifecycleStateMachine:
    """Validate status transitions; never mutates the surface itself."""

    def target_for(self, surface: DeliverableSurface, action: str) -> SurfaceStatus:
        """Return the status ``action`` moves ``surface`` to, or raise."""
        if action not in ACTION_TARGETS:
            raise InvalidTransitionError(f"Unknown lifecycle action {action!r}")
        target = ACTION_TARGETS[action]
        self.assert_transition(surface, target)
        if target is SurfaceStatus.active:
            self.assert_deliverable_content(surface)
        return target

    def assert_transition(self, surface: DeliverableSurface, target: SurfaceStatus) -> None:
        current = surface.status
        if current is target:
            raise InvalidTransitionError(f"{_label(surface)} is already {current.value}.")
        if target is SurfaceStatus.archived and surface.kind not in _ARCHIVABLE_KINDS:
            raise InvalidTransitionError(f"{_label(surface)} surfaces cannot be archived.")
        if target not in _TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot transition {surface.kind.value} from {current.value} to {target.value}."
            )

    def assert_deliverable_content(self, surface: DeliverableSurface) -> None:
        if surface.kind is SurfaceKind.survey:
            if not surface.content.get("questions"):
                raise InvalidTransitionError("Survey must have at least one question")
        elif surface.kind is SurfaceKind.carousel:
            screens = surface.content.get("screens") or []
            if not screens:
                raise InvalidTransitionError("Carousel requires at least one screen.")
            for index, screen in enumerate(screens, start=1):
                if not isinstance(screen, dict) or not (screen.get("title") or screen.get("body")):
                    raise InvalidTransitionError(f"Screen {index} must include a title or body.")

    def assert_removable(self, surface: DeliverableSurface) -> None:
        if surface.status not in REMOVABLE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot delete an {surface.status.value} {surface.kind.value}; pause it first."
            )
