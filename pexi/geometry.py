"""
Window geometry controller.

Tracks the floating window's position and size and implements the
drag / resize / reset transitions.  The controller is toolkit-agnostic: the
Tk layer in :mod:`pexi.app` translates pointer and ``<Configure>`` events into
calls on :class:`GeometryController` and applies the resulting geometry.

State machine
-------------
* ``idle``      → ``dragging`` on pointer-down over the header (not over a
  header button).
* ``dragging``  → ``idle`` on any pointer-up.

External resize events are independent of the drag state.
"""

import logging
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger("pexi")

# ---------------------------------------------------------------------------
# Tuneable constants
# ---------------------------------------------------------------------------

#: Width of a freshly placed (or reset) window.
DEFAULT_WIDTH: int = 800

#: Initial height is ``max(MIN_INITIAL_HEIGHT, HEIGHT_RATIO * viewport)``.
MIN_INITIAL_HEIGHT: int = 400
HEIGHT_RATIO: float = 0.7

#: Size floor applied to every resize.
MIN_WIDTH: int = 500
MIN_HEIGHT: int = 400

IDLE = "idle"
DRAGGING = "dragging"


@dataclass(frozen=True)
class Viewport:
    """Dimensions of the area the window lives in (the screen)."""

    width: int
    height: int


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass
class WindowGeometry:
    """Position (top-left) and size of the window, in pixels."""

    x: float
    y: float
    width: float
    height: float

    def copy(self) -> "WindowGeometry":
        return WindowGeometry(self.x, self.y, self.width, self.height)


def compute_initial_geometry(viewport: Viewport) -> WindowGeometry:
    """Return the default geometry: fixed width, centered in *viewport*."""
    width = DEFAULT_WIDTH
    height = max(MIN_INITIAL_HEIGHT, viewport.height * HEIGHT_RATIO)
    return WindowGeometry(
        x=(viewport.width - width) / 2,
        y=(viewport.height - height) / 2,
        width=width,
        height=height,
    )


class GeometryController:
    """Owns one :class:`WindowGeometry` and the drag state of a window."""

    def __init__(self, viewport: Viewport) -> None:
        self._viewport = viewport
        self._geometry = compute_initial_geometry(viewport)
        self._dragging = False
        self._drag_offset = Point(0, 0)
        self._restore: WindowGeometry | None = None  # set while maximized
        self._listeners: list[Callable[[WindowGeometry], None]] = []

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def geometry(self) -> WindowGeometry:
        """A copy of the current geometry."""
        return self._geometry.copy()

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    @property
    def state(self) -> str:
        return DRAGGING if self._dragging else IDLE

    @property
    def is_maximized(self) -> bool:
        return self._restore is not None

    def tk_geometry(self) -> str:
        """Format the geometry as a Tk ``WxH+X+Y`` string."""
        g = self._geometry
        return (
            f"{round(g.width)}x{round(g.height)}"
            f"+{round(g.x)}+{round(g.y)}"
        )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(
        self, callback: Callable[[WindowGeometry], None],
    ) -> Callable[[], None]:
        """Call *callback* after every geometry mutation.

        Returns a zero-argument function that removes the subscription.
        """
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _changed(self) -> None:
        snapshot = self.geometry
        for callback in list(self._listeners):
            callback(snapshot)

    # ------------------------------------------------------------------
    # Drag
    # ------------------------------------------------------------------

    def begin_drag(
        self, pointer: Point, window_origin: Point, *, on_control: bool = False,
    ) -> bool:
        """Start dragging; returns *False* when the press was on a control."""
        if on_control:
            return False
        self._drag_offset = Point(
            pointer.x - window_origin.x, pointer.y - window_origin.y,
        )
        self._dragging = True
        log.debug("[GEO] drag start, offset=(%.0f, %.0f)",
                  self._drag_offset.x, self._drag_offset.y)
        return True

    def on_pointer_move(self, pointer: Point) -> bool:
        """Move the window with the pointer.  Ignored unless dragging."""
        if not self._dragging:
            return False
        x = pointer.x - self._drag_offset.x
        y = pointer.y - self._drag_offset.y
        if x == self._geometry.x and y == self._geometry.y:
            return False
        # Position is unbounded; the window may leave the screen.
        self._geometry.x = x
        self._geometry.y = y
        self._restore = None
        self._changed()
        return True

    def end_drag(self) -> None:
        if self._dragging:
            log.debug("[GEO] drag end at (%.0f, %.0f)",
                      self._geometry.x, self._geometry.y)
        self._dragging = False

    # ------------------------------------------------------------------
    # Resize / reset
    # ------------------------------------------------------------------

    def on_external_resize(self, width: float, height: float) -> bool:
        """Accept a size reported by the toolkit.

        The size is updated only when the *rounded* dimensions differ from
        the current ones; applying a size makes the toolkit report it back,
        and without this check the two would feed each other forever.
        """
        width = max(MIN_WIDTH, width)
        height = max(MIN_HEIGHT, height)
        if (round(width) == round(self._geometry.width)
                and round(height) == round(self._geometry.height)):
            return False
        self._geometry.width = width
        self._geometry.height = height
        self._restore = None
        log.debug("[GEO] resized to %dx%d", round(width), round(height))
        self._changed()
        return True

    def set_viewport(self, viewport: Viewport) -> None:
        self._viewport = viewport

    def reset(self, viewport: Viewport | None = None) -> None:
        """Restore the default centered geometry."""
        if viewport is not None:
            self._viewport = viewport
        self._dragging = False
        self._restore = None
        self._geometry = compute_initial_geometry(self._viewport)
        log.debug("[GEO] reset to %s", self.tk_geometry())
        self._changed()

    def toggle_maximize(self) -> None:
        """Fill the viewport, or restore the geometry saved by the last call."""
        if self._restore is not None:
            self._geometry = self._restore
            self._restore = None
        else:
            self._restore = self._geometry.copy()
            self._geometry = WindowGeometry(
                0, 0, self._viewport.width, self._viewport.height,
            )
        self._dragging = False
        self._changed()
