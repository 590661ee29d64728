"""The system menu shown over a running app."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from .message import InputState

LINE_HEIGHT = 12
_PAD_THRESHOLD = 50


class MenuItemKind(enum.Enum):
    CUSTOM = "custom"
    SCREENSHOT = "screenshot"
    RESTART = "restart"
    QUIT = "quit"


_LABELS = {
    MenuItemKind.SCREENSHOT: "take screenshot",
    MenuItemKind.RESTART: "restart app",
    MenuItemKind.QUIT: "exit app",
}


@dataclass(frozen=True)
class MenuItem:
    """A menu entry; custom entries carry the app's index and name."""

    kind: MenuItemKind
    index: int = 0
    name: str = ""

    @property
    def label(self) -> str:
        if self.kind is MenuItemKind.CUSTOM:
            return self.name
        return _LABELS[self.kind]

    def __str__(self) -> str:
        return self.label


class Menu:
    """Tracks the menu state and turns button presses into selections."""

    def __init__(self) -> None:
        self.app_items: list[MenuItem] = []
        self.sys_items: tuple[MenuItem, ...] = (
            MenuItem(MenuItemKind.SCREENSHOT),
            MenuItem(MenuItemKind.RESTART),
            MenuItem(MenuItemKind.QUIT),
        )
        self.selected = 0
        self._active = False
        self.rendered = False
        self._menu_pressed = False
        self._select_pressed = False
        self._was_released = False
        self._down_pressed = False
        self._up_pressed = False

    @property
    def items(self) -> list[MenuItem]:
        """All items in display order: custom first, then system ones."""
        return [*self.app_items, *self.sys_items]

    def add(self, index: int, name: str) -> None:
        """Add a custom menu item."""
        self.app_items.append(MenuItem(MenuItemKind.CUSTOM, index, name))

    def remove(self, index: int) -> None:
        """Remove all custom menu items with the given index."""
        self.app_items = [item for item in self.app_items if item.index != index]

    def handle_input(self, input_state: Optional[InputState]) -> Optional[MenuItem]:
        """Process one frame of input; return the item chosen this frame, if any."""
        state = input_state if input_state is not None else InputState()
        self._handle_menu_button(state.menu)
        if not self._active:
            return None
        self._handle_pad(state)
        return self._handle_select(state.s or state.e)

    def _handle_menu_button(self, pressed: bool) -> None:
        if self._active:
            if self._was_released and self._menu_pressed and not pressed:
                self._active = False
            if not pressed:
                self._was_released = True
        elif not self._menu_pressed and pressed:
            self._active = True
            self.rendered = False
            self._was_released = False
        self._menu_pressed = pressed

    def _handle_pad(self, state: InputState) -> None:
        if state.pad is None:
            self._down_pressed = False
            self._up_pressed = False
            return
        y = state.pad[1]
        if y < -_PAD_THRESHOLD:
            self._down_pressed = False
            if not self._up_pressed and self.selected < len(self.app_items) + len(self.sys_items) - 1:
                self.selected += 1
                self.rendered = False
            self._up_pressed = True
        if y > _PAD_THRESHOLD:
            self._up_pressed = False
            if not self._down_pressed and self.selected > 0:
                self.selected -= 1
                self.rendered = False
            self._down_pressed = True

    def _handle_select(self, pressed: bool) -> Optional[MenuItem]:
        if not self._select_pressed:
            self._select_pressed = pressed
            return None
        if pressed:
            return None
        self._select_pressed = False
        self._active = False
        items = self.items
        if self.selected < len(items):
            return items[self.selected]
        return None

    @property
    def active(self) -> bool:
        """True while the menu is shown and the app is paused."""
        return self._active

    def activate(self) -> None:
        """Open the menu."""
        self._active = True

    def deactivate(self) -> None:
        """Close the menu."""
        self._active = False