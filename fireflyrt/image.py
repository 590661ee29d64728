"""Drawing of packed palette images onto the frame buffer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

WIDTH = 240
HEIGHT = 160

_MASKS = {1: 0b1, 2: 0b11}


class DrawTarget(Protocol):
    dirty: bool

    def set_pixel(self, point: tuple[int, int], color: int) -> None: ...


@dataclass(frozen=True)
class Rect:
    """A rectangle given by its top-left corner and size."""

    x: int
    y: int
    width: int
    height: int


def _mask(bpp: int) -> int:
    return _MASKS.get(bpp, 0b1111)


def _rotate_left(byte: int, bits: int) -> int:
    return ((byte << bits) | (byte >> (8 - bits))) & 0xFF


def _parse_color(transp: int, nibble: int) -> Optional[int]:
    return None if nibble == transp else nibble


def parse_swaps(transp: int, swaps: bytes) -> list[Optional[int]]:
    """Map each of the 16 color indices to a palette color, or None if transparent.

    Every swap byte holds two colors, the high nibble first.
    Indices without a swap byte are transparent.
    """
    result: list[Optional[int]] = []
    for pos in range(8):
        if pos < len(swaps):
            byte = swaps[pos]
            result.append(_parse_color(transp, (byte >> 4) & 0b1111))
            result.append(_parse_color(transp, byte & 0b1111))
        else:
            result.extend((None, None))
    return result


@dataclass
class ParsedImage:
    """An image with 1, 2 or 4 bits per pixel, ready to be drawn."""

    bpp: int
    bytes: bytes
    width: int
    swaps: bytes
    transp: int
    sub: Optional[Rect] = None

    def render(self, point: tuple[int, int], frame: DrawTarget) -> None:
        """Draw the image (or its sub-region) with the top-left corner at ``point``."""
        if self.sub is not None:
            self._draw_sub(point, self.sub, frame)
        else:
            self._draw_full(point, frame)

    def _draw_full(self, point: tuple[int, int], frame: DrawTarget) -> None:
        ppb = 8 // self.bpp
        swaps = parse_swaps(self.transp, self.swaps)
        px, py = point
        image = bytes(self.bytes)

        # Cut the part above the screen.
        if py < 0:
            start = (-py * self.width) // ppb
            if start > len(image):
                return
            image = image[start:]
            py = 0

        # Cut the part below the screen.
        height = (len(image) * ppb) // self.width
        bottom_y = py + height
        if bottom_y > HEIGHT:
            new_height = height - (bottom_y - HEIGHT)
            end = (new_height * self.width) // ppb
            if end < 0 or end > len(image):
                return
            image = image[:end]

        skip = 0
        right_x = point[0] + self.width
        if right_x > WIDTH:
            skip_px = right_x - WIDTH
            skip = skip_px // ppb
            right_x = WIDTH + skip_px % ppb

        left_x = point[0]
        if left_x < 0:
            skip_px = -left_x
            skip += skip_px // ppb
            left_x = -(skip_px % ppb)

        mask = _mask(self.bpp)
        i = 0
        while i < len(image):
            byte = image[i]
            for _ in range(ppb):
                byte = _rotate_left(byte, self.bpp)
                color = swaps[byte & mask]
                if color is not None:
                    frame.set_pixel((px, py), color)
                px += 1
                if px >= right_x:
                    px = left_x
                    py += 1
                    i += skip
            i += 1
        frame.dirty = True

    def _draw_sub(self, point: tuple[int, int], sub: Rect, frame: DrawTarget) -> None:
        bpp = self.bpp
        ppb = 8 // bpp
        px, py = point
        top, left = sub.y, sub.x
        width, height = sub.width, sub.height

        if py < 0:
            top -= py
            height += py
            py = 0

        img_height = len(self.bytes) * ppb // self.width
        height = min(height, img_height - top)
        oob_bottom = (py + height) - HEIGHT
        if oob_bottom > 0:
            height -= oob_bottom
            if height <= 0:
                return
        bottom = top + height
        if bottom < 0:
            return

        if px < 0:
            left -= px
            width += px
            px = 0

        width = min(width, self.width - left)
        # The right bound is measured from the vertical position, as the device does.
        oob_right = (py + width) - WIDTH
        if oob_right > 0:
            width -= oob_right
            if width <= 0:
                return
        right = left + width
        if right < 0:
            return

        mask = _mask(bpp)
        swaps = parse_swaps(self.transp, self.swaps)
        for iy in range(top, bottom):
            for ix in range(left, right):
                offset = iy * self.width + ix
                if offset < 0:
                    raise IndexError("sub-image offset out of range")
                byte = self.bytes[offset // ppb]
                shift = 8 - bpp * (1 + offset % ppb)
                color = swaps[(byte >> shift) & mask]
                if color is not None:
                    frame.set_pixel((px + ix - left, py + iy - top), color)
        frame.dirty = True