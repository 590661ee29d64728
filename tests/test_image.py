import pytest

from fireflyrt.image import HEIGHT, WIDTH, ParsedImage, Rect, parse_swaps

IDENTITY = bytes([0x01, 0x23, 0x45, 0x67, 0x89, 0xAB, 0xCD, 0xEF])
NO_TRANSP = 255


class Frame:
    def __init__(self):
        self.pixels = {}
        self.dirty = False

    def set_pixel(self, point, color):
        x, y = point
        if 0 <= x < WIDTH and 0 <= y < HEIGHT:
            self.pixels[(x, y)] = color


def test_parse_swaps_identity():
    assert parse_swaps(NO_TRANSP, IDENTITY) == list(range(16))


def test_parse_swaps_transparent_and_missing():
    swaps = parse_swaps(1, bytes([0x01]))
    assert swaps[0] == 0
    assert swaps[1] is None
    assert all(c is None for c in swaps[2:])


def test_render_4bpp():
    frame = Frame()
    img = ParsedImage(bpp=4, bytes=bytes([0x12, 0x34]), width=2, swaps=IDENTITY, transp=NO_TRANSP)
    img.render((5, 7), frame)
    assert frame.pixels == {(5, 7): 1, (6, 7): 2, (5, 8): 3, (6, 8): 4}
    assert frame.dirty


def test_render_transparent_color_skipped():
    frame = Frame()
    img = ParsedImage(bpp=4, bytes=bytes([0x10, 0x02]), width=2, swaps=IDENTITY, transp=0)
    img.render((0, 0), frame)
    assert frame.pixels == {(0, 0): 1, (1, 1): 2}


def test_render_1bpp():
    frame = Frame()
    img = ParsedImage(bpp=1, bytes=bytes([0b10100000]), width=8, swaps=IDENTITY, transp=0)
    img.render((0, 0), frame)
    assert frame.pixels == {(0, 0): 1, (2, 0): 1}


def test_render_clipped_top():
    frame = Frame()
    img = ParsedImage(bpp=4, bytes=bytes([0x12, 0x34]), width=2, swaps=IDENTITY, transp=NO_TRANSP)
    img.render((0, -1), frame)
    assert frame.pixels == {(0, 0): 3, (1, 0): 4}


def test_render_clipped_right():
    frame = Frame()
    img = ParsedImage(bpp=4, bytes=bytes([0x12, 0x34]), width=2, swaps=IDENTITY, transp=NO_TRANSP)
    img.render((WIDTH - 1, 0), frame)
    assert frame.pixels == {(WIDTH - 1, 0): 1, (WIDTH - 1, 1): 3}


def test_render_fully_below_screen():
    frame = Frame()
    img = ParsedImage(bpp=4, bytes=bytes([0x12, 0x34]), width=2, swaps=IDENTITY, transp=NO_TRANSP)
    img.render((0, HEIGHT + 5), frame)
    assert frame.pixels == {}


def test_render_sub_image():
    frame = Frame()
    img = ParsedImage(
        bpp=4,
        bytes=bytes([0x01, 0x23, 0x45, 0x67]),
        width=4,
        swaps=IDENTITY,
        transp=NO_TRANSP,
        sub=Rect(1, 0, 2, 2),
    )
    img.render((10, 10), frame)
    assert frame.pixels == {(10, 10): 1, (11, 10): 2, (10, 11): 5, (11, 11): 6}
    assert frame.dirty


def test_sub_image_clipped_left():
    frame = Frame()
    img = ParsedImage(
        bpp=4,
        bytes=bytes([0x01, 0x23, 0x45, 0x67]),
        width=4,
        swaps=IDENTITY,
        transp=NO_TRANSP,
        sub=Rect(0, 0, 4, 1),
    )
    img.render((-2, 0), frame)
    assert frame.pixels == {(0, 0): 2, (1, 0): 3}


@pytest.mark.parametrize("bpp", [1, 2, 4])
def test_full_and_sub_render_agree(bpp):
    data = bytes([0x1B, 0x2C, 0x3D, 0x4E, 0x5F, 0x60, 0x71, 0x82])
    ppb = 8 // bpp
    width = 2 * ppb
    height = len(data) * ppb // width
    full, part = Frame(), Frame()
    ParsedImage(bpp, data, width, IDENTITY, NO_TRANSP).render((3, 4), full)
    ParsedImage(bpp, data, width, IDENTITY, NO_TRANSP, Rect(0, 0, width, height)).render((3, 4), part)
    assert full.pixels == part.pixels
    assert len(full.pixels) == width * height