import pytest

from vbcore.vb import Mode3D
from vbcore.vip_video import (
    FRAMEBUFFER_SIZE,
    Surface,
    VideoOutput,
    brightness_levels,
    hli_table,
    make_color,
)

WHITE = make_color(255, 255, 255)
RED = make_color(255, 0, 0)
BLUE = make_color(0, 0, 255)


def _fb_with(column, byte):
    fb = bytearray(FRAMEBUFFER_SIZE)
    fb[64 * column] = byte
    return fb


def _video(mode, reverse=False, prescale=1, sep=0, non_rgb=False):
    video = VideoOutput()
    video.set_3d_mode(mode, reverse, prescale, sep)
    video.recalc_tables(non_rgb)
    video.recalc_brightness(255, 0, 0, 0, 0)
    return video


@pytest.mark.parametrize("r,g,b", [(1, 2, 3), (255, 0, 128), (0, 0, 0)])
def test_make_color_components_round_trip(r, g, b):
    color = make_color(r, g, b)
    assert ((color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF) == (r, g, b)


def test_make_color_masks_to_bytes():
    assert make_color(0x1FF, 0x100, 0x2AA) == make_color(0xFF, 0x00, 0xAA)


def test_hli_table_prescale_one_is_identity():
    assert hli_table(1) == list(range(256))


def test_hli_table_repeats_each_pixel():
    table = hli_table(3)
    for byte in range(256):
        entry = table[byte]
        for i in range(4):
            pixel = (byte >> (2 * i)) & 3
            for ps in range(3):
                assert (entry >> (2 * (i * 3 + ps))) & 3 == pixel


def test_brightness_levels_all_dark():
    assert brightness_levels(0, 0, 0, 0, 0) == [0, 0, 0, 0]


@pytest.mark.parametrize("args", [(255, 0, 0, 0, 0), (10, 20, 30, 5, 3), (255, 255, 255, 255, 255)])
def test_brightness_levels_bounds(args):
    levels = brightness_levels(*args)
    assert levels[0] == 0
    assert all(0 <= level <= 255 for level in levels)


def test_brightness_levels_saturate():
    assert brightness_levels(255, 0, 0, 0, 0)[1] == 255


@pytest.mark.parametrize(
    "mode,prescale,sep,size",
    [
        (Mode3D.ANAGLYPH, 1, 0, (384, 224)),
        (Mode3D.CSCOPE, 1, 0, (512, 384)),
        (Mode3D.SIDEBYSIDE, 1, 10, (778, 224)),
        (Mode3D.VLI, 2, 0, (1536, 224)),
        (Mode3D.HLI, 2, 0, (384, 896)),
    ],
)
def test_display_size(mode, prescale, sep, size):
    video = VideoOutput()
    video.set_3d_mode(mode, False, prescale, sep)
    assert video.display_size() == size


def test_setters_mark_settings_dirty():
    video = VideoOutput()
    video.settings_dirty = False
    video.set_default_color(0x00FF00)
    assert video.settings_dirty
    video.settings_dirty = False
    video.set_anaglyph_colors(0xFF0000, 0x00FFFF)
    assert video.settings_dirty


def test_set_3d_mode_rejects_zero_prescale():
    with pytest.raises(ValueError):
        VideoOutput().set_3d_mode(Mode3D.HLI, False, 0, 0)


def test_anaglyph_fast_combines_eyes():
    video = _video(Mode3D.ANAGLYPH)
    surface = Surface()
    video.copy_column(surface, _fb_with(0, 0x01), 0, 0, True)
    assert surface.pixel(0, 0) == RED
    assert surface.pixel(0, 1) == 0
    video.copy_column(surface, _fb_with(0, 0x01), 0, 1, True)
    assert surface.pixel(0, 0) == RED | BLUE


def test_anaglyph_inactive_left_clears():
    video = _video(Mode3D.ANAGLYPH)
    surface = Surface()
    surface.pixels = [WHITE] * len(surface.pixels)
    video.copy_column(surface, _fb_with(2, 0x01), 2, 0, False)
    assert surface.pixel(2, 0) == 0
    assert surface.pixel(3, 0) == WHITE


def test_overlapping_colors_use_slow_path():
    video = VideoOutput()
    video.set_anaglyph_colors(0xFF0000, 0xFF00FF)
    video.recalc_tables(False)
    video.recalc_brightness(255, 0, 0, 0, 0)
    surface = Surface()
    video.copy_column(surface, _fb_with(0, 0x01), 0, 0, True)
    assert not any(surface.pixels)
    video.copy_column(surface, bytearray(FRAMEBUFFER_SIZE), 0, 1, True)
    assert surface.pixel(0, 0) == RED
    assert surface.pixel(0, 1) == 0


def test_non_rgb_forces_slow_path():
    video = _video(Mode3D.ANAGLYPH, non_rgb=True)
    surface = Surface()
    video.copy_column(surface, _fb_with(0, 0x01), 0, 0, True)
    assert not any(surface.pixels)
    video.copy_column(surface, _fb_with(0, 0x01), 0, 1, True)
    assert surface.pixel(0, 0) == RED | BLUE


def test_cscope_positions():
    video = _video(Mode3D.CSCOPE)
    surface = Surface()
    video.copy_column(surface, _fb_with(0, 0x01), 0, 0, True)
    assert surface.pixel(16, 383) == WHITE
    assert surface.pixel(17, 383) == 0
    video.copy_column(surface, _fb_with(0, 0x01), 0, 1, True)
    assert surface.pixel(512 - 16 - 1, 0) == WHITE


def test_cscope_reverse_swaps_sides():
    video = _video(Mode3D.CSCOPE, reverse=True)
    surface = Surface()
    video.copy_column(surface, _fb_with(0, 0x01), 0, 0, True)
    assert surface.pixel(512 - 16 - 1, 0) == WHITE
    assert surface.pixel(16, 383) == 0


def test_side_by_side_separation():
    video = _video(Mode3D.SIDEBYSIDE, sep=10)
    surface = Surface(800, 224)
    video.copy_column(surface, _fb_with(0, 0x01), 0, 1, True)
    assert surface.pixel(384 + 10, 0) == WHITE
    assert surface.pixel(0, 0) == 0


def test_vli_prescale_interleaves_columns():
    video = _video(Mode3D.VLI, prescale=2)
    surface = Surface(1536, 224)
    video.copy_column(surface, _fb_with(1, 0x01), 1, 0, True)
    assert surface.pixel(4, 0) == WHITE
    assert surface.pixel(6, 0) == WHITE
    assert surface.pixel(5, 0) == 0


def test_hli_right_eye_uses_odd_rows():
    video = _video(Mode3D.HLI)
    surface = Surface(384, 448)
    video.copy_column(surface, _fb_with(0, 0x01), 0, 1, True)
    assert surface.pixel(0, 1) == WHITE
    assert surface.pixel(0, 0) == 0
    assert surface.pixel(0, 3) == 0


def test_hli_large_prescale_repeats_rows():
    video = _video(Mode3D.HLI, prescale=5)
    surface = Surface(384, 448 * 5)
    video.copy_column(surface, _fb_with(0, 0x01), 0, 0, True)
    assert [surface.pixel(0, y) for y in range(0, 10, 2)] == [WHITE] * 5
    assert surface.pixel(0, 10) == 0


def test_copy_column_rejects_short_buffer():
    video = VideoOutput()
    with pytest.raises(ValueError):
        video.copy_column(Surface(), bytes(10), 0, 0, True)


def test_copy_column_rejects_bad_column():
    video = VideoOutput()
    with pytest.raises(IndexError):
        video.copy_column(Surface(), bytearray(FRAMEBUFFER_SIZE), 384, 0, True)


def test_surface_rejects_bad_size_and_pixel():
    with pytest.raises(ValueError):
        Surface(0, 10)
    with pytest.raises(IndexError):
        Surface(4, 4).pixel(4, 0)