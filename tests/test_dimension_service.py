from __future__ import annotations

import pytest

from image_manager.services.dimension_service import (
    ResizeMode,
    center_origin,
    cover_crop_extent,
    fit_or_fill,
    round_half_up,
)


@pytest.mark.parametrize("mode", list(ResizeMode))
@pytest.mark.parametrize(
    "source, target",
    [((1000, 500), (400, 200)), ((300, 300), (50, 50)), ((640, 480), (1280, 960))],
)
def test_same_ratio_returns_target(mode, source, target) -> None:
    assert fit_or_fill(*source, *target, mode) == target


def test_wider_source_fill_pins_height() -> None:
    assert fit_or_fill(1000, 500, 400, 400, ResizeMode.FILL) == (800, 400)


def test_wider_source_fit_pins_width() -> None:
    assert fit_or_fill(1000, 500, 400, 400, ResizeMode.FIT) == (400, 200)


def test_taller_source() -> None:
    assert fit_or_fill(500, 1000, 400, 400, ResizeMode.FILL) == (400, 800)
    assert fit_or_fill(500, 1000, 400, 400, ResizeMode.FIT) == (200, 400)


@pytest.mark.parametrize(
    "source, target",
    [((1000, 500), (400, 400)), ((333, 777), (120, 90)), ((1920, 1080), (100, 100)), ((7, 3), (5, 5))],
)
def test_fill_covers_and_fit_fits(source, target) -> None:
    filled = fit_or_fill(*source, *target, ResizeMode.FILL)
    fitted = fit_or_fill(*source, *target, ResizeMode.FIT)

    assert filled.width >= target[0] and filled.height >= target[1]
    assert fitted.width <= target[0] and fitted.height <= target[1]


def test_rounding_is_half_up() -> None:
    # 3 / (2/1) = 1.5 -> 2
    assert fit_or_fill(2, 1, 3, 3, ResizeMode.FIT) == (3, 2)
    assert round_half_up(4.5) == 5
    assert round_half_up(4.49) == 4


def test_non_positive_dimensions_rejected() -> None:
    with pytest.raises(ValueError):
        fit_or_fill(0, 100, 10, 10, ResizeMode.FIT)


def test_crop_extent_when_source_is_large_enough() -> None:
    assert cover_crop_extent(1000, 1000, 400, 300) == (400, 300)


def test_crop_extent_relative_uses_smaller_ratio() -> None:
    # ratios 2.5 and 3.33: the width ratio wins
    assert cover_crop_extent(1000, 1000, 400, 300, relative=True) == (1000, 750)


def test_crop_extent_downscales_when_source_is_smaller() -> None:
    # w_ratio = 0.25, h_ratio = 0.333
    assert cover_crop_extent(200, 200, 800, 600) == (200, 150)
    assert cover_crop_extent(200, 200, 800, 600, relative=True) == (200, 150)


def test_crop_extent_equal_ratios_use_height_ratio() -> None:
    width, height = cover_crop_extent(100, 50, 200, 100)
    assert (width, height) == (100, 50)


def test_center_origin() -> None:
    assert center_origin(1000, 1000, 400, 300) == (300, 350)


def test_center_origin_truncates() -> None:
    assert center_origin(101, 51, 50, 20) == (25, 15)


@pytest.mark.parametrize("args", [(100, 100, 0, 10), (100, 100, 10, -1), (0, 100, 10, 10)])
def test_crop_extent_rejects_non_positive_dimensions(args) -> None:
    with pytest.raises(ValueError):
        cover_crop_extent(*args)
