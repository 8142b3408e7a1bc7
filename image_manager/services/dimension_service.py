"""Расчёт размеров для масштабирования, обрезки и водяных знаков.

Все функции чистые: без побочных эффектов и ввода-вывода.
"""
from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Tuple

from image_manager.models.image_model import Dimensions

logger = logging.getLogger(__name__)


class ResizeMode(Enum):
    FIT = "fit"    # вписать целиком (letterbox)
    FILL = "fill"  # покрыть целиком (под последующую обрезку)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fit_or_fill(source_w: int, source_h: int, target_w: int, target_h: int, mode: ResizeMode) -> Dimensions:
    """Размеры, в которые нужно отмасштабировать источник с сохранением пропорций.

    FILL даёт кадр не меньше целевого по обеим осям (обрезка по центру затем
    никогда не требует увеличения), FIT даёт кадр, целиком помещающийся в
    целевой.

    Raises:
        ValueError: если хотя бы один размер не положителен.
    """
    if min(source_w, source_h, target_w, target_h) <= 0:
        raise ValueError(
            f"Размеры должны быть положительными: {source_w}x{source_h} -> {target_w}x{target_h}"
        )

    source_ratio = source_w / source_h
    target_ratio = target_w / target_h

    if source_ratio > target_ratio:  # source is wider
        if mode is ResizeMode.FILL:
            result = Dimensions(round_half_up(target_h * source_ratio), target_h)
        else:
            result = Dimensions(target_w, round_half_up(target_w / source_ratio))
    elif source_ratio < target_ratio:  # source is taller
        if mode is ResizeMode.FILL:
            result = Dimensions(target_w, round_half_up(target_w / source_ratio))
        else:
            result = Dimensions(round_half_up(target_h * source_ratio), target_h)
    else:
        result = Dimensions(target_w, target_h)

    logger.debug(
        "%s %dx%d into %dx%d -> %dx%d",
        mode.value, source_w, source_h, target_w, target_h, result.width, result.height,
    )
    return result


def cover_crop_extent(
    source_w: float, source_h: float, box_w: float, box_h: float, relative: bool = False
) -> Tuple[float, float]:
    """Размер области источника, соответствующей рамке `box_w x box_h`.

    Если источник меньше рамки хотя бы по одной оси, рамка уменьшается на
    меньший из коэффициентов. Иначе рамка возвращается как есть, а при
    `relative=True` (режим "cover" водяного знака) тоже масштабируется на
    меньший коэффициент.

    При равных коэффициентах используется коэффициент по высоте (строгое `<`).
    """
    if min(source_w, source_h, box_w, box_h) <= 0:
        raise ValueError(
            f"Размеры должны быть положительными: {source_w}x{source_h}, рамка {box_w}x{box_h}"
        )
    w_ratio = source_w / box_w
    h_ratio = source_h / box_h
    scale = w_ratio if w_ratio < h_ratio else h_ratio

    if w_ratio < 1 or h_ratio < 1:
        return box_w * scale, box_h * scale
    if relative:
        return box_w * scale, box_h * scale
    return box_w, box_h


def center_origin(source_w: float, source_h: float, extent_w: float, extent_h: float) -> Tuple[int, int]:
    """Левый верхний угол области `extent`, отцентрированной в источнике."""
    return int(source_w / 2 - extent_w / 2), int(source_h / 2 - extent_h / 2)
