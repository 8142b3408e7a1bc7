"""Наложение водяного знака на изображение.

Режимы размера:
- cover: знак растягивается на весь холст, из знака берётся область,
  пропорциональная холсту и смещённая согласно позиции;
- contain: знак вписывается в холст и смещается согласно позиции;
- процент: как contain, но размер умножается на n/100;
- без размера: знак рисуется в исходном размере.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from PIL import Image

from image_manager.models.image_model import RasterImage, WatermarkPlacement, WatermarkSize
from image_manager.services.dimension_service import ResizeMode, cover_crop_extent, fit_or_fill
from image_manager.services.image_service import ImageService

logger = logging.getLogger(__name__)


@contextmanager
def alpha_blending(primary: Image.Image, watermark: Image.Image) -> Iterator[Tuple[Image.Image, Image.Image]]:
    """Временно переводит оба буфера в RGBA для корректного смешивания.

    Отдаёт рабочие копии `(canvas, overlay)`. После выхода копия знака
    закрывается; холст вызывающий код возвращает в исходный режим сам
    через `restore_mode`.
    """
    canvas = primary.convert("RGBA")
    overlay = watermark.convert("RGBA")
    try:
        yield canvas, overlay
    finally:
        overlay.close()


def restore_mode(canvas: Image.Image, mode: str) -> Image.Image:
    if canvas.mode == mode:
        return canvas
    restored = canvas.convert(mode)
    canvas.close()
    return restored


class WatermarkService:
    def __init__(self, image_service: Optional[ImageService] = None) -> None:
        self._image_service = image_service or ImageService()

    def apply(self, primary: RasterImage, watermark: RasterImage, placement: WatermarkPlacement) -> RasterImage:
        """Накладывает `watermark` на `primary` и возвращает новое изображение.

        Буфер `primary` освобождается; `watermark` остаётся во владении
        вызывающего кода.
        """
        width, height = primary.dimensions
        wm_width, wm_height = watermark.dimensions
        top, left = placement.top, placement.left
        original_mode = primary.pixels.mode

        with alpha_blending(primary.pixels, watermark.pixels) as (canvas, overlay):
            if placement.size is WatermarkSize.COVER:
                # cover dimensions are the same as crop dimensions
                extent_w, extent_h = cover_crop_extent(wm_width, wm_height, width, height, relative=True)
                self._image_service.resample(
                    canvas, overlay,
                    0, 0,
                    int((wm_width - extent_w) * left), int((wm_height - extent_h) * top),
                    width, height,
                    extent_w, extent_h,
                    blend=True,
                )
            elif placement.size is WatermarkSize.ORIGINAL:
                self._image_service.resample(
                    canvas, overlay,
                    int((width - wm_width) * left), int((height - wm_height) * top),
                    0, 0,
                    wm_width, wm_height,
                    wm_width, wm_height,
                    blend=True,
                )
            else:
                extent_w, extent_h = fit_or_fill(wm_width, wm_height, width, height, ResizeMode.FIT)
                if placement.size is WatermarkSize.PERCENTAGE:
                    extent_w *= placement.percentage / 100
                    extent_h *= placement.percentage / 100
                self._image_service.resample(
                    canvas, overlay,
                    int((width - extent_w) * left), int((height - extent_h) * top),
                    0, 0,
                    int(extent_w), int(extent_h),
                    wm_width, wm_height,
                    blend=True,
                )

        logger.debug(
            "Watermark %s at top=%.2f left=%.2f on %dx%d", placement.size.value, top, left, width, height
        )
        pixels = restore_mode(canvas, original_mode)
        primary.release()
        return RasterImage(
            format=primary.format,
            width=width,
            height=height,
            pixels=pixels,
            extension=primary.extension,
            plain_format=primary.plain_format,
        )
