"""Загрузка, создание, ресэмплинг и сохранение изображений через Pillow.

Принципы:
- SRP: класс отвечает только за работу с растровым кодеком (Pillow);
  геометрия и шифрование вынесены в отдельные сервисы.
- OCP: новые источники (стрим, URL) можно добавить отдельными методами.
- LSP/ISP: возвращает `RasterImage` с предсказуемыми полями; интерфейс узкий и конкретный.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from image_manager.errors import DecodeError, ResourceWriteError, UnsupportedFormatError
from image_manager.models.image_model import ImageFormat, RasterImage
from image_manager.services.dimension_service import round_half_up

logger = logging.getLogger(__name__)

# area-averaged resampling, the closest match to a box-filtered copy
RESAMPLING = Image.Resampling.BOX


class ImageService:
    def load_image(self, file_path: str | Path, autorotate: bool = False) -> RasterImage:
        """Загружает изображение с диска.

        Args:
            file_path: Путь до файла изображения (jpg/jpeg/png/gif/wdImage).
            autorotate: Повернуть JPEG согласно EXIF Orientation.

        Returns:
            `RasterImage` с пикселями в режиме RGB (JPEG) или RGBA (PNG/GIF),
            либо зашифрованный контейнер для `.wdImage`.

        Raises:
            UnsupportedFormatError: если расширение не поддерживается.
            FileNotFoundError: если путь не существует или не указывает на файл.
            DecodeError: если файл не распознан как изображение.
        """
        path = Path(file_path)
        image_format = ImageFormat.from_extension(path.suffix)
        if not path.exists() or not path.is_file():
            raise FileNotFoundError(f"Файл не найден: {path}")

        extension = path.suffix.lower().lstrip(".")
        if image_format is ImageFormat.ENCRYPTED:
            logger.info("Loaded encrypted container %s", path)
            return RasterImage(
                format=ImageFormat.ENCRYPTED,
                width=None,
                height=None,
                payload=path.read_bytes(),
                extension=image_format.extension,
            )

        try:
            with Image.open(path) as source:
                pixels = self._normalize(source, image_format, autorotate)
        except (UnidentifiedImageError, OSError) as exc:
            raise DecodeError(f"Файл не является изображением: {path}") from exc

        logger.info("Loaded %s (%dx%d)", path, pixels.width, pixels.height)
        return RasterImage(
            format=image_format,
            width=pixels.width,
            height=pixels.height,
            pixels=pixels,
            extension=extension,
            plain_format=image_format,
        )

    def load_bytes(self, data: bytes, extension: str, autorotate: bool = False) -> RasterImage:
        """То же, что `load_image`, но из буфера в памяти."""
        image_format = ImageFormat.from_extension(extension)
        if image_format is ImageFormat.ENCRYPTED:
            return RasterImage(
                format=ImageFormat.ENCRYPTED,
                width=None,
                height=None,
                payload=bytes(data),
                extension=image_format.extension,
            )
        pixels = self.decode(data, image_format, autorotate)
        return RasterImage(
            format=image_format,
            width=pixels.width,
            height=pixels.height,
            pixels=pixels,
            extension=extension.lower().lstrip("."),
            plain_format=image_format,
        )

    def decode(self, data: bytes, image_format: ImageFormat, autorotate: bool = False) -> Image.Image:
        """Декодирует байты в пиксельный буфер в режиме, подходящем формату."""
        try:
            with Image.open(io.BytesIO(data)) as source:
                return self._normalize(source, image_format, autorotate)
        except (UnidentifiedImageError, OSError) as exc:
            raise DecodeError("Байты не являются изображением") from exc

    def encode_jpeg(self, pixels: Image.Image, quality: int = 100) -> bytes:
        buffer = io.BytesIO()
        self._prepare_for(pixels, ImageFormat.JPEG).save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()

    def create(self, width: int, height: int, image_format: ImageFormat, extension: Optional[str] = None) -> RasterImage:
        """Создаёт пустое изображение: чёрное для JPEG, прозрачное для PNG/GIF."""
        if image_format is ImageFormat.ENCRYPTED:
            raise UnsupportedFormatError(image_format.value)
        if image_format.has_alpha:
            pixels = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        else:
            pixels = Image.new("RGB", (width, height), (0, 0, 0))
        return RasterImage(
            format=image_format,
            width=width,
            height=height,
            pixels=pixels,
            extension=extension or image_format.extension,
            plain_format=image_format,
        )

    def resample(
        self,
        destination: Image.Image,
        source: Image.Image,
        dst_x: int,
        dst_y: int,
        src_x: float,
        src_y: float,
        dst_w: int,
        dst_h: int,
        src_w: float,
        src_h: float,
        blend: bool = False,
    ) -> None:
        """Копирует область источника в приёмник с масштабированием.

        Область `(src_x, src_y, src_w, src_h)` источника масштабируется до
        `dst_w x dst_h` и вставляется в приёмник в точке `(dst_x, dst_y)`.
        При `blend=True` (приёмник RGBA) область накладывается поверх
        приёмника с учётом альфа-канала (`alpha_composite`).
        Приёмник изменяется на месте.
        """
        box = self._clip_box(source, src_x, src_y, src_w, src_h)
        if box is None or dst_w <= 0 or dst_h <= 0:
            logger.debug("Nothing to copy: src box %s, dst %dx%d", box, dst_w, dst_h)
            return
        patch = source.resize((dst_w, dst_h), RESAMPLING, box=box)
        try:
            if blend and destination.mode == "RGBA":
                # full-size layer clips negative offsets before compositing
                layer = Image.new("RGBA", destination.size, (0, 0, 0, 0))
                layer.paste(patch, (dst_x, dst_y))
                destination.alpha_composite(layer)
                layer.close()
            else:
                destination.paste(patch, (dst_x, dst_y))
        finally:
            patch.close()

    def save(
        self,
        image: RasterImage,
        path: str | Path,
        name: str,
        extension: Optional[str] = None,
        quality: int = 100,
    ) -> bool:
        """Сохраняет изображение в `path/name.<ext>`, создавая каталог при необходимости.

        Returns:
            True, если записан зашифрованный контейнер (расширение всегда
            `wdImage`), False для обычного изображения.

        Raises:
            UnsupportedFormatError: если расширение не поддерживается.
            ResourceWriteError: если каталог или файл не удалось записать.
        """
        directory = Path(path)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResourceWriteError(f"Не удалось создать каталог: {directory}") from exc

        if image.encrypted:
            target = directory / f"{name}.{ImageFormat.ENCRYPTED.extension}"
            try:
                target.write_bytes(image.payload)
            except OSError as exc:
                logger.exception("Writing encrypted container failed")
                raise ResourceWriteError(f"Не удалось записать файл: {target}") from exc
            logger.info("Saved encrypted container %s", target)
            return True

        extension = (extension or image.extension or image.format.extension).lower().lstrip(".")
        image_format = ImageFormat.from_extension(extension)
        if image_format is ImageFormat.ENCRYPTED:
            # pixels are only written as a container after encrypt()
            raise UnsupportedFormatError(extension)

        target = directory / f"{name}.{extension}"
        pixels = self._prepare_for(image.pixels, image_format)
        try:
            pixels.save(target, format=image_format.pil_format, **self._save_params(image_format, quality))
        except OSError as exc:
            logger.exception("Writing image failed")
            raise ResourceWriteError(f"Не удалось записать файл: {target}") from exc
        finally:
            if pixels is not image.pixels:
                pixels.close()
        logger.info("Saved %s", target)
        return False

    # ---- Helpers ----
    def _normalize(self, source: Image.Image, image_format: ImageFormat, autorotate: bool) -> Image.Image:
        if autorotate and image_format is ImageFormat.JPEG:
            rotated = ImageOps.exif_transpose(source)
            if rotated is not None and rotated is not source:
                converted = rotated.convert("RGB")
                rotated.close()
                return converted
        return source.convert("RGBA" if image_format.has_alpha else "RGB")

    @staticmethod
    def _prepare_for(pixels: Image.Image, image_format: ImageFormat) -> Image.Image:
        # JPEG can't carry alpha or palettes
        if image_format is ImageFormat.JPEG and pixels.mode != "RGB":
            return pixels.convert("RGB")
        return pixels

    @staticmethod
    def _save_params(image_format: ImageFormat, quality: int) -> dict:
        if image_format is ImageFormat.JPEG:
            return {"quality": quality}
        if image_format is ImageFormat.PNG:
            return {"compress_level": png_compress_level(quality)}
        return {}

    @staticmethod
    def _clip_box(
        source: Image.Image, x: float, y: float, w: float, h: float
    ) -> Optional[Tuple[float, float, float, float]]:
        left = max(0.0, float(x))
        upper = max(0.0, float(y))
        right = min(float(source.width), float(x) + w)
        lower = min(float(source.height), float(y) + h)
        if right <= left or lower <= upper:
            return None
        return left, upper, right, lower


def png_compress_level(quality: int) -> int:
    """Переводит качество 0..100 в уровень сжатия PNG 9..0."""
    return round_half_up(9 - (9 * quality) / 100)
