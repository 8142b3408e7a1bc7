"""Контроллер изображения: оркестрация сервисов над одним «текущим» изображением.

SOLID:
- SRP: класс управляет последовательностью расшифровка -> преобразование ->
  шифрование, без собственной логики обработки пикселей.
- DIP: зависит от сервисов как от ролей; конкретные реализации подставляются
  при создании.
Clean Code:
- Методы над `RasterImage` возвращают новый экземпляр; цепочечные методы
  перепривязывают текущее изображение и возвращают `self`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from image_manager.config import Settings
from image_manager.errors import NoImageLoadedError
from image_manager.models.image_model import ImageFormat, ImageMetadata, RasterImage, WatermarkPlacement
from image_manager.services.dimension_service import ResizeMode, center_origin, cover_crop_extent, fit_or_fill
from image_manager.services.encryption_service import EncryptionService
from image_manager.services.image_service import ImageService
from image_manager.services.metadata_service import MetadataService
from image_manager.services.watermark_service import WatermarkService

logger = logging.getLogger(__name__)


@dataclass
class ImageManager:
    """Держит секрет, флаг автоповорота и текущее изображение.

    Ответственности:
    - Загрузка и сохранение через `ImageService`.
    - Масштабирование и обрезка с расчётом размеров в `dimension_service`.
    - Водяные знаки через `WatermarkService`.
    - Шифрование через `EncryptionService`; зашифрованное изображение перед
      преобразованием расшифровывается и после него шифруется обратно.
    """
    secret: str = field(repr=False)
    autorotate: bool = False
    default_quality: int = 100

    _image_service: ImageService = field(default_factory=ImageService, repr=False)
    _metadata_service: MetadataService = field(default_factory=MetadataService, repr=False)
    _encryption_service: EncryptionService = field(init=False, repr=False)
    _watermark_service: WatermarkService = field(init=False, repr=False)
    _current_image: Optional[RasterImage] = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._encryption_service = EncryptionService(self.secret, self._image_service)
        self._watermark_service = WatermarkService(self._image_service)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageManager":
        return cls(
            secret=settings.secret.get_secret_value(),
            autorotate=settings.autorotate,
            default_quality=settings.default_quality,
        )

    @property
    def image(self) -> RasterImage:
        if self._current_image is None:
            raise NoImageLoadedError()
        return self._current_image

    # ---- Loading / saving ----
    def load_image(self, path: str | Path) -> "ImageManager":
        self._replace(self._image_service.load_image(path, autorotate=self.autorotate))
        return self

    def load_bytes(self, data: bytes, extension: str) -> "ImageManager":
        self._replace(self._image_service.load_bytes(data, extension, autorotate=self.autorotate))
        return self

    def create(self, width: int, height: int, extension: str = "png") -> "ImageManager":
        image_format = ImageFormat.from_extension(extension)
        self._replace(self._image_service.create(width, height, image_format, extension.lower().lstrip(".")))
        return self

    def save_image(
        self, path: str | Path, name: str, extension: Optional[str] = None, quality: Optional[int] = None
    ) -> bool:
        """Сохраняет текущее изображение; True, если записан зашифрованный контейнер."""
        if quality is None:
            quality = self.default_quality
        return self._image_service.save(self.image, path, name, extension, quality)

    def metadata(self, path: str | Path, original_name: Optional[str] = None) -> ImageMetadata:
        return self._metadata_service.read(path, original_name, autorotate=self.autorotate)

    # ---- Resize ----
    def resize_image(self, image: RasterImage, width: int, height: int, crop: bool = False) -> RasterImage:
        """Масштабирует изображение в рамку `width x height`.

        Без `crop` результат целиком вписан в рамку; с `crop` сначала
        покрывает рамку, затем обрезается по центру точно до `width x height`.
        """
        image, encrypt = self._ensure_decrypted(image)

        mode = ResizeMode.FILL if crop else ResizeMode.FIT
        dimensions = fit_or_fill(image.width, image.height, width, height, mode)
        resized = self._image_service.create(dimensions.width, dimensions.height, image.format, image.extension)
        self._image_service.resample(
            resized.pixels, image.pixels,
            0, 0, 0, 0,
            dimensions.width, dimensions.height,
            image.width, image.height,
        )
        image.release()
        image = resized

        if crop:
            image = self.crop_image(image, width, height)

        if encrypt:
            image = self.encrypt_image(image)
        return image

    def resize(self, width: int, height: int, crop: bool = False) -> "ImageManager":
        self._current_image = self.resize_image(self.image, width, height, crop)
        return self

    # ---- Crop ----
    def crop_image(self, image: RasterImage, width: int, height: int) -> RasterImage:
        """Вырезает центральную область и приводит её к `width x height`."""
        image, encrypt = self._ensure_decrypted(image)

        extent_w, extent_h = cover_crop_extent(image.width, image.height, width, height)
        origin_x, origin_y = center_origin(image.width, image.height, extent_w, extent_h)
        logger.debug("Crop %dx%d from (%d, %d), extent %.1fx%.1f", width, height, origin_x, origin_y, extent_w, extent_h)

        cropped = self._image_service.create(width, height, image.format, image.extension)
        self._image_service.resample(
            cropped.pixels, image.pixels,
            0, 0, origin_x, origin_y,
            width, height,
            extent_w, extent_h,
        )
        image.release()
        image = cropped

        if encrypt:
            image = self.encrypt_image(image)
        return image

    def crop(self, width: int, height: int) -> "ImageManager":
        self._current_image = self.crop_image(self.image, width, height)
        return self

    # ---- Encryption ----
    def encrypt_image(self, image: RasterImage) -> RasterImage:
        return self._encryption_service.encrypt(image)

    def encrypt(self) -> "ImageManager":
        self._current_image = self.encrypt_image(self.image)
        return self

    def decrypt_image(self, image: RasterImage) -> RasterImage:
        return self._encryption_service.decrypt(image)

    def decrypt(self) -> "ImageManager":
        self._current_image = self.decrypt_image(self.image)
        return self

    # ---- Watermark ----
    def add_image_watermark(self, image: RasterImage, parameters: Mapping[str, Any]) -> RasterImage:
        """Накладывает водяной знак из `parameters["file"]`.

        Args:
            image: Изображение-основа.
            parameters: `{"file": путь, "position": {"top", "left"}, "size": "cover" | "contain" | проценты}`.
        """
        placement = WatermarkPlacement.from_parameters(parameters)
        watermark = self._image_service.load_image(parameters["file"], autorotate=self.autorotate)
        try:
            watermark, _ = self._ensure_decrypted(watermark)
            image, encrypt = self._ensure_decrypted(image)
            try:
                image = self._watermark_service.apply(image, watermark, placement)
            except Exception:
                # the decrypted copy is ours; the caller's container is untouched
                if encrypt:
                    image.release()
                raise
        finally:
            watermark.release()

        if encrypt:
            image = self.encrypt_image(image)
        return image

    def add_watermark(self, parameters: Mapping[str, Any]) -> "ImageManager":
        self._current_image = self.add_image_watermark(self.image, parameters)
        return self

    # ---- Helpers ----
    def _ensure_decrypted(self, image: RasterImage) -> tuple[RasterImage, bool]:
        if image.encrypted:
            return self.decrypt_image(image), True
        return image, False

    def _replace(self, image: RasterImage) -> None:
        if self._current_image is not None:
            self._current_image.release()
        self._current_image = image
