"""Шифрование изображений в контейнер `base64(IV ‖ ciphertext)` (PyCryptodome, AES-CBC).

Перед шифрованием пиксели всегда сериализуются в JPEG с качеством 100, поэтому
расшифровка возвращает пиксели, восстановленные из JPEG, а не исходные байты.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from typing import Optional

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from image_manager.errors import (
    AlreadyDecryptedError,
    AlreadyEncryptedError,
    CipherSetupError,
    CryptoOperationError,
    DecodeError,
)
from image_manager.models.image_model import ImageFormat, RasterImage
from image_manager.services.image_service import ImageService

logger = logging.getLogger(__name__)

SERIALIZATION_QUALITY = 100


def derive_key(secret: str | bytes) -> bytes:
    """32-байтовый ключ AES-256: первые 32 hex-символа SHA-256 от секрета."""
    if not secret:
        raise CipherSetupError("Секрет не задан")
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return hashlib.sha256(secret).hexdigest()[:32].encode("ascii")


class EncryptionService:
    """Переключает `RasterImage` между пикселями и зашифрованным контейнером.

    Оба метода возвращают новый экземпляр; при ошибке исходное изображение
    остаётся нетронутым.
    """

    def __init__(self, secret: str | bytes, image_service: Optional[ImageService] = None) -> None:
        self._key = derive_key(secret)
        self._image_service = image_service or ImageService()

    @property
    def iv_size(self) -> int:
        return AES.block_size

    def encrypt(self, image: RasterImage) -> RasterImage:
        if image.encrypted:
            raise AlreadyEncryptedError()

        serialized = self._image_service.encode_jpeg(image.pixels, quality=SERIALIZATION_QUALITY)
        iv = self._new_iv()
        try:
            cipher = AES.new(self._key, AES.MODE_CBC, iv=iv)
            ciphertext = cipher.encrypt(_zero_pad(serialized, AES.block_size))
        except (ValueError, TypeError) as exc:
            logger.exception("Image encryption failed")
            raise CryptoOperationError(f"Не удалось зашифровать изображение: {exc}") from exc

        payload = base64.b64encode(iv + ciphertext.rstrip(b"\0"))
        image.release()
        logger.info("Encrypted %dx%d image (%d bytes)", image.width, image.height, len(payload))
        return RasterImage(
            format=ImageFormat.ENCRYPTED,
            width=image.width,
            height=image.height,
            payload=payload,
            extension=image.extension,
            plain_format=image.format,
        )

    def decrypt(self, image: RasterImage) -> RasterImage:
        if not image.encrypted:
            raise AlreadyDecryptedError()

        try:
            raw = base64.b64decode(image.payload.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CryptoOperationError("Контейнер повреждён: некорректный base64") from exc
        iv, ciphertext = raw[:self.iv_size], raw[self.iv_size:]
        if len(iv) != self.iv_size:
            raise CryptoOperationError("Контейнер повреждён: нет вектора инициализации")

        try:
            cipher = AES.new(self._key, AES.MODE_CBC, iv=iv)
            # trailing NULs of the last block were trimmed on encryption
            plaintext = cipher.decrypt(_zero_pad(ciphertext, AES.block_size)).rstrip(b"\0")
        except (ValueError, TypeError) as exc:
            logger.exception("Image decryption failed")
            raise CryptoOperationError(f"Не удалось расшифровать изображение: {exc}") from exc

        plain_format = image.plain_format
        try:
            pixels = self._image_service.decode(plaintext, plain_format)
        except DecodeError as exc:
            raise CryptoOperationError("Неверный секрет или повреждённый контейнер") from exc

        width = image.width or pixels.width
        height = image.height or pixels.height
        extension = image.extension
        if extension is None or ImageFormat.from_extension(extension) is ImageFormat.ENCRYPTED:
            extension = plain_format.extension
        logger.info("Decrypted image to %dx%d %s", width, height, plain_format.value)
        return RasterImage(
            format=plain_format,
            width=width,
            height=height,
            pixels=pixels,
            extension=extension,
            plain_format=plain_format,
        )

    def _new_iv(self) -> bytes:
        try:
            iv = get_random_bytes(self.iv_size)
        except Exception as exc:
            raise CipherSetupError(f"Не удалось сгенерировать вектор инициализации: {exc}") from exc
        if len(iv) != self.iv_size:
            raise CipherSetupError("Неверная длина вектора инициализации")
        return iv


def _zero_pad(data: bytes, block_size: int) -> bytes:
    remainder = len(data) % block_size
    if remainder == 0:
        return data
    return data + b"\0" * (block_size - remainder)
