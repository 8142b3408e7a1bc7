"""Иерархия исключений библиотеки.

Все ошибки наследуют `ImageManagerError`; часть из них дополнительно
наследует встроенные типы (`ValueError`, `OSError`), чтобы вызывающий код мог
ловить их привычным способом.
"""
from __future__ import annotations


class ImageManagerError(Exception):
    """Базовая ошибка обработки изображений."""


class UnsupportedFormatError(ImageManagerError, ValueError):
    """Расширение не входит в набор поддерживаемых форматов."""

    def __init__(self, extension: str | None) -> None:
        super().__init__(f"Неподдерживаемый формат изображения: {extension!r}")
        self.extension = extension


class DecodeError(ImageManagerError, ValueError):
    """Кодек не смог разобрать байты изображения."""


class InvalidStateTransitionError(ImageManagerError):
    """Недопустимый переход между состояниями шифрования."""


class AlreadyEncryptedError(InvalidStateTransitionError):
    def __init__(self) -> None:
        super().__init__("Нельзя зашифровать уже зашифрованное изображение")


class AlreadyDecryptedError(InvalidStateTransitionError):
    def __init__(self) -> None:
        super().__init__("Нельзя расшифровать незашифрованное изображение")


class CipherSetupError(ImageManagerError):
    """Не удалось подготовить шифр (ключ, вектор инициализации)."""


class CryptoOperationError(ImageManagerError):
    """Сбой самой операции шифрования/расшифровки."""


class ResourceWriteError(ImageManagerError, OSError):
    """Не удалось создать каталог или записать файл."""


class NoImageLoadedError(ImageManagerError, RuntimeError):
    def __init__(self) -> None:
        super().__init__("Изображение не загружено")
