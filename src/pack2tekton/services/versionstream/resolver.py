"""
Пиннинг «плавающих» тегов docker-образов по version stream'у.

Version stream: каталог с файлами docker/<image>.yml, в каждом ключ version.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import yaml

from exception import CLIException

logger = logging.getLogger(__name__)


class VersionStreamError(CLIException):
    def __init__(self, image: str, reason: str, *args) -> None:
        super().__init__(*args, description=f"failed to resolve docker image version: {image}: {reason}")
        self.image = image


class DockerImageResolver(Protocol):
    def resolve_docker_image(self, image: str) -> str:
        ...


@dataclass(frozen=True)
class ImageResolution:
    """Итог поиска версии: либо образ из stream'а, либо исходная строка и причина."""

    image: str
    original: str
    fell_back: bool = False
    reason: str = ""


def _has_tag(image: str) -> bool:
    last = image.rsplit("/", 1)[-1]
    return ":" in last or "@" in last


class VersionStreamResolver:
    def __init__(self, versions_dir: Optional[Path] = None) -> None:
        self.versions_dir = Path(versions_dir) if versions_dir else None

    def resolve_docker_image(self, image: str) -> str:
        if not image or self.versions_dir is None or _has_tag(image):
            return image

        version_file = self.versions_dir / "docker" / f"{image}.yml"
        if not version_file.is_file():
            return image
        try:
            data = yaml.safe_load(version_file.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise VersionStreamError(image, str(e))
        version = str(data.get("version", "")).strip() if isinstance(data, dict) else ""
        if not version:
            raise VersionStreamError(image, f"no version in {version_file}")
        return f"{image}:{version}"


def resolve_image(resolver: Optional[DockerImageResolver], image: str) -> ImageResolution:
    """
    Ошибка поиска не фатальна: пишем предупреждение и оставляем исходный образ.
    """
    if resolver is None:
        return ImageResolution(image=image, original=image)
    try:
        resolved = resolver.resolve_docker_image(image)
    except Exception as e:
        logger.warning("failed to resolve docker image version: %s due to %s", image, e)
        return ImageResolution(image=image, original=image, fell_back=True, reason=str(e))
    return ImageResolution(image=resolved or image, original=image)
