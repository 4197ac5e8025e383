from pathlib import Path
import os
from tempfile import gettempdir

"""
Базовая настройка рабочих каталогов и внешних сервисов.

По умолчанию временные клоны складываются в системный /tmp/pack2tekton, кеш build pack'ов
в ~/.pack2tekton/packs. Всё можно переопределить переменными окружения:
PACK2TEKTON_WORKDIR, PACK2TEKTON_PACKS_DIR, PACK2TEKTON_VERSIONS_DIR, PACK2TEKTON_BUILDNUM_URL.
"""

BASE_TEMP_DIR = Path(
    os.getenv("PACK2TEKTON_WORKDIR", gettempdir())
) / "pack2tekton"

PACKS_CACHE_DIR = Path(
    os.getenv("PACK2TEKTON_PACKS_DIR", Path.home() / ".pack2tekton" / "packs")
)

# Каталог version stream'а (docker/<image>.yml); пусто: образы не пиннятся
VERSIONS_DIR = os.getenv("PACK2TEKTON_VERSIONS_DIR", "")

# Адрес сервиса выдачи номеров сборок; пусто: номер по PipelineActivity в кластере
BUILD_NUMBER_URL = os.getenv("PACK2TEKTON_BUILDNUM_URL", "")

PIPELINE_CONFIG_FILE_NAME = "pipeline.yaml"
PROJECT_CONFIG_FILE_NAME = "jenkins-x.yml"
VERSION_FILE_NAME = "VERSION"
