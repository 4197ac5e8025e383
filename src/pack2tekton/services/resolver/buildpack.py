"""
Config Resolver: находит pipeline.yaml выбранного build pack'а и накладывает на него
локальный jenkins-x.yml проекта.

Работает только с уже полученными каталогами (клонирование делает git_module).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

import settings
from exception import BuildPackNotFoundError, ConfigurationError, MissingOptionError

from ...config import PIPELINE_CONFIG_FILE_NAME, PROJECT_CONFIG_FILE_NAME
from ...models import CompileOptions, PipelineConfig, ProjectConfig

logger = logging.getLogger(__name__)

NO_BUILD_PACK = "none"


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to load YAML file {path}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML file {path} must contain a mapping")
    return data


def _validation_messages(e: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]


def load_pipeline_config(path: Path) -> PipelineConfig:
    """Читает pipeline.yaml build pack'а."""
    data = _load_yaml(path)
    try:
        return PipelineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"failed to load build pack pipeline YAML: {path}: " + "; ".join(_validation_messages(e))
        )


def load_project_config(project_dir: Path, context: str = "") -> Tuple[ProjectConfig, Path]:
    """
    jenkins-x-<context>.yml, если задан контекст и такой файл есть, иначе jenkins-x.yml.
    Отсутствие файла: пустая конфигурация.
    """
    file_name = project_dir / PROJECT_CONFIG_FILE_NAME
    if context:
        context_file = project_dir / f"jenkins-x-{context}.yml"
        if context_file.exists():
            file_name = context_file

    if not file_name.exists():
        return ProjectConfig(), file_name

    data = _load_yaml(file_name)
    try:
        return ProjectConfig.model_validate(data), file_name
    except ValidationError as e:
        raise ConfigurationError(
            f"failed to load project config {file_name}: " + "; ".join(_validation_messages(e))
        )


def resolve_build_pack_coordinates(
    options: CompileOptions, project_config: ProjectConfig
) -> Tuple[str, str]:
    """URL и ref build pack'а: флаг CLI > jenkins-x.yml > значения по умолчанию."""
    url = options.build_pack_url or project_config.build_pack_git_url or settings.DEFAULT_BUILD_PACK_URL
    ref = options.build_pack_ref or project_config.build_pack_git_ref or settings.DEFAULT_BUILD_PACK_REF
    if not url:
        raise MissingOptionError("url")
    if not ref:
        raise MissingOptionError("ref")
    return url, ref


def resolve_pipeline_config(
    pack: str,
    packs_dir: Optional[Path],
    project_config: ProjectConfig,
    project_config_file: Path,
) -> PipelineConfig:
    """
    Итоговый PipelineConfig: pipeline.yaml pack'а, расширенный локальной конфигурацией.
    Для pack'а "none" используется только конфигурация проекта.
    """
    local = project_config.pipeline_config
    if pack != NO_BUILD_PACK:
        if packs_dir is None:
            raise BuildPackNotFoundError(pack, "<unresolved>")
        pack_dir = packs_dir / pack
        pipeline_file = pack_dir / PIPELINE_CONFIG_FILE_NAME
        if not pipeline_file.is_file():
            raise BuildPackNotFoundError(pack, str(pack_dir))
        pack_config = load_pipeline_config(pipeline_file)
        logger.info("Loaded build pack %s from %s", pack, pipeline_file)
        if local is None:
            return pack_config
        logger.info("Extending build pack %s with %s", pack, project_config_file)
        return local.extend(pack_config)

    if local is None:
        raise ConfigurationError(f"failed to find PipelineConfig in file {project_config_file}")
    return local


def validate_build_packs(packs_dir: Path) -> Dict[str, List[str]]:
    """
    Проверяет pipeline.yaml всех pack'ов в каталоге.
    Возвращает {pack: [ошибки]} (пустой список: pack валиден); при ошибках бросает исключение.
    """
    if not packs_dir.is_dir():
        raise ConfigurationError(f"packs directory {packs_dir} does not exist or is not a directory")

    results: Dict[str, List[str]] = {}
    for pack_dir in sorted(p for p in packs_dir.iterdir() if p.is_dir()):
        pipeline_file = pack_dir / PIPELINE_CONFIG_FILE_NAME
        if not pipeline_file.is_file():
            continue
        try:
            data = _load_yaml(pipeline_file)
            PipelineConfig.model_validate(data)
            results[pack_dir.name] = []
            logger.info("SUCCESS: %s", pack_dir.name)
        except ConfigurationError as e:
            results[pack_dir.name] = [e.description]
        except ValidationError as e:
            results[pack_dir.name] = _validation_messages(e)
        if results[pack_dir.name]:
            logger.error("FAILURE: %s", pack_dir.name)
            for message in results[pack_dir.name]:
                logger.error("\t%s", message)

    if any(results.values()):
        raise ConfigurationError("one or more build packs failed validation")
    return results
