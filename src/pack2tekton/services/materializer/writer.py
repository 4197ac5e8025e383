"""
Режим записи: каждый сгенерированный объект в свой YAML-файл, без обращений к кластеру.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from model import PipelineActivityKey, list_of

from ..activity import pipeline_activity_manifest
from ..builders.crds import GeneratedCRDs

logger = logging.getLogger(__name__)

PIPELINE_FILE = "pipeline.yml"
PIPELINE_RUN_FILE = "pipeline-run.yml"
STRUCTURE_FILE = "structure.yml"
TASKS_FILE = "tasks.yml"
RESOURCES_FILE = "resources.yml"
ACTIVITY_FILE = "pipelineActivity.yml"


def _write_yaml(path: Path, document: Dict[str, Any]) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
    logger.info("generated %s", path)
    return path


def write_output(
    folder: str | Path,
    crds: GeneratedCRDs,
    activity_key: Optional[PipelineActivityKey] = None,
) -> List[Path]:
    """
    Пишет pipeline.yml, pipeline-run.yml, structure.yml, tasks.yml, resources.yml
    и pipelineActivity.yml в folder, создавая каталог при необходимости.
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)

    written = [
        _write_yaml(folder / PIPELINE_FILE, crds.pipeline.to_dict()),
        _write_yaml(folder / PIPELINE_RUN_FILE, crds.run.to_dict()),
        _write_yaml(folder / STRUCTURE_FILE, crds.structure.to_dict()),
        _write_yaml(folder / TASKS_FILE, list_of("Task", crds.tasks)),
        _write_yaml(folder / RESOURCES_FILE, list_of("PipelineResource", crds.resources)),
    ]
    if activity_key is not None:
        written.append(_write_yaml(folder / ACTIVITY_FILE, pipeline_activity_manifest(activity_key)))
    return written
