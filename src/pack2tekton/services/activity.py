"""
PipelineActivity: ключ записи активности и ссылка-владелец на неё.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import settings
from model import OwnerReference, PipelineActivityKey

from ..models import GitRepository
from .builders.crds import to_resource_name

logger = logging.getLogger(__name__)


class PipelineActivityStore(Protocol):
    def get_or_create(self, key: PipelineActivityKey) -> Tuple[Dict[str, Any], str]:
        """Возвращает (activity, uid)."""
        ...


def generate_activity_key(git: GitRepository, branch: str, build: str, context: str = "") -> PipelineActivityKey:
    name = to_resource_name(f"{git.organisation}-{git.name}-{branch}", build)
    logger.info("PipelineActivity for %s", name)
    return PipelineActivityKey(
        name=name,
        pipeline=f"{git.organisation}/{git.name}/{branch}",
        build=build,
        gitUrl=git.url,
        gitOwner=git.organisation,
        gitRepository=git.name,
        gitBranch=branch,
        context=context or None,
    )


def activity_owner_reference(key: PipelineActivityKey, uid: Optional[str] = None) -> OwnerReference:
    return OwnerReference(
        apiVersion=settings.JENKINS_API_VERSION,
        kind="PipelineActivity",
        name=key.name,
        uid=uid or "",
    )


def pipeline_activity_manifest(key: PipelineActivityKey, namespace: str = "") -> Dict[str, Any]:
    """Начальная запись PipelineActivity, чтобы UI увидел запуск как можно раньше."""
    spec = key.to_dict()
    name = spec.pop("name")
    metadata: Dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    return {
        "apiVersion": settings.JENKINS_API_VERSION,
        "kind": "PipelineActivity",
        "metadata": metadata,
        "spec": spec,
    }
