"""
Режим применения: upsert объектов в кластер в порядке зависимостей.

PipelineResource -> Task -> Pipeline -> PipelineRun (только create) -> PipelineStructure.
Первая ошибка возвращается сразу; уже применённые объекты не откатываются.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from exception import MaterializeError
from model import K8sModel, OwnerReference, PipelineActivityKey

from ..activity import PipelineActivityStore, activity_owner_reference
from ..builders.crds import GeneratedCRDs
from .kube import ClusterClient

logger = logging.getLogger(__name__)


def _with_uid(owners: Optional[List[OwnerReference]], kind: str, uid: str) -> Optional[List[OwnerReference]]:
    if not owners:
        return owners
    return [o.model_copy(update={"uid": uid}) if o.kind == kind else o for o in owners]


def _set_owner_uid(obj: K8sModel, kind: str, uid: str) -> K8sModel:
    metadata = obj.metadata.model_copy(update={"owner_references": _with_uid(obj.metadata.owner_references, kind, uid)})
    return obj.model_copy(update={"metadata": metadata})


class Applier:
    def __init__(
        self,
        client: ClusterClient,
        namespace: str,
        activity_store: Optional[PipelineActivityStore] = None,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.activity_store = activity_store
        self.logs: List[str] = []

    def upsert(self, obj: K8sModel) -> Dict[str, Any]:
        data = obj.to_dict()
        data["metadata"]["namespace"] = self.namespace
        try:
            existing = self.client.get(obj.kind, obj.name, self.namespace)
            if existing is None:
                return self.client.create(data, self.namespace)
            resource_version = (existing.get("metadata") or {}).get("resourceVersion")
            if resource_version:
                data["metadata"]["resourceVersion"] = resource_version
            return self.client.update(data, self.namespace)
        except Exception as e:
            raise MaterializeError(obj.kind, obj.name, self.namespace, str(e)) from e

    def create(self, obj: K8sModel) -> Dict[str, Any]:
        data = obj.to_dict()
        data["metadata"]["namespace"] = self.namespace
        try:
            return self.client.create(data, self.namespace)
        except Exception as e:
            raise MaterializeError(obj.kind, obj.name, self.namespace, str(e)) from e

    def apply(self, crds: GeneratedCRDs, activity_key: Optional[PipelineActivityKey] = None) -> GeneratedCRDs:
        tasks = list(crds.tasks)
        pipeline = crds.pipeline
        run = crds.run
        structure = crds.structure

        if activity_key is not None and self.activity_store is not None:
            try:
                _, activity_uid = self.activity_store.get_or_create(activity_key)
            except Exception as e:
                raise MaterializeError("PipelineActivity", activity_key.name, self.namespace, str(e)) from e
            owner = activity_owner_reference(activity_key, activity_uid)
            tasks = [_set_owner_uid(t, owner.kind, owner.uid) for t in tasks]
            pipeline = _set_owner_uid(pipeline, owner.kind, owner.uid)
            run = _set_owner_uid(run, owner.kind, owner.uid)
            structure = _set_owner_uid(structure, owner.kind, owner.uid)

        for resource in crds.resources:
            self.upsert(resource)
            self._log(f"upserted PipelineResource {resource.name}")

        for task in tasks:
            self.upsert(task)
            self._log(f"upserted Task {task.name}")

        applied = self.upsert(pipeline)
        self._log(f"upserted Pipeline {pipeline.name}")

        pipeline_uid = (applied.get("metadata") or {}).get("uid", "")
        run = _set_owner_uid(run, pipeline.kind, pipeline_uid)
        structure = _set_owner_uid(structure, pipeline.kind, pipeline_uid)

        self.create(run)
        self._log(f"created PipelineRun {run.name}")

        self.upsert(structure)
        self._log(f"created PipelineStructure {structure.name}")

        return GeneratedCRDs(
            pipeline=pipeline,
            tasks=tasks,
            resources=list(crds.resources),
            run=run,
            structure=structure,
            params=list(crds.params),
        )

    def _log(self, message: str) -> None:
        logger.info(message)
        self.logs.append(message)

