"""
Доступ к кластеру через kubectl: get / list / create / replace объектов и чтение секретов.
"""
from __future__ import annotations

import asyncio
import base64
import json
import logging
import subprocess
from typing import Any, Dict, List, Optional, Protocol, Tuple

from exception import ScriptError
from model import PipelineActivityKey

from ..activity import pipeline_activity_manifest

logger = logging.getLogger(__name__)

# Kind -> ресурс kubectl
RESOURCES = {
    "PipelineResource": "pipelineresources.tekton.dev",
    "Task": "tasks.tekton.dev",
    "Pipeline": "pipelines.tekton.dev",
    "PipelineRun": "pipelineruns.tekton.dev",
    "PipelineStructure": "pipelinestructures.jenkins.io",
    "PipelineActivity": "pipelineactivities.jenkins.io",
    "Secret": "secrets",
}


class ClusterClient(Protocol):
    def get(self, kind: str, name: str, namespace: str) -> Optional[Dict[str, Any]]:
        ...

    def list(self, kind: str, namespace: str) -> List[Dict[str, Any]]:
        ...

    def create(self, obj: Dict[str, Any], namespace: str) -> Dict[str, Any]:
        ...

    def update(self, obj: Dict[str, Any], namespace: str) -> Dict[str, Any]:
        ...

    def get_secret(self, name: str, namespace: str) -> Optional[Dict[str, str]]:
        ...


class KubectlClient:
    def __init__(self, kubectl: str = "kubectl", context: str = "") -> None:
        self.kubectl = kubectl
        self.context = context

    def _run(self, args: List[str], stdin: Optional[str] = None) -> str:
        command = [self.kubectl]
        if self.context:
            command += ["--context", self.context]
        command += args
        logger.debug("running %s", " ".join(command))
        result = subprocess.run(command, input=stdin, capture_output=True, text=True)
        if result.returncode != 0:
            raise ScriptError(" ".join(command), output=result.stderr.strip(), returncode=result.returncode)
        return result.stdout

    def get(self, kind: str, name: str, namespace: str) -> Optional[Dict[str, Any]]:
        out = self._run(["get", RESOURCES.get(kind, kind), name, "-n", namespace, "-o", "json", "--ignore-not-found"])
        if not out.strip():
            return None
        return json.loads(out)

    def list(self, kind: str, namespace: str) -> List[Dict[str, Any]]:
        out = self._run(["get", RESOURCES.get(kind, kind), "-n", namespace, "-o", "json"])
        return json.loads(out).get("items") or []

    def create(self, obj: Dict[str, Any], namespace: str) -> Dict[str, Any]:
        out = self._run(["create", "-n", namespace, "-o", "json", "-f", "-"], stdin=json.dumps(obj))
        return json.loads(out)

    def update(self, obj: Dict[str, Any], namespace: str) -> Dict[str, Any]:
        out = self._run(["replace", "-n", namespace, "-o", "json", "-f", "-"], stdin=json.dumps(obj))
        return json.loads(out)

    def get_secret(self, name: str, namespace: str) -> Optional[Dict[str, str]]:
        secret = self.get("Secret", name, namespace)
        if secret is None:
            return None
        return {key: base64.b64decode(value).decode("utf-8") for key, value in (secret.get("data") or {}).items()}


class ClusterActivityStore:
    """PipelineActivity в кластере: находит запись по имени ключа или создаёт её."""

    def __init__(self, client: ClusterClient, namespace: str) -> None:
        self.client = client
        self.namespace = namespace

    def get_or_create(self, key: PipelineActivityKey) -> Tuple[Dict[str, Any], str]:
        activity = self.client.get("PipelineActivity", key.name, self.namespace)
        if activity is None:
            activity = self.client.create(pipeline_activity_manifest(key, self.namespace), self.namespace)
            logger.info("created PipelineActivity %s", key.name)
        uid = (activity.get("metadata") or {}).get("uid", "")
        return activity, uid


def activity_pipeline_id(activity: Dict[str, Any]) -> str:
    spec = activity.get("spec") or {}
    answer = spec.get("pipeline", "")
    if spec.get("context"):
        answer += f"/{spec['context']}"
    return answer


class ClusterBuildNumberIssuer:
    """
    Номера сборок по состоянию кластера: максимальный build среди PipelineActivity
    того же пайплайна плюс один. Запись активности создаётся при применении,
    поэтому следующий запуск видит уже занятый номер.
    """

    def __init__(self, client: ClusterClient, namespace: str) -> None:
        self.client = client
        self.namespace = namespace

    async def next_build_number(self, pipeline: str, timeout: Optional[float] = None) -> str:
        activities = await asyncio.to_thread(self.client.list, "PipelineActivity", self.namespace)
        highest = 0
        for activity in activities:
            if activity_pipeline_id(activity) != pipeline:
                continue
            build = str((activity.get("spec") or {}).get("build", "")).strip()
            if build.isdigit():
                highest = max(highest, int(build))
        return str(highest + 1)

    async def ready(self) -> bool:
        return True
