"""
Объекты, которые генерирует компилятор: Task, Pipeline, PipelineResource,
PipelineRun (Tekton v1alpha1) и PipelineStructure / PipelineActivity (jenkins.io/v1).

Поля названы так же, как в схеме кластера (camelCase через alias), чтобы
to_dict() отдавал ровно то, что примет API-сервер.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from settings import JENKINS_API_VERSION, TEKTON_API_VERSION


class K8sModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OwnerReference(K8sModel):
    api_version: str = Field(alias="apiVersion")
    kind: str
    name: str
    uid: str = ""


class ObjectMeta(K8sModel):
    name: str = ""
    namespace: Optional[str] = None
    labels: Optional[Dict[str, str]] = None
    owner_references: Optional[List[OwnerReference]] = Field(default=None, alias="ownerReferences")


class EnvVar(K8sModel):
    name: str
    value: Optional[str] = None
    # secretKeyRef / configMapKeyRef и т.п. оставляем как есть
    value_from: Optional[Dict[str, Any]] = Field(default=None, alias="valueFrom")


class VolumeMount(K8sModel):
    name: str
    mount_path: str = Field(alias="mountPath")
    read_only: bool = Field(default=False, alias="readOnly")


class KeyToPath(K8sModel):
    key: str
    path: str


class SecretVolumeSource(K8sModel):
    secret_name: str = Field(alias="secretName")
    items: List[KeyToPath] = Field(default_factory=list)


class ObjectFieldSelector(K8sModel):
    field_path: str = Field(alias="fieldPath")


class DownwardAPIVolumeFile(K8sModel):
    path: str
    field_ref: ObjectFieldSelector = Field(alias="fieldRef")


class DownwardAPIVolumeSource(K8sModel):
    items: List[DownwardAPIVolumeFile] = Field(default_factory=list)


class Volume(K8sModel):
    name: str
    secret: Optional[SecretVolumeSource] = None
    downward_api: Optional[DownwardAPIVolumeSource] = Field(default=None, alias="downwardAPI")


class Container(K8sModel):
    """Один шаг Task'а (контейнер)."""

    name: str
    image: str = ""
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    working_dir: Optional[str] = Field(default=None, alias="workingDir")
    env: List[EnvVar] = Field(default_factory=list)
    volume_mounts: List[VolumeMount] = Field(default_factory=list, alias="volumeMounts")

    def full_command(self) -> str:
        return " ".join(self.command + self.args)


class Param(K8sModel):
    name: str
    value: str = ""


class ParamSpec(K8sModel):
    name: str
    description: str = ""
    default: str = ""


class TaskResource(K8sModel):
    name: str
    type: str = "git"
    target_path: Optional[str] = Field(default=None, alias="targetPath")


class Inputs(K8sModel):
    resources: List[TaskResource] = Field(default_factory=list)
    params: List[ParamSpec] = Field(default_factory=list)


class TaskSpec(K8sModel):
    inputs: Optional[Inputs] = None
    steps: List[Container] = Field(default_factory=list)
    volumes: List[Volume] = Field(default_factory=list)


class Task(K8sModel):
    api_version: str = Field(default=TEKTON_API_VERSION, alias="apiVersion")
    kind: str = "Task"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: TaskSpec = Field(default_factory=TaskSpec)

    @property
    def name(self) -> str:
        return self.metadata.name


class TaskRef(K8sModel):
    name: str


class PipelineTaskInputResource(K8sModel):
    name: str
    resource: str


class PipelineTaskResources(K8sModel):
    inputs: List[PipelineTaskInputResource] = Field(default_factory=list)


class PipelineTask(K8sModel):
    name: str
    task_ref: TaskRef = Field(alias="taskRef")
    params: List[Param] = Field(default_factory=list)
    resources: Optional[PipelineTaskResources] = None
    run_after: Optional[List[str]] = Field(default=None, alias="runAfter")


class PipelineDeclaredResource(K8sModel):
    name: str
    type: str = "git"


class PipelineSpec(K8sModel):
    resources: List[PipelineDeclaredResource] = Field(default_factory=list)
    params: List[ParamSpec] = Field(default_factory=list)
    tasks: List[PipelineTask] = Field(default_factory=list)


class Pipeline(K8sModel):
    api_version: str = Field(default=TEKTON_API_VERSION, alias="apiVersion")
    kind: str = "Pipeline"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PipelineSpec = Field(default_factory=PipelineSpec)

    @property
    def name(self) -> str:
        return self.metadata.name


class PipelineResourceSpec(K8sModel):
    type: str = "git"
    params: List[Param] = Field(default_factory=list)


class PipelineResource(K8sModel):
    api_version: str = Field(default=TEKTON_API_VERSION, alias="apiVersion")
    kind: str = "PipelineResource"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PipelineResourceSpec = Field(default_factory=PipelineResourceSpec)

    @property
    def name(self) -> str:
        return self.metadata.name


class PipelineRef(K8sModel):
    name: str
    api_version: Optional[str] = Field(default=None, alias="apiVersion")


class PipelineResourceRef(K8sModel):
    name: str
    api_version: Optional[str] = Field(default=None, alias="apiVersion")


class PipelineResourceBinding(K8sModel):
    name: str
    resource_ref: PipelineResourceRef = Field(alias="resourceRef")


class PipelineTrigger(K8sModel):
    type: str


class PipelineRunSpec(K8sModel):
    pipeline_ref: PipelineRef = Field(alias="pipelineRef")
    resources: List[PipelineResourceBinding] = Field(default_factory=list)
    params: List[Param] = Field(default_factory=list)
    service_account: str = Field(default="", alias="serviceAccount")
    trigger: PipelineTrigger


class PipelineRun(K8sModel):
    api_version: str = Field(default=TEKTON_API_VERSION, alias="apiVersion")
    kind: str = "PipelineRun"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PipelineRunSpec

    @property
    def name(self) -> str:
        return self.metadata.name


class PipelineStructureStage(K8sModel):
    name: str
    depth: int = 0
    parent: Optional[str] = None
    previous: Optional[str] = None
    next: Optional[str] = None
    stages: List[str] = Field(default_factory=list)
    task_ref: Optional[str] = Field(default=None, alias="taskRef")
    task_run_ref: Optional[str] = Field(default=None, alias="taskRunRef")


class PipelineStructure(K8sModel):
    api_version: str = Field(default=JENKINS_API_VERSION, alias="apiVersion")
    kind: str = "PipelineStructure"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    pipeline_ref: Optional[str] = Field(default=None, alias="pipelineRef")
    pipeline_run_ref: Optional[str] = Field(default=None, alias="pipelineRunRef")
    stages: List[PipelineStructureStage] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name


class PipelineActivityKey(K8sModel):
    """
    Ключ PipelineActivity: по нему внешнее хранилище находит или создаёт запись,
    на которую потом ссылаются ownerReferences сгенерированных объектов.
    """

    name: str
    pipeline: str
    build: str
    git_url: str = Field(default="", alias="gitUrl")
    git_owner: str = Field(default="", alias="gitOwner")
    git_repository: str = Field(default="", alias="gitRepository")
    git_branch: str = Field(default="", alias="gitBranch")
    context: Optional[str] = None


def list_of(kind: str, items: List[K8sModel], api_version: str = TEKTON_API_VERSION) -> Dict[str, Any]:
    """TaskList / PipelineResourceList для записи в один YAML-документ."""
    return {
        "apiVersion": api_version,
        "kind": f"{kind}List",
        "items": [item.to_dict() for item in items],
    }
