"""
Входные модели компилятора: конфигурация build pack'а, файл проекта, шаги и опции запуска.

Все модели только читаются: преобразования порождают новые значения
(model_copy), исходное дерево шагов не меняется.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

import settings
from model import EnvVar

PipelineKind = Literal["release", "pullRequest", "feature"]
PIPELINE_KINDS: List[str] = ["release", "pullRequest", "feature"]


class InputModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class Loop(InputModel):
    variable: str
    values: List[str] = Field(default_factory=list)
    steps: List["Step"] = Field(default_factory=list)


class Step(InputModel):
    """
    Узел дерева шагов. Листья несут команду, у родителя может быть и команда, и дети.
    """

    name: str = ""
    command: str = ""
    args: List[str] = Field(default_factory=list, validation_alias=AliasChoices("args", "arguments"))
    image: str = ""
    dir: str = ""
    when: str = ""
    comment: str = ""
    env: List[EnvVar] = Field(default_factory=list)
    steps: List["Step"] = Field(default_factory=list)
    loop: Optional[Loop] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_sh(cls, data: Any) -> Any:
        # в build pack'ах встречается "sh: make build" вместо command
        if isinstance(data, dict) and not data.get("command") and data.get("sh"):
            data = dict(data)
            data["command"] = data.pop("sh")
        return data

    def full_command(self) -> str:
        if not self.command:
            return ""
        return " ".join([self.command] + list(self.args))


class PipelineLifecycle(InputModel):
    steps: List[Step] = Field(default_factory=list)


# Порядок слотов фиксирован; второе значение: префикс имён шагов
LIFECYCLE_SLOTS: List[Tuple[str, str]] = [
    ("setup", "setup"),
    ("set_version", "setversion"),
    ("pre_build", "prebuild"),
    ("build", "build"),
    ("post_build", "postbuild"),
    ("promote", "promote"),
]


class StageDefinition(InputModel):
    """Стадия заранее разобранного пользовательского пайплайна."""

    name: str
    agent: Optional["Agent"] = None
    steps: List[Step] = Field(default_factory=list)


class ParsedPipeline(InputModel):
    stages: List[StageDefinition] = Field(default_factory=list)


class PipelineLifecycles(InputModel):
    """
    Слоты жизненного цикла. None означает «слот не задан»: при наследовании
    он берётся из build pack'а; заданный (даже пустой) слот побеждает целиком.
    """

    setup: Optional[PipelineLifecycle] = None
    set_version: Optional[PipelineLifecycle] = Field(default=None, alias="setVersion")
    pre_build: Optional[PipelineLifecycle] = Field(default=None, alias="preBuild")
    build: Optional[PipelineLifecycle] = None
    post_build: Optional[PipelineLifecycle] = Field(default=None, alias="postBuild")
    promote: Optional[PipelineLifecycle] = None
    pipeline: Optional[ParsedPipeline] = None

    def all(self) -> Iterator[Tuple[str, Optional[PipelineLifecycle]]]:
        """(префикс, слот) в каноническом порядке."""
        for attr, prefix in LIFECYCLE_SLOTS:
            yield prefix, getattr(self, attr)

    def extend(self, base: Optional["PipelineLifecycles"]) -> "PipelineLifecycles":
        if base is None:
            return self
        update = {}
        for attr, _ in LIFECYCLE_SLOTS + [("pipeline", "")]:
            if getattr(self, attr) is None:
                update[attr] = getattr(base, attr)
        return self.model_copy(update=update)


class Pipelines(InputModel):
    release: Optional[PipelineLifecycles] = None
    pull_request: Optional[PipelineLifecycles] = Field(default=None, alias="pullRequest")
    feature: Optional[PipelineLifecycles] = None

    def for_kind(self, kind: str) -> Optional[PipelineLifecycles]:
        return {
            "release": self.release,
            "pullRequest": self.pull_request,
            "feature": self.feature,
        }[kind]

    def extend(self, base: "Pipelines") -> "Pipelines":
        update = {}
        for attr in ("release", "pull_request", "feature"):
            own = getattr(self, attr)
            inherited = getattr(base, attr)
            update[attr] = own.extend(inherited) if own is not None else inherited
        return self.model_copy(update=update)


class Agent(InputModel):
    image: str = ""
    container: str = ""
    label: str = ""

    def get_image(self) -> str:
        return self.image or self.container


class PipelineConfig(InputModel):
    agent: Agent = Field(default_factory=Agent)
    env: List[EnvVar] = Field(default_factory=list)
    pipelines: Pipelines = Field(default_factory=Pipelines)

    def extend(self, base: "PipelineConfig") -> "PipelineConfig":
        """
        Накладывает эту (локальную) конфигурацию поверх build pack'а base.
        Слоты, которые заданы локально, побеждают целиком, остальные наследуются.
        """
        agent = self.agent if self.agent.get_image() else base.agent
        return PipelineConfig(
            agent=agent,
            env=merge_env(self.env, base.env),
            pipelines=self.pipelines.extend(base.pipelines),
        )


class ProjectConfig(InputModel):
    """jenkins-x.yml проекта."""

    build_pack_git_url: str = Field(
        default="", validation_alias=AliasChoices("buildPackGitURL", "buildPackGitUrl", "build_pack_git_url")
    )
    build_pack_git_ref: str = Field(
        default="", validation_alias=AliasChoices("buildPackGitRef", "buildPackGitURef", "build_pack_git_ref")
    )
    build_pack: str = Field(default="", validation_alias=AliasChoices("buildPack", "build_pack"))
    env: List[EnvVar] = Field(default_factory=list)
    no_release_prepare: bool = Field(
        default=False, validation_alias=AliasChoices("noReleasePrepare", "no_release_prepare")
    )
    pipeline_config: Optional[PipelineConfig] = Field(
        default=None, validation_alias=AliasChoices("pipelineConfig", "pipeline_config")
    )
    docker_registry_host: str = Field(
        default="", validation_alias=AliasChoices("dockerRegistryHost", "docker_registry_host")
    )
    docker_registry_owner: str = Field(
        default="", validation_alias=AliasChoices("dockerRegistryOwner", "docker_registry_owner")
    )

    @model_validator(mode="before")
    @classmethod
    def _inline_pipeline(cls, data: Any) -> Any:
        # pipelines/agent можно писать прямо в корне файла
        if isinstance(data, dict) and "pipelineConfig" not in data and (
            "pipelines" in data or "agent" in data
        ):
            data = dict(data)
            data["pipelineConfig"] = {
                key: data[key] for key in ("agent", "pipelines") if key in data
            }
        return data


class GitRepository(InputModel):
    url: str = ""
    scheme: str = ""
    host: str = ""
    organisation: str = ""
    name: str = ""
    project: str = ""

    @property
    def clone_url(self) -> str:
        return self.url

    def https_url(self) -> str:
        host = self.host
        if "://" not in host:
            scheme = "http" if self.scheme == "http" else "https"
            host = f"{scheme}://{host}"
        return "/".join([host.rstrip("/"), self.organisation, self.name])

    def http_clone_url(self) -> str:
        return self.https_url() + ".git"


class CompileOptions(BaseModel):
    """
    Параметры одного запуска компиляции (все флаги CLI).
    """

    dir: str = ""
    output_dir: str = settings.DEFAULT_OUTPUT_DIR
    namespace: str = settings.DEFAULT_NAMESPACE

    pack: str = ""
    build_pack_url: str = ""
    build_pack_ref: str = ""
    pipeline_kind: str = "release"
    context: str = ""
    custom_labels: List[str] = Field(default_factory=list)
    custom_envs: List[str] = Field(default_factory=list)
    trigger: str = settings.DEFAULT_TRIGGER
    service_account: str = settings.DEFAULT_SERVICE_ACCOUNT
    source_name: str = settings.DEFAULT_SOURCE_NAME
    target_path: str = ""

    branch: str = ""
    revision: str = ""
    pull_request_number: str = ""
    clone_git_url: str = ""
    delete_temp_dir: bool = True

    custom_image: str = ""
    default_image: str = settings.DEFAULT_CONTAINER_IMAGE

    no_apply: bool = False
    dry_run: bool = False
    view_steps: bool = False
    no_release_prepare: bool = False

    no_kaniko: bool = False
    kaniko_image: str = settings.KANIKO_IMAGE
    kaniko_secret_mount: str = settings.KANIKO_SECRET_MOUNT
    kaniko_secret: str = settings.KANIKO_SECRET_NAME
    kaniko_secret_key: str = settings.KANIKO_SECRET_KEY
    project_id: str = ""
    docker_registry: str = ""
    docker_registry_org: str = ""
    build_number_url: str = ""

    # бюджет повторов: фиксированное число попыток и фиксированная пауза
    retry_attempts: int = 3
    retry_delay: float = 2.0
    script_attempts: int = 1

    @property
    def writes_only(self) -> bool:
        """Без обращений к кластеру: результат только пишется в каталог."""
        return self.no_apply or self.dry_run or self.view_steps

    def workspace_dir(self) -> str:
        return "/workspace/" + self.source_name


@dataclass
class CompileContext:
    """
    Изменяемое состояние одной компиляции. Счётчик шагов передаётся явно,
    чтобы компиляция была реентерабельной.
    """

    step_counter: int = 0

    def count_step(self) -> int:
        self.step_counter += 1
        return self.step_counter


def merge_env(*sources: List[EnvVar]) -> List[EnvVar]:
    """
    Склеивает списки переменных по имени: источник левее важнее,
    внутри одного источника выигрывает первое объявление.
    """
    seen: Dict[str, EnvVar] = {}
    for source in sources:
        for e in source or []:
            if e.name not in seen:
                seen[e.name] = e
    return list(seen.values())


Loop.model_rebuild()
Step.model_rebuild()
StageDefinition.model_rebuild()
ParsedPipeline.model_rebuild()
PipelineLifecycles.model_rebuild()
Pipelines.model_rebuild()
PipelineConfig.model_rebuild()
ProjectConfig.model_rebuild()
