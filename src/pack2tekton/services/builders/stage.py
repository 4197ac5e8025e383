"""
Stage Flattener: превращает слоты жизненного цикла в один упорядоченный список шагов.
"""
from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import List, Optional

import settings
from exception import ConfigurationError

from ...models import (
    PIPELINE_KINDS,
    CompileContext,
    CompileOptions,
    GitRepository,
    PipelineConfig,
    PipelineLifecycle,
    PipelineLifecycles,
    ProjectConfig,
    Step,
)

logger = logging.getLogger(__name__)

DEFAULT_STAGE_NAME = "from-build-pack"

PLACEHOLDER_APP_NAME = "{app-name}"
PLACEHOLDER_ORG = "{org}"
PLACEHOLDER_GIT_PROVIDER = "{git-provider-host}"
PLACEHOLDER_DOCKER_REGISTRY_ORG = "{docker-registry-org}"
LEGACY_WORKSPACE = "/home/jenkins/go/src/REPLACE_ME_GIT_PROVIDER/REPLACE_ME_ORG/REPLACE_ME_APP_NAME"

GIT_CREDENTIALS_STEP = Step(name="jx-git-credentials", command="jx step git credentials")


@dataclass
class Stage:
    name: str
    agent_image: str
    steps: List[Step] = field(default_factory=list)


def select_lifecycles(pipeline_config: PipelineConfig, kind: str) -> PipelineLifecycles:
    """
    Выбирает вариант пайплайна по виду запуска. Для release в начало setup
    всегда добавляется шаг настройки git-credentials.
    """
    if kind not in PIPELINE_KINDS:
        raise ConfigurationError(
            f"Unknown pipeline kind {kind}. Supported values are {', '.join(PIPELINE_KINDS)}"
        )
    lifecycles = pipeline_config.pipelines.for_kind(kind)
    if lifecycles is None:
        raise ConfigurationError(f"no {kind} pipeline defined in the pipeline configuration")

    if kind == "release":
        setup = lifecycles.setup or PipelineLifecycle()
        setup = setup.model_copy(update={"steps": [GIT_CREDENTIALS_STEP] + list(setup.steps)})
        lifecycles = lifecycles.model_copy(update={"setup": setup})
    return lifecycles


def docker_registry(options: CompileOptions, project_config: ProjectConfig) -> str:
    return options.docker_registry or project_config.docker_registry_host or settings.DEFAULT_DOCKER_REGISTRY


def docker_registry_org(options: CompileOptions, project_config: ProjectConfig, git: Optional[GitRepository]) -> str:
    org = options.docker_registry_org or project_config.docker_registry_owner
    if not org and git is not None:
        org = git.organisation
    return org.lower()


class StageFlattener:
    """
    Рекурсивно обходит деревья шагов в глубину: родитель с командой идёт раньше детей.

    Имена шагов: <префикс слота>-<имя или stepN>; N берётся из счётчика компиляции,
    поэтому имена уникальны во всей последовательности.
    """

    def __init__(
        self,
        options: CompileOptions,
        context: CompileContext,
        git: Optional[GitRepository],
        project_config: ProjectConfig,
    ) -> None:
        self.options = options
        self.context = context
        self.git = git
        self.project_config = project_config

    def agent_image(self, pipeline_config: PipelineConfig) -> str:
        container = pipeline_config.agent.get_image()
        if self.options.custom_image:
            container = self.options.custom_image
        if not container:
            container = self.options.default_image
        return container

    def create_stage(self, pipeline_config: PipelineConfig, lifecycles: PipelineLifecycles) -> Stage:
        container = self.agent_image(pipeline_config)
        workspace = self.options.workspace_dir()

        steps: List[Step] = []
        for prefix, lifecycle in lifecycles.all():
            if lifecycle is None or not lifecycle.steps:
                continue
            # при подготовке релиза set-version уже выполнен на этапе компиляции
            if prefix == "setversion" and not self.options.no_release_prepare:
                continue
            for step in lifecycle.steps:
                steps.extend(self.flatten(step, workspace, prefix))

        return Stage(name=DEFAULT_STAGE_NAME, agent_image=container, steps=steps)

    def flatten(self, step: Step, directory: str, prefix: str) -> List[Step]:
        if step.dir:
            directory = step.dir
        directory = self.replace_placeholders(directory)

        steps: List[Step] = []
        if step.full_command():
            number = self.context.count_step()
            name = step.name or f"step{number}"
            if prefix:
                name = f"{prefix}-{name}"
            steps.append(
                step.model_copy(
                    update={"name": name, "dir": self.absolute_dir(directory), "steps": [], "loop": None}
                )
            )
        elif step.loop is not None:
            # loop отдаём дальше как есть: его разворачивает сборщик Task'а
            steps.append(step)

        for child in step.steps:
            steps.extend(self.flatten(child, directory, prefix))
        return steps

    def replace_placeholders(self, directory: str) -> str:
        directory = directory.replace(LEGACY_WORKSPACE, self.options.workspace_dir())
        if self.git is None:
            logger.warning("No GitInfo available!")
            return directory
        directory = directory.replace(PLACEHOLDER_APP_NAME, self.git.name)
        directory = directory.replace(PLACEHOLDER_ORG, self.git.organisation)
        directory = directory.replace(PLACEHOLDER_GIT_PROVIDER, self.git.host)
        directory = directory.replace(
            PLACEHOLDER_DOCKER_REGISTRY_ORG, docker_registry_org(self.options, self.project_config, self.git)
        )
        return directory

    def absolute_dir(self, directory: str) -> str:
        workspace = self.options.workspace_dir()
        if directory.startswith("./"):
            directory = workspace + directory[1:]
        if not posixpath.isabs(directory):
            directory = posixpath.join(workspace, directory)
        return posixpath.normpath(directory)

    def create_custom_stages(self, pipeline_config: PipelineConfig, lifecycles: PipelineLifecycles) -> List[Stage]:
        """Заранее разобранный многостадийный пайплайн: слоты не используются."""
        default_image = self.agent_image(pipeline_config)
        workspace = self.options.workspace_dir()
        stages: List[Stage] = []
        for definition in lifecycles.pipeline.stages:
            image = definition.agent.get_image() if definition.agent else ""
            steps: List[Step] = []
            for step in definition.steps:
                steps.extend(self.flatten(step, workspace, ""))
            stages.append(Stage(name=definition.name, agent_image=image or default_image, steps=steps))
        return stages
