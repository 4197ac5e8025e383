"""
CRD Assembler & Validator.

Из готовых стадий собирает Task (по одному на стадию), Pipeline, PipelineResource
исходников, PipelineRun и PipelineStructure. Ссылки-владельцы навешиваются здесь,
поэтому вывод в каталог и применение в кластер отличаются только идентификаторами.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import yaml

import settings
from exception import CRDValidationError
from model import (
    Container,
    EnvVar,
    Inputs,
    K8sModel,
    ObjectMeta,
    OwnerReference,
    Param,
    ParamSpec,
    Pipeline,
    PipelineDeclaredResource,
    PipelineRef,
    PipelineResource,
    PipelineResourceBinding,
    PipelineResourceRef,
    PipelineResourceSpec,
    PipelineRun,
    PipelineRunSpec,
    PipelineSpec,
    PipelineStructure,
    PipelineStructureStage,
    PipelineTask,
    PipelineTaskInputResource,
    PipelineTaskResources,
    PipelineTrigger,
    Task,
    TaskRef,
    TaskResource,
    TaskSpec,
    Volume,
)

from ...models import CompileOptions, GitRepository, Step
from .stage import Stage
from .steps import StepTransformer
from .version import BuildValues

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 63
_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")

PARAM_DESCRIPTIONS = {
    "version": "the version number for this pipeline which is used as a tag on docker images and helm charts",
    "build_id": "the PipelineRun build number",
}


def to_resource_name(text: str, suffix: str = "") -> str:
    """
    Строка -> допустимое имя объекта Kubernetes (DNS-1123 label).

    suffix (например номер сборки) никогда не обрезается: укорачивается основа.
    """
    suffix = _INVALID_NAME_CHARS.sub("-", suffix.lower()).strip("-")
    name = _INVALID_NAME_CHARS.sub("-", text.lower()).strip("-")
    if not suffix:
        return name[:MAX_NAME_LENGTH].rstrip("-")
    base = name[: max(MAX_NAME_LENGTH - len(suffix) - 1, 0)].rstrip("-")
    return f"{base}-{suffix}" if base else suffix[:MAX_NAME_LENGTH]


def pipeline_resource_name(git: GitRepository, branch: str, context: str = "") -> str:
    parts = [git.organisation, git.name, branch]
    if context:
        parts.append(context)
    return to_resource_name("-".join(parts))


def _dump(obj: K8sModel) -> str:
    return yaml.safe_dump(obj.to_dict(), default_flow_style=False, sort_keys=False)


@dataclass
class GeneratedCRDs:
    pipeline: Pipeline
    tasks: List[Task]
    resources: List[PipelineResource]
    run: PipelineRun
    structure: PipelineStructure
    params: List[Param] = field(default_factory=list)

    def object_references(self) -> List[Tuple[str, str]]:
        """(kind, name) созданных Task'ов, Pipeline и PipelineRun."""
        references: List[Tuple[str, str]] = []
        for obj in list(self.tasks) + [self.pipeline, self.run]:
            if not obj.name:
                logger.warning("created %s has no name: %r", obj.kind, obj)
                continue
            references.append((obj.kind, obj.name))
        if not references:
            logger.warning("no Tasks, Pipeline or PipelineRuns created")
        return references


class CRDAssembler:
    def __init__(
        self,
        options: CompileOptions,
        transformer: StepTransformer,
        build: BuildValues,
        resource_name: str,
        global_env: Optional[List[EnvVar]] = None,
        activity_owner: Optional[OwnerReference] = None,
    ) -> None:
        self.options = options
        self.transformer = transformer
        self.build = build
        self.resource_name = resource_name
        self.global_env = list(global_env or [])
        self.activity_owner = activity_owner

    # ---- параметры ----

    def task_params(self) -> List[ParamSpec]:
        return [
            ParamSpec(name=p.name, description=PARAM_DESCRIPTIONS.get(p.name, ""), default=p.value)
            for p in self.build.params
        ]

    def pipeline_task_params(self) -> List[Param]:
        return [Param(name=p.name, value="${params.%s}" % p.name) for p in self.build.params]

    def owner_references(self, *extra: OwnerReference) -> Optional[List[OwnerReference]]:
        owners = [self.activity_owner] if self.activity_owner is not None else []
        owners.extend(extra)
        return owners or None

    # ---- Task ----

    def containers(self, stage: Stage) -> List[Container]:
        containers: List[Container] = []
        for step in stage.steps:
            if step.loop is not None and not step.full_command():
                containers.extend(self.expand_loop(step, stage.agent_image))
            else:
                containers.append(self.transformer.transform(step, stage.agent_image))
        return containers

    def expand_loop(self, step: Step, agent_image: str) -> List[Container]:
        """
        Разворачивает loop: по контейнеру на каждую пару (значение, дочерний шаг),
        значение передаётся через переменную окружения loop.variable.
        """
        loop = step.loop
        loop_name = step.name or "loop"
        leaves = [child for child in _walk(loop.steps) if child.full_command()]

        containers: List[Container] = []
        for index, value in enumerate(loop.values):
            for number, child in enumerate(leaves, start=1):
                child_name = child.name or f"step{number}"
                name = to_resource_name(f"{loop_name}-{loop.variable}-{index}-{child_name}")
                env = [EnvVar(name=loop.variable, value=value)] + [e for e in child.env if e.name != loop.variable]
                unrolled = child.model_copy(
                    update={"name": name, "env": env, "dir": child.dir or step.dir, "steps": []}
                )
                containers.append(self.transformer.transform(unrolled, agent_image))
        return containers

    def create_task(self, stage: Stage) -> Task:
        volumes: List[Volume] = []
        steps: List[Container] = []
        for container in self.containers(stage):
            container, volumes = self.transformer.inject_volumes(container, volumes)
            steps.append(self.transformer.inject_env(container, self.global_env))

        inputs = Inputs(
            resources=[
                TaskResource(
                    name=self.options.source_name,
                    type="git",
                    targetPath=self.options.target_path or self.options.source_name,
                )
            ],
            params=self.task_params(),
        )
        return Task(
            metadata=ObjectMeta(
                name=to_resource_name(self.resource_name, stage.name),
                namespace=self.options.namespace,
                ownerReferences=self.owner_references(),
            ),
            spec=TaskSpec(inputs=inputs, steps=steps, volumes=volumes),
        )

    # ---- Pipeline / Resource / Run / Structure ----

    def create_pipeline(self, stages: List[Stage], tasks: List[Task]) -> Pipeline:
        pipeline_tasks: List[PipelineTask] = []
        previous: Optional[str] = None
        for stage, task in zip(stages, tasks):
            name = to_resource_name(stage.name)
            pipeline_tasks.append(
                PipelineTask(
                    name=name,
                    taskRef=TaskRef(name=task.name),
                    params=self.pipeline_task_params(),
                    resources=PipelineTaskResources(
                        inputs=[PipelineTaskInputResource(name=self.options.source_name, resource=self.resource_name)]
                    ),
                    runAfter=[previous] if previous else None,
                )
            )
            previous = name

        return Pipeline(
            metadata=ObjectMeta(
                name=self.resource_name,
                namespace=self.options.namespace,
                ownerReferences=self.owner_references(),
            ),
            spec=PipelineSpec(
                resources=[PipelineDeclaredResource(name=self.resource_name, type="git")],
                params=self.task_params(),
                tasks=pipeline_tasks,
            ),
        )

    def create_source_resource(self, git: GitRepository) -> PipelineResource:
        return PipelineResource(
            metadata=ObjectMeta(name=self.resource_name, namespace=self.options.namespace),
            spec=PipelineResourceSpec(
                type="git",
                params=[
                    Param(name="revision", value=self.build.revision),
                    Param(name="url", value=git.https_url()),
                ],
            ),
        )

    def pipeline_owner(self, pipeline: Pipeline) -> OwnerReference:
        return OwnerReference(apiVersion=pipeline.api_version, kind=pipeline.kind, name=pipeline.name)

    def create_run(
        self, pipeline: Pipeline, resources: List[PipelineResource], labels: Dict[str, str]
    ) -> PipelineRun:
        run_name = to_resource_name(self.resource_name, self.build.build_number)
        bindings = [
            PipelineResourceBinding(
                name=resource.name,
                resourceRef=PipelineResourceRef(name=resource.name, apiVersion=resource.api_version),
            )
            for resource in resources
        ]
        return PipelineRun(
            metadata=ObjectMeta(
                name=run_name,
                namespace=self.options.namespace,
                labels=dict(labels) or None,
                ownerReferences=self.owner_references(self.pipeline_owner(pipeline)),
            ),
            spec=PipelineRunSpec(
                pipelineRef=PipelineRef(name=pipeline.name, apiVersion=pipeline.api_version),
                resources=bindings,
                params=list(self.build.params),
                serviceAccount=self.options.service_account,
                trigger=PipelineTrigger(type=self.options.trigger),
            ),
        )

    def create_structure(self, pipeline: Pipeline, run: PipelineRun, stages: List[Stage], tasks: List[Task]) -> PipelineStructure:
        names = [stage.name for stage in stages]
        structure_stages = []
        for index, (stage, task) in enumerate(zip(stages, tasks)):
            structure_stages.append(
                PipelineStructureStage(
                    name=stage.name,
                    depth=0,
                    previous=names[index - 1] if index > 0 else None,
                    next=names[index + 1] if index + 1 < len(names) else None,
                    taskRef=task.name,
                )
            )
        return PipelineStructure(
            metadata=ObjectMeta(
                name=run.name,
                namespace=self.options.namespace,
                ownerReferences=self.owner_references(self.pipeline_owner(pipeline)),
            ),
            pipelineRef=pipeline.name,
            pipelineRunRef=run.name,
            stages=structure_stages,
        )

    def generate(self, stages: List[Stage], git: GitRepository, labels: Optional[Dict[str, str]] = None) -> GeneratedCRDs:
        tasks = [self.create_task(stage) for stage in stages]
        pipeline = self.create_pipeline(stages, tasks)
        resources = [self.create_source_resource(git)]
        run = self.create_run(pipeline, resources, labels or {})
        structure = self.create_structure(pipeline, run, stages, tasks)

        validate_pipeline(pipeline, tasks)
        for task in tasks:
            validate_task(task)
        validate_run(run, pipeline, resources)

        return GeneratedCRDs(
            pipeline=pipeline,
            tasks=tasks,
            resources=resources,
            run=run,
            structure=structure,
            params=list(self.build.params),
        )


def _walk(steps: List[Step]) -> List[Step]:
    answer: List[Step] = []
    for step in steps:
        answer.append(step)
        answer.extend(_walk(step.steps))
    return answer


# ---- проверки ----


def validate_task(task: Task) -> None:
    def fail(reason: str) -> None:
        raise CRDValidationError("Task", task.name, reason, _dump(task))

    if not task.name:
        fail("missing metadata.name")
    if not task.spec.steps:
        fail("expected at least one step")
    seen = set()
    for container in task.spec.steps:
        if not container.name:
            fail("step with empty name")
        if container.name in seen:
            fail(f"duplicate step name {container.name}")
        seen.add(container.name)
        if not container.image:
            fail(f"step {container.name} has no image")
    volume_names = {v.name for v in task.spec.volumes}
    for container in task.spec.steps:
        for mount in container.volume_mounts:
            if mount.name not in volume_names:
                fail(f"step {container.name} mounts unknown volume {mount.name}")


def validate_pipeline(pipeline: Pipeline, tasks: List[Task]) -> None:
    def fail(reason: str) -> None:
        raise CRDValidationError("Pipeline", pipeline.name, reason, _dump(pipeline))

    if not pipeline.name:
        fail("missing metadata.name")
    if not pipeline.spec.tasks:
        fail("expected at least one task")
    task_names = {t.name for t in tasks}
    declared = {r.name for r in pipeline.spec.resources}
    declared_params = {p.name for p in pipeline.spec.params}
    seen = set()
    for pipeline_task in pipeline.spec.tasks:
        if pipeline_task.task_ref.name not in task_names:
            fail(f"task {pipeline_task.name} references unknown Task {pipeline_task.task_ref.name}")
        for after in pipeline_task.run_after or []:
            if after not in seen:
                fail(f"task {pipeline_task.name} runs after unknown task {after}")
        if pipeline_task.resources is not None:
            for resource in pipeline_task.resources.inputs:
                if resource.resource not in declared:
                    fail(f"task {pipeline_task.name} uses undeclared resource {resource.resource}")
        for param in pipeline_task.params:
            if param.name not in declared_params:
                fail(f"task {pipeline_task.name} binds undeclared param {param.name}")
        seen.add(pipeline_task.name)


def validate_run(run: PipelineRun, pipeline: Pipeline, resources: List[PipelineResource]) -> None:
    def fail(reason: str) -> None:
        raise CRDValidationError("PipelineRun", run.name, reason, _dump(run))

    if not run.name:
        fail("missing metadata.name")
    if run.spec.pipeline_ref.name != pipeline.name:
        fail(f"references unknown Pipeline {run.spec.pipeline_ref.name}")
    if not run.spec.trigger.type:
        fail("missing trigger type")
    known = {r.name for r in resources}
    for binding in run.spec.resources:
        if binding.resource_ref.name not in known:
            fail(f"binds unknown PipelineResource {binding.resource_ref.name}")
    if run.spec.pipeline_ref.api_version and run.spec.pipeline_ref.api_version != settings.TEKTON_API_VERSION:
        fail(f"unsupported pipeline apiVersion {run.spec.pipeline_ref.api_version}")
