"""
Step Transformer: образ, команда, Kaniko, переменные окружения и тома для каждого шага.

Все методы возвращают новые значения; входные Step/Container не меняются,
поэтому повторный прогон инъекций ничего не добавляет.
"""
from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import settings
from model import (
    Container,
    DownwardAPIVolumeFile,
    DownwardAPIVolumeSource,
    EnvVar,
    KeyToPath,
    ObjectFieldSelector,
    Param,
    SecretVolumeSource,
    Volume,
    VolumeMount,
)

from ...models import CompileOptions, GitRepository, Step
from ..versionstream import DockerImageResolver, ImageResolution, resolve_image

logger = logging.getLogger(__name__)

KANIKO_EXECUTOR = "/kaniko/executor"
IMAGE_BUILD_PREFIX = "skaffold build"
IP_ADDRESS_REGISTRY = re.compile(r"^\d{1,3}(\.\d{1,3}){3}(:\d+)?$")

PODINFO_VOLUME = Volume(
    name="podinfo",
    downwardAPI=DownwardAPIVolumeSource(
        items=[DownwardAPIVolumeFile(path="labels", fieldRef=ObjectFieldSelector(fieldPath="metadata.labels"))]
    ),
)
PODINFO_MOUNT = VolumeMount(name="podinfo", mountPath="/etc/podinfo", readOnly=True)

# (имя секрета, namespace) -> данные секрета или None
SecretGetter = Callable[[str, str], Optional[Dict[str, str]]]


@dataclass(frozen=True)
class SecretLookup:
    found: bool
    reason: str = ""


def param_ref(name: str) -> str:
    """Ссылка на параметр внутри шага Task'а."""
    return "${inputs.params.%s}" % name


def normalize_command(text: str) -> str:
    """
    Убирает экранирование "\\$" из библиотек pipeline'ов и заменяет старый
    способ чтения версии из файла VERSION на переменную VERSION.
    """
    answer = text.replace("\\$", "$")
    answer = answer.replace("export VERSION=`cat VERSION` && ", "", 1)
    answer = answer.replace("export VERSION=$PREVIEW_VERSION && ", "", 1)
    for legacy in ("$(cat VERSION)", "$(cat ../VERSION)", "$(cat ../../VERSION)"):
        answer = answer.replace(legacy, "${VERSION}")
    return answer


def _has_env(env: List[EnvVar], name: str) -> bool:
    return any(e.name == name for e in env)


class StepTransformer:
    def __init__(
        self,
        options: CompileOptions,
        git: Optional[GitRepository],
        branch: str,
        docker_registry: str,
        docker_registry_org: str,
        params: List[Param],
        image_resolver: Optional[DockerImageResolver] = None,
        get_secret: Optional[SecretGetter] = None,
    ) -> None:
        self.options = options
        self.git = git
        self.branch = branch
        self.docker_registry = docker_registry
        self.docker_registry_org = docker_registry_org
        self.params = params
        self.image_resolver = image_resolver
        self.get_secret = get_secret
        self.build_number = next((p.value for p in params if p.name == "build_id"), "")
        self.fallbacks: List[ImageResolution] = []
        self.kaniko_steps: set[str] = set()
        self._secret: Optional[SecretLookup] = None

    # ---- 1. образ ----

    def resolve_step_image(self, step: Step, agent_image: str) -> ImageResolution:
        """
        Шаг > --image > agent из pack'а > образ по умолчанию, затем version stream.
        """
        image = step.image or self.options.custom_image or agent_image
        if not image:
            image = self.options.default_image
            logger.warning(
                "No 'agent.container' specified in the pipeline configuration so defaulting to use: %s", image
            )
        resolution = resolve_image(self.image_resolver, image)
        if resolution.fell_back:
            self.fallbacks.append(resolution)
        return resolution

    # ---- 2-3. команда и Kaniko ----

    def transform(self, step: Step, agent_image: str) -> Container:
        image = self.resolve_step_image(step, agent_image).image
        command = normalize_command(step.full_command())

        container = Container(
            name=step.name,
            image=image,
            command=["/bin/sh", "-c"],
            args=[command],
            workingDir=step.dir or self.options.workspace_dir(),
            env=list(step.env),
        )
        if not self.options.no_kaniko and command.startswith(IMAGE_BUILD_PREFIX):
            container = self.kaniko_rewrite(container)
        return container

    def kaniko_rewrite(self, container: Container) -> Container:
        source_dir = self.options.workspace_dir()
        registry = self.docker_registry
        args = [
            "--cache=true",
            "--cache-dir=/workspace",
            f"--context={source_dir}",
            f"--dockerfile={posixpath.join(source_dir, 'Dockerfile')}",
            f"--destination={self.docker_image()}:{param_ref('version')}",
            f"--cache-repo={registry}/{self.options.project_id or 'todo'}/cache",
        ]
        if registry != settings.PUBLIC_REGISTRY_HOST:
            args.append(f"--skip-tls-verify-registry={registry}")
        if IP_ADDRESS_REGISTRY.match(registry):
            args.append("--insecure")

        self.kaniko_steps.add(container.name)
        return container.model_copy(
            update={
                "image": self.options.kaniko_image or settings.KANIKO_IMAGE,
                "command": [KANIKO_EXECUTOR],
                "args": args,
            }
        )

    def docker_image(self) -> str:
        app_name = self.git.name if self.git else ""
        return f"{self.docker_registry}/{self.docker_registry_org}/{app_name}"

    def is_image_build_step(self, container: Container) -> bool:
        if self.options.no_kaniko:
            return False
        return container.name == settings.IMAGE_BUILD_STEP_NAME or container.name in self.kaniko_steps

    # ---- 4. переменные окружения ----

    def inject_env(self, container: Container, global_env: Optional[List[EnvVar]] = None) -> Container:
        """
        Только добавляет: переменные шага, затем глобальные (проект/pack), затем
        встроенные. Имя, которое уже есть, никогда не перезаписывается.
        """
        env: List[EnvVar] = [e for e in container.env if e.name != "JENKINS_URL"]

        def add(name: str, value: str) -> None:
            if not _has_env(env, name):
                env.append(EnvVar(name=name, value=value))

        for e in global_env or []:
            if not _has_env(env, e.name):
                env.append(e)

        options = self.options
        add("DOCKER_REGISTRY", self.docker_registry)
        add("BUILD_NUMBER", self.build_number)
        if options.pipeline_kind:
            add("PIPELINE_KIND", options.pipeline_kind)
        if options.context:
            add("PIPELINE_CONTEXT", options.context)

        git = self.git
        if git is not None:
            if git.clone_url:
                add("SOURCE_URL", git.clone_url)
            if git.organisation:
                add("REPO_OWNER", git.organisation)
            if git.name:
                add("REPO_NAME", git.name)
            if git.organisation and git.name and self.branch:
                add("JOB_NAME", f"{git.organisation}/{git.name}/{self.branch}")
            # APP_NAME нужен для preview-окружений
            if git.name:
                add("APP_NAME", git.name)
        if self.branch:
            add("BRANCH_NAME", self.branch)
        add("JX_BATCH_MODE", "true")

        for param in self.params:
            add(param.name.upper(), param_ref(param.name))

        if self.is_image_build_step(container):
            add("GOOGLE_APPLICATION_CREDENTIALS", options.kaniko_secret_mount)
        if _has_env(env, "VERSION"):
            add("PREVIEW_VERSION", param_ref("version"))

        return container.model_copy(update={"env": env})

    # ---- 5. тома ----

    def lookup_kaniko_secret(self) -> SecretLookup:
        if self._secret is not None:
            return self._secret
        name = self.options.kaniko_secret or settings.KANIKO_SECRET_NAME
        key = self.options.kaniko_secret_key or settings.KANIKO_SECRET_KEY
        if self.get_secret is None:
            lookup = SecretLookup(found=False, reason="no cluster client to look up secrets")
        else:
            try:
                data = self.get_secret(name, self.options.namespace)
            except Exception as e:
                lookup = SecretLookup(found=False, reason=str(e))
            else:
                if data and data.get(key):
                    lookup = SecretLookup(found=True)
                else:
                    lookup = SecretLookup(found=False, reason=f"secret {name} has no key {key}")
        if not lookup.found:
            logger.warning(
                "failed to find secret %s in namespace %s: %s", name, self.options.namespace, lookup.reason
            )
        self._secret = lookup
        return lookup

    def inject_volumes(self, container: Container, volumes: List[Volume]) -> Tuple[Container, List[Volume]]:
        """
        Добавляет том podinfo (метки пода через downward API) и, для шага сборки
        образа, секрет Kaniko. Дубликаты по значению не добавляются.
        """
        volumes = list(volumes)
        mounts = list(container.volume_mounts)

        if self.is_image_build_step(container) and self.lookup_kaniko_secret().found:
            mount_path = self.options.kaniko_secret_mount or settings.KANIKO_SECRET_MOUNT
            mount_dir, file_name = posixpath.split(mount_path)
            volume = Volume(
                name="kaniko-secret",
                secret=SecretVolumeSource(
                    secretName=self.options.kaniko_secret or settings.KANIKO_SECRET_NAME,
                    items=[KeyToPath(key=self.options.kaniko_secret_key or settings.KANIKO_SECRET_KEY, path=file_name)],
                ),
            )
            if volume not in volumes:
                volumes.append(volume)
            mount = VolumeMount(name="kaniko-secret", mountPath=mount_dir.rstrip("/"), readOnly=True)
            if mount not in mounts:
                mounts.append(mount)

        if PODINFO_VOLUME not in volumes:
            volumes.append(PODINFO_VOLUME)
        if PODINFO_MOUNT not in mounts:
            mounts.append(PODINFO_MOUNT)

        return container.model_copy(update={"volume_mounts": mounts}), volumes
