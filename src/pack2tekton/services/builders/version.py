"""
Build Number & Version Resolver.

Состояния:
  Dry: номер "1", версия из файла VERSION (или 0.0.1), без внешних вызовов;
  Release: выполняем шаги set-version на рабочей копии и перечитываем VERSION;
  Preview: версия 0.0.0-SNAPSHOT-<ветка>-<номер>;
  Skip: подготовка релиза отключена, версия не вычисляется.
"""
from __future__ import annotations

import enum
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import settings
from exception import BuildNumberError, ScriptError
from model import Param
from utils import retry

from ...config import VERSION_FILE_NAME
from ...models import CompileOptions, GitRepository, PipelineConfig, Step
from ..buildnum import BuildNumberAllocator, allocate_build_number, pipeline_id

logger = logging.getLogger(__name__)

DRY_RUN_BUILD_NUMBER = "1"
DEFAULT_DRY_RUN_VERSION = "0.0.1"
PREVIEW_VERSION_PREFIX = "0.0.0-SNAPSHOT-"

DEFAULT_SET_VERSION_STEPS = [
    Step(
        name="next-version",
        command="jx step next-version --use-git-tag-only --tag",
        comment="tags git with the next version",
    )
]

# (команда, каталог) -> вывод
ScriptRunner = Callable[[str, Path], str]


class VersionMode(str, enum.Enum):
    DRY = "Dry"
    RELEASE = "Release"
    PREVIEW = "Preview"
    SKIP = "Skip"


@dataclass
class BuildValues:
    mode: VersionMode
    build_number: str
    version: str = ""
    revision: str = ""
    params: List[Param] = field(default_factory=list)


def run_shell(command: str, directory: Path) -> str:
    logger.info("running command: %s", command)
    result = subprocess.run(
        ["/bin/sh", "-c", command],
        cwd=str(directory),
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise ScriptError(command, output=result.stdout + result.stderr, returncode=result.returncode)
    return result.stdout


def read_version_file(directory: Path) -> str:
    """Содержимое VERSION; пустой или отсутствующий файл: пустая строка."""
    version_file = directory / VERSION_FILE_NAME
    if not version_file.is_file():
        return ""
    text = version_file.read_text(encoding="utf-8").strip()
    if not text:
        logger.warning("versions file %s is empty!", version_file)
    return text


def is_excluded(when: str, runner: str = settings.PIPELINE_RUNNER) -> bool:
    when = when.strip()
    if not when:
        return False
    if when.startswith("!"):
        return when[1:].strip() == runner
    return when != runner


class VersionResolver:
    def __init__(
        self,
        options: CompileOptions,
        allocator: Optional[BuildNumberAllocator] = None,
        runner: ScriptRunner = run_shell,
    ) -> None:
        self.options = options
        self.allocator = allocator
        self.runner = runner

    def mode(self) -> VersionMode:
        options = self.options
        if options.no_release_prepare or options.view_steps:
            return VersionMode.SKIP
        if options.dry_run:
            return VersionMode.DRY
        if options.pipeline_kind == "release":
            return VersionMode.RELEASE
        return VersionMode.PREVIEW

    async def build_number(self, git: GitRepository, branch: str) -> str:
        if self.options.writes_only:
            return DRY_RUN_BUILD_NUMBER
        key = pipeline_id(git, branch, self.options.context)
        if self.allocator is None:
            raise BuildNumberError(key, "no build number allocator configured")
        return await allocate_build_number(
            self.allocator,
            key,
            attempts=self.options.retry_attempts,
            delay=self.options.retry_delay,
        )

    async def resolve(
        self,
        pipeline_config: PipelineConfig,
        source_dir: Path,
        git: GitRepository,
        branch: str,
    ) -> BuildValues:
        mode = self.mode()
        build_number = await self.build_number(git, branch)
        values = BuildValues(mode=mode, build_number=build_number, revision=self.options.revision or branch)

        if mode is VersionMode.DRY:
            version = read_version_file(source_dir)
            if not version:
                logger.warning("No version file or incorrect content; using %s as version", DEFAULT_DRY_RUN_VERSION)
                version = DEFAULT_DRY_RUN_VERSION
            values.version = version
            values.revision = "v" + version
        elif mode is VersionMode.RELEASE:
            values.version = self.prepare_release(pipeline_config, source_dir)
            values.revision = "v" + values.version
        elif mode is VersionMode.PREVIEW:
            name = branch or self.options.revision
            values.version = f"{PREVIEW_VERSION_PREFIX}{name}-{build_number}"

        if values.version:
            values.params.append(Param(name="version", value=values.version))
            logger.info("Version used: '%s'", values.version)
        if build_number:
            values.params.append(Param(name="build_id", value=build_number))
        return values

    def prepare_release(self, pipeline_config: PipelineConfig, source_dir: Path) -> str:
        release = pipeline_config.pipelines.release
        set_version = release.set_version if release is not None else None
        steps = set_version.steps if set_version is not None and set_version.steps else DEFAULT_SET_VERSION_STEPS
        self.invoke_steps(steps, source_dir)

        version = read_version_file(source_dir)
        if not version:
            raise ScriptError(
                "read version", output=f"failed to read file {source_dir / VERSION_FILE_NAME}"
            )
        return version

    def invoke_steps(self, steps: List[Step], source_dir: Path) -> None:
        for step in steps:
            if step.steps:
                self.invoke_steps(step.steps, source_dir)
            if is_excluded(step.when) or not step.full_command():
                continue
            command = step.full_command().replace("\\$", "$")
            output = retry(
                self.options.script_attempts,
                self.options.retry_delay,
                lambda: self.runner(command, source_dir),
            )
            if output:
                logger.info("%s", output.rstrip())
