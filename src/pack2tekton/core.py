import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from model import EnvVar, PipelineActivityKey
from utils import aretry, merge_maps, parse_key_values

from .animation import run as run_animation
from .config import BUILD_NUMBER_URL, VERSIONS_DIR
from .models import CompileContext, CompileOptions, GitRepository, merge_env
from .services.activity import PipelineActivityStore, activity_owner_reference, generate_activity_key
from .services.analyzer import discover_build_pack
from .services.buildnum import BuildNumberAllocator, HTTPBuildNumberClient
from .services.builders import (
    BuildValues,
    CRDAssembler,
    GeneratedCRDs,
    StageFlattener,
    StepTransformer,
    VersionResolver,
    docker_registry,
    docker_registry_org,
    pipeline_resource_name,
    select_lifecycles,
)
from .services.builders.version import ScriptRunner, run_shell
from .services.git_module import GitExceptions, GitPack2Tekton, LocalRepo
from .services.materializer import (
    Applier,
    ClusterActivityStore,
    ClusterBuildNumberIssuer,
    ClusterClient,
    KubectlClient,
    write_output,
)
from .services.resolver import load_project_config, resolve_build_pack_coordinates, resolve_pipeline_config
from .services.resolver.buildpack import NO_BUILD_PACK
from .services.versionstream import DockerImageResolver, ImageResolution, VersionStreamResolver

logger = logging.getLogger(__name__)

CLONE_ATTEMPTS = 3
CLONE_DELAY = 2.0


@dataclass
class CompileResult:
    status: str
    crds: GeneratedCRDs
    build: BuildValues
    pack: str
    activity_key: PipelineActivityKey
    written: List[Path] = field(default_factory=list)
    fallbacks: List[ImageResolution] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)


class Pack2TektonCore:
    """
    Одна компиляция: исходники -> build pack -> стадия -> Task/Pipeline/PipelineRun
    -> запись в каталог или применение в кластер.

    Все внешние зависимости (git, кластер, выдача номеров, version stream,
    запуск скриптов) можно подменить через конструктор.
    """

    def __init__(
        self,
        options: CompileOptions,
        git: Optional[GitPack2Tekton] = None,
        git_info: Optional[GitRepository] = None,
        packs_dir: Optional[Path] = None,
        cluster: Optional[ClusterClient] = None,
        activity_store: Optional[PipelineActivityStore] = None,
        allocator: Optional[BuildNumberAllocator] = None,
        image_resolver: Optional[DockerImageResolver] = None,
        runner: ScriptRunner = run_shell,
    ):
        self.options = options
        self.git = git or GitPack2Tekton()
        self.git_info = git_info
        self.packs_dir = packs_dir
        self.cluster = cluster
        self.activity_store = activity_store
        self.allocator = allocator
        self.image_resolver = image_resolver
        self.runner = runner
        self.logs: list[str] = []
        self.warnings: list[str] = []

    async def create_task(self) -> CompileResult:
        source = await self.checkout()
        self.logs.extend(source.logs)
        try:
            return await self.compile(source.repo_path)
        finally:
            if source.is_temporary and self.options.delete_temp_dir:
                source.cleanup()
                self.logs.append("Временная папка с репозиторием удалена.")

    async def checkout(self) -> LocalRepo:
        options = self.options
        if not options.clone_git_url:
            return await self.git.from_existing_path(options.dir or ".")

        async def clone() -> LocalRepo:
            return await self.git.clone_to_temp(
                options.clone_git_url,
                branch=options.branch,
                revision=options.revision,
                pull_request_number=options.pull_request_number,
            )

        try:
            return await run_animation(
                aretry,
                CLONE_ATTEMPTS,
                CLONE_DELAY,
                clone,
                text=f"Клонирование репозитория {options.clone_git_url}",
            )
        except GitExceptions as e:
            # на полусклонированных исходниках компилировать нельзя
            self.logs.extend(e.logs)
            logger.critical("failed to clone %s after %d attempts: %s", options.clone_git_url, CLONE_ATTEMPTS, e)
            raise SystemExit(1)

    async def compile(self, source_dir: Path) -> CompileResult:
        git = self.git_info or self.git.find_git_info(source_dir)
        branch = self.options.branch or self.git.current_branch(source_dir)

        project_config, project_config_file = load_project_config(source_dir, self.options.context)
        if project_config.no_release_prepare and not self.options.no_release_prepare:
            self.options = self.options.model_copy(update={"no_release_prepare": True})
        options = self.options

        pack = options.pack or project_config.build_pack
        if not pack:
            pack = discover_build_pack(source_dir, self.packs_dir)
            self.logs.append(f"Обнаружен build pack: {pack}")

        packs_dir = self.packs_dir
        if packs_dir is None and pack != NO_BUILD_PACK:
            url, ref = resolve_build_pack_coordinates(options, project_config)
            packs_dir = self.git.init_build_pack(url, ref)
            self.logs.append(f"Build pack'и {url}@{ref} в {packs_dir}")

        pipeline_config = resolve_pipeline_config(pack, packs_dir, project_config, project_config_file)
        global_env = merge_env(self.custom_env(), project_config.env, pipeline_config.env)
        lifecycles = select_lifecycles(pipeline_config, options.pipeline_kind)
        labels = self.labels(git, branch)

        allocator = self.build_number_allocator()
        try:
            build = await VersionResolver(options, allocator, self.runner).resolve(
                pipeline_config, source_dir, git, branch
            )
        finally:
            if isinstance(allocator, HTTPBuildNumberClient):
                await allocator.close()
        self.logs.append(f"Номер сборки {build.build_number}, версия '{build.version}'")

        activity_key = generate_activity_key(git, branch, build.build_number, options.context)

        flattener = StageFlattener(options, CompileContext(), git, project_config)
        if lifecycles.pipeline is not None:
            stages = flattener.create_custom_stages(pipeline_config, lifecycles)
        else:
            stages = [flattener.create_stage(pipeline_config, lifecycles)]

        cluster = None if options.writes_only else self.cluster_client()
        transformer = StepTransformer(
            options,
            git,
            branch,
            docker_registry(options, project_config),
            docker_registry_org(options, project_config, git),
            build.params,
            image_resolver=self.version_stream(),
            get_secret=cluster.get_secret if cluster is not None else None,
        )
        assembler = CRDAssembler(
            options,
            transformer,
            build,
            pipeline_resource_name(git, branch, options.context),
            global_env=global_env,
            activity_owner=activity_owner_reference(activity_key),
        )
        crds = assembler.generate(stages, git, labels)

        for fallback in transformer.fallbacks:
            self.warnings.append(f"Образ {fallback.image} не найден в version stream: {fallback.reason}")

        result = CompileResult(
            status="ok",
            crds=crds,
            build=build,
            pack=pack,
            activity_key=activity_key,
            fallbacks=list(transformer.fallbacks),
            warnings=self.warnings,
            logs=self.logs,
        )

        if options.view_steps:
            return result
        if options.writes_only:
            result.written = write_output(options.output_dir, crds, activity_key)
            self.logs.append(f"Объекты записаны в {options.output_dir}")
            return result

        store = self.activity_store or ClusterActivityStore(cluster, options.namespace)
        applier = Applier(cluster, options.namespace, store)
        result.crds = applier.apply(crds, activity_key)
        self.logs.extend(applier.logs)
        return result

    def custom_env(self) -> List[EnvVar]:
        values = parse_key_values(self.options.custom_envs, "environment variable")
        return [EnvVar(name=name, value=value) for name, value in values.items()]

    def labels(self, git: GitRepository, branch: str) -> Dict[str, str]:
        labels = {"owner": git.organisation, "repo": git.name, "branch": branch}
        if self.options.context:
            labels["context"] = self.options.context
        return merge_maps(labels, parse_key_values(self.options.custom_labels, "label"))

    def build_number_allocator(self) -> Optional[BuildNumberAllocator]:
        if self.allocator is not None or self.options.writes_only:
            return self.allocator
        url = self.options.build_number_url or BUILD_NUMBER_URL
        if url:
            self.allocator = HTTPBuildNumberClient(url)
        else:
            logger.info("no build number service configured, deriving build numbers from PipelineActivities")
            self.allocator = ClusterBuildNumberIssuer(self.cluster_client(), self.options.namespace)
        return self.allocator

    def version_stream(self) -> Optional[DockerImageResolver]:
        if self.image_resolver is None and VERSIONS_DIR:
            self.image_resolver = VersionStreamResolver(Path(VERSIONS_DIR))
        return self.image_resolver

    def cluster_client(self) -> ClusterClient:
        if self.cluster is None:
            self.cluster = KubectlClient()
        return self.cluster
