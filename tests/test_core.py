"""
End-to-end compilation tests: local source dir + local build packs, no network.
"""

import pytest
import yaml

from exception import ConfigurationError
from pack2tekton.core import Pack2TektonCore
from pack2tekton.models import CompileOptions
from pack2tekton.services.buildnum import MemoryBuildNumberIssuer
from fakes import FakeActivityStore, FakeCluster

STEP_NAMES = [
    "build-mvn-set",
    "build-mvn-install",
    "build-container-build",
    "postbuild-post-build",
    "promote-make-preview",
    "promote-jx-preview",
]


class CountingAllocator(MemoryBuildNumberIssuer):
    def __init__(self):
        super().__init__()
        self.calls = 0

    async def next_build_number(self, pipeline, timeout=None):
        self.calls += 1
        return await super().next_build_number(pipeline, timeout)


@pytest.fixture
def make_core(tmp_path, source_dir, packs_dir, git_info):
    def factory(**overrides):
        values = dict(
            dir=str(source_dir),
            output_dir=str(tmp_path / "out"),
            pack="maven",
            pipeline_kind="pullRequest",
            branch="feature-x",
            dry_run=True,
            retry_delay=0,
        )
        values.update(overrides.pop("options", {}))
        return Pack2TektonCore(CompileOptions(**values), git_info=git_info, packs_dir=packs_dir, **overrides)

    return factory


def step(result, name):
    return next(s for s in result.crds.tasks[0].spec.steps if s.name == name)


@pytest.mark.asyncio
async def test_dry_run_writes_files(make_core, tmp_path):
    cluster = FakeCluster()
    core = make_core(cluster=cluster)

    result = await core.create_task()

    assert result.status == "ok"
    assert result.pack == "maven"
    assert result.build.build_number == "1"
    assert result.build.version == "0.0.1"
    assert len(result.written) == 6
    assert (tmp_path / "out" / "pipeline-run.yml").is_file()
    assert cluster.calls == []

    run = yaml.safe_load((tmp_path / "out" / "pipeline-run.yml").read_text())
    assert run["metadata"]["name"] == "acme-petclinic-feature-x-1"


@pytest.mark.asyncio
async def test_step_names_follow_lifecycles(make_core):
    result = await make_core().create_task()

    assert [s.name for s in result.crds.tasks[0].spec.steps] == STEP_NAMES


@pytest.mark.asyncio
async def test_image_build_uses_kaniko(make_core):
    result = await make_core().create_task()

    container = step(result, "build-container-build")
    assert container.image.startswith("gcr.io/kaniko-project/executor")
    assert container.command == ["/kaniko/executor"]
    assert step(result, "build-mvn-install").image == "maven"


@pytest.mark.asyncio
async def test_custom_env_wins_over_pack(make_core):
    result = await make_core(options={"custom_envs": ["_JAVA_OPTIONS=-Xmx1g"]}).create_task()

    env = {e.name: e.value for e in step(result, "build-mvn-install").env}
    assert env["_JAVA_OPTIONS"] == "-Xmx1g"
    assert env["DOCKER_CONFIG"] == "/home/jenkins/.docker/"
    assert env["BRANCH_NAME"] == "feature-x"


@pytest.mark.asyncio
async def test_custom_labels(make_core):
    result = await make_core(options={"custom_labels": ["team=web", "branch=other"]}).create_task()

    assert result.crds.run.metadata.labels == {
        "owner": "acme",
        "repo": "petclinic",
        "branch": "other",
        "team": "web",
    }


@pytest.mark.asyncio
async def test_view_writes_nothing(make_core, tmp_path):
    result = await make_core(options={"view_steps": True, "dry_run": False}).create_task()

    assert result.written == []
    assert not (tmp_path / "out").exists()
    assert [s.name for s in result.crds.tasks[0].spec.steps] == STEP_NAMES


@pytest.mark.asyncio
async def test_apply_mode(make_core):
    cluster = FakeCluster()
    store = FakeActivityStore()
    core = make_core(
        options={"dry_run": False},
        cluster=cluster,
        activity_store=store,
        allocator=MemoryBuildNumberIssuer(),
    )

    result = await core.create_task()

    assert result.build.version == "0.0.0-SNAPSHOT-feature-x-1"
    assert result.written == []
    assert [key.name for key in store.keys] == ["acme-petclinic-feature-x-1"]
    assert [call for call in cluster.calls if call[0] == "create"] == [
        ("create", "PipelineResource"),
        ("create", "Task"),
        ("create", "Pipeline"),
        ("create", "PipelineRun"),
        ("create", "PipelineStructure"),
    ]
    assert result.crds.run.metadata.owner_references[1].uid == "pipeline-uid"
    assert "created PipelineRun acme-petclinic-feature-x-1" in result.logs


@pytest.mark.asyncio
async def test_unknown_kind_fails_before_external_calls(make_core):
    allocator = CountingAllocator()
    cluster = FakeCluster()
    core = make_core(options={"pipeline_kind": "nightly", "dry_run": False}, cluster=cluster, allocator=allocator)

    with pytest.raises(ConfigurationError) as exc_info:
        await core.create_task()

    assert "Unknown pipeline kind nightly" in str(exc_info.value)
    assert allocator.calls == 0
    assert cluster.calls == []


@pytest.mark.asyncio
async def test_release_without_prepare(make_core):
    result = await make_core(
        options={"pipeline_kind": "release", "branch": "master", "no_release_prepare": True}
    ).create_task()

    names = [s.name for s in result.crds.tasks[0].spec.steps]
    assert names[0] == "setup-jx-git-credentials"
    assert "setversion-next-version" in names
    assert result.build.version == ""


@pytest.mark.asyncio
async def test_build_numbers_increase_across_compilations(make_core):
    cluster = FakeCluster()

    first = await make_core(options={"dry_run": False}, cluster=cluster).create_task()
    second = await make_core(options={"dry_run": False}, cluster=cluster).create_task()

    assert [first.build.build_number, second.build.build_number] == ["1", "2"]
    assert first.crds.run.name == "acme-petclinic-feature-x-1"
    assert second.crds.run.name == "acme-petclinic-feature-x-2"
    assert second.build.version == "0.0.0-SNAPSHOT-feature-x-2"
    assert ("PipelineActivity", "acme-petclinic-feature-x-2") in cluster.objects
