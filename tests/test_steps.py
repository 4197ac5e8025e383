"""
Tests for the step transformer: image resolution, Kaniko rewrite, env and volume injection.
"""

import settings
from model import Container, EnvVar, Param
from pack2tekton.models import CompileOptions, Step
from pack2tekton.services.builders import StepTransformer
from pack2tekton.services.builders.steps import normalize_command

PARAMS = [Param(name="version", value="0.0.1"), Param(name="build_id", value="7")]


def make_transformer(git_info, registry="gcr.io", get_secret=None, image_resolver=None, **options):
    options.setdefault("pipeline_kind", "pullRequest")
    return StepTransformer(
        CompileOptions(**options),
        git_info,
        "feature-x",
        registry,
        "acme",
        PARAMS,
        image_resolver=image_resolver,
        get_secret=get_secret,
    )


def env_of(container):
    return {e.name: e.value for e in container.env}


class PinningResolver:
    def resolve_docker_image(self, image):
        return image + ":1.2.3"


class BrokenResolver:
    def resolve_docker_image(self, image):
        raise RuntimeError("version stream unavailable")


class TestImage:
    def test_step_image_wins(self, git_info):
        transformer = make_transformer(git_info, custom_image="custom")

        assert transformer.resolve_step_image(Step(image="step-image"), "agent").image == "step-image"

    def test_custom_image_over_agent(self, git_info):
        transformer = make_transformer(git_info, custom_image="custom")

        assert transformer.resolve_step_image(Step(), "agent").image == "custom"

    def test_agent_image(self, git_info):
        assert make_transformer(git_info).resolve_step_image(Step(), "agent").image == "agent"

    def test_default_image(self, git_info):
        transformer = make_transformer(git_info)

        assert transformer.resolve_step_image(Step(), "").image == settings.DEFAULT_CONTAINER_IMAGE

    def test_version_stream_pins_image(self, git_info):
        transformer = make_transformer(git_info, image_resolver=PinningResolver())

        resolution = transformer.resolve_step_image(Step(), "maven")

        assert resolution.image == "maven:1.2.3"
        assert not resolution.fell_back
        assert transformer.fallbacks == []

    def test_version_stream_failure_keeps_image(self, git_info):
        transformer = make_transformer(git_info, image_resolver=BrokenResolver())

        resolution = transformer.resolve_step_image(Step(), "maven")

        assert resolution.image == "maven"
        assert resolution.fell_back
        assert "version stream unavailable" in resolution.reason
        assert transformer.fallbacks == [resolution]


class TestCommand:
    def test_normalize_unescapes_and_replaces_version_file(self):
        assert normalize_command(r"jx step tag --version \$(cat VERSION)") == "jx step tag --version ${VERSION}"
        assert normalize_command("export VERSION=`cat VERSION` && make release") == "make release"

    def test_transform_wraps_command_in_shell(self, git_info):
        step = Step(name="build-make", command="make", args=["build"], dir="/workspace/source/app")

        container = make_transformer(git_info).transform(step, "golang")

        assert container.name == "build-make"
        assert container.image == "golang"
        assert container.command == ["/bin/sh", "-c"]
        assert container.args == ["make build"]
        assert container.working_dir == "/workspace/source/app"

    def test_default_working_dir(self, git_info):
        container = make_transformer(git_info).transform(Step(name="x", command="ls"), "golang")

        assert container.working_dir == "/workspace/source"


class TestKaniko:
    def test_skaffold_build_is_rewritten(self, git_info):
        transformer = make_transformer(git_info)
        step = Step(name="build-container-build", command="skaffold build -f skaffold.yaml")

        container = transformer.transform(step, "maven")

        assert container.image == settings.KANIKO_IMAGE
        assert container.command == ["/kaniko/executor"]
        assert "--destination=gcr.io/acme/petclinic:${inputs.params.version}" in container.args
        assert "--context=/workspace/source" in container.args
        assert "--dockerfile=/workspace/source/Dockerfile" in container.args
        assert not any(a.startswith("--skip-tls-verify-registry") for a in container.args)
        assert "--insecure" not in container.args

    def test_cache_repo_uses_project_id(self, git_info):
        transformer = make_transformer(git_info, project_id="my-project")

        container = transformer.transform(Step(name="b", command="skaffold build"), "maven")

        assert "--cache-repo=gcr.io/my-project/cache" in container.args

    def test_private_registry_skips_tls(self, git_info):
        transformer = make_transformer(git_info, registry="docker-registry.jx:5000")

        container = transformer.transform(Step(name="b", command="skaffold build"), "maven")

        assert "--skip-tls-verify-registry=docker-registry.jx:5000" in container.args
        assert "--insecure" not in container.args

    def test_ip_registry_is_insecure(self, git_info):
        transformer = make_transformer(git_info, registry="10.0.0.1:5000")

        container = transformer.transform(Step(name="b", command="skaffold build"), "maven")

        assert "--insecure" in container.args

    def test_no_kaniko(self, git_info):
        transformer = make_transformer(git_info, no_kaniko=True)

        container = transformer.transform(Step(name="b", command="skaffold build ."), "maven")

        assert container.image == "maven"
        assert container.args == ["skaffold build ."]

    def test_other_commands_untouched(self, git_info):
        container = make_transformer(git_info).transform(Step(name="b", command="docker build ."), "maven")

        assert container.command == ["/bin/sh", "-c"]


class TestEnv:
    def test_builtins(self, git_info):
        container = make_transformer(git_info, context="docs").inject_env(Container(name="build-make"))

        env = env_of(container)
        assert env["DOCKER_REGISTRY"] == "gcr.io"
        assert env["BUILD_NUMBER"] == "7"
        assert env["PIPELINE_KIND"] == "pullRequest"
        assert env["PIPELINE_CONTEXT"] == "docs"
        assert env["SOURCE_URL"] == "https://github.com/acme/petclinic.git"
        assert env["REPO_OWNER"] == "acme"
        assert env["REPO_NAME"] == "petclinic"
        assert env["JOB_NAME"] == "acme/petclinic/feature-x"
        assert env["APP_NAME"] == "petclinic"
        assert env["BRANCH_NAME"] == "feature-x"
        assert env["JX_BATCH_MODE"] == "true"
        assert env["VERSION"] == "${inputs.params.version}"
        assert env["BUILD_ID"] == "${inputs.params.build_id}"
        assert env["PREVIEW_VERSION"] == "${inputs.params.version}"
        assert "GOOGLE_APPLICATION_CREDENTIALS" not in env

    def test_step_and_global_values_are_never_overwritten(self, git_info):
        container = Container(
            name="build-make",
            env=[EnvVar(name="DOCKER_REGISTRY", value="mine"), EnvVar(name="A", value="step")],
        )
        global_env = [EnvVar(name="A", value="global"), EnvVar(name="BRANCH_NAME", value="global-branch")]

        env = env_of(make_transformer(git_info).inject_env(container, global_env))

        assert env["DOCKER_REGISTRY"] == "mine"
        assert env["A"] == "step"
        assert env["BRANCH_NAME"] == "global-branch"

    def test_injection_is_idempotent(self, git_info):
        transformer = make_transformer(git_info)
        global_env = [EnvVar(name="DOCKER_CONFIG", value="/home/jenkins/.docker/")]
        container = Container(name="build-container-build", env=[EnvVar(name="A", value="1")])

        once = transformer.inject_env(container, global_env)
        twice = transformer.inject_env(once, global_env)

        assert twice.env == once.env
        names = [e.name for e in once.env]
        assert len(names) == len(set(names))

    def test_jenkins_url_is_stripped(self, git_info):
        container = Container(name="x", env=[EnvVar(name="JENKINS_URL", value="http://jenkins")])

        assert "JENKINS_URL" not in env_of(make_transformer(git_info).inject_env(container))

    def test_credentials_for_image_build_step(self, git_info):
        container = Container(name=settings.IMAGE_BUILD_STEP_NAME)

        env = env_of(make_transformer(git_info).inject_env(container))

        assert env["GOOGLE_APPLICATION_CREDENTIALS"] == settings.KANIKO_SECRET_MOUNT

    def test_no_credentials_without_kaniko(self, git_info):
        container = Container(name=settings.IMAGE_BUILD_STEP_NAME)

        env = env_of(make_transformer(git_info, no_kaniko=True).inject_env(container))

        assert "GOOGLE_APPLICATION_CREDENTIALS" not in env

    def test_input_container_is_not_modified(self, git_info):
        container = Container(name="x")

        make_transformer(git_info).inject_env(container)

        assert container.env == []


class TestVolumes:
    def test_podinfo_is_always_mounted_once(self, git_info):
        transformer = make_transformer(git_info)

        container, volumes = transformer.inject_volumes(Container(name="a"), [])
        other, volumes = transformer.inject_volumes(Container(name="b"), volumes)
        again, volumes = transformer.inject_volumes(container, volumes)

        assert [v.name for v in volumes] == ["podinfo"]
        assert [m.mount_path for m in container.volume_mounts] == ["/etc/podinfo"]
        assert again.volume_mounts == container.volume_mounts
        assert other.volume_mounts == container.volume_mounts

    def test_kaniko_secret_mounted_when_present(self, git_info):
        calls = []

        def get_secret(name, namespace):
            calls.append((name, namespace))
            return {"kaniko-secret": "{}"}

        transformer = make_transformer(git_info, get_secret=get_secret)

        container, volumes = transformer.inject_volumes(Container(name=settings.IMAGE_BUILD_STEP_NAME), [])

        assert [v.name for v in volumes] == ["kaniko-secret", "podinfo"]
        assert volumes[0].secret.secret_name == "kaniko-secret"
        assert volumes[0].secret.items[0].path == "secret.json"
        assert "/kaniko-secret" in [m.mount_path for m in container.volume_mounts]
        assert calls == [("kaniko-secret", "jx")]

    def test_missing_secret_is_a_warning(self, git_info, caplog):
        transformer = make_transformer(git_info, get_secret=lambda name, namespace: None)

        container, volumes = transformer.inject_volumes(Container(name=settings.IMAGE_BUILD_STEP_NAME), [])

        assert [v.name for v in volumes] == ["podinfo"]
        assert transformer.lookup_kaniko_secret().found is False
        assert "failed to find secret" in caplog.text

    def test_secret_lookup_error_is_not_fatal(self, git_info):
        def get_secret(name, namespace):
            raise RuntimeError("forbidden")

        transformer = make_transformer(git_info, get_secret=get_secret)

        _, volumes = transformer.inject_volumes(Container(name=settings.IMAGE_BUILD_STEP_NAME), [])

        assert [v.name for v in volumes] == ["podinfo"]
        assert transformer.lookup_kaniko_secret().reason == "forbidden"

    def test_secret_only_for_image_build_step(self, git_info):
        transformer = make_transformer(git_info, get_secret=lambda name, namespace: {"kaniko-secret": "{}"})

        _, volumes = transformer.inject_volumes(Container(name="build-make"), [])

        assert [v.name for v in volumes] == ["podinfo"]
