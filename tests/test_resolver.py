"""
Tests for the config resolver: project config discovery, pack loading and override.
"""

import pytest

import settings
from exception import BuildPackNotFoundError, ConfigurationError, MissingOptionError
from pack2tekton.models import CompileOptions, ProjectConfig
from pack2tekton.services.resolver import (
    load_project_config,
    resolve_build_pack_coordinates,
    resolve_pipeline_config,
    validate_build_packs,
)


class TestLoadProjectConfig:
    def test_missing_file_gives_empty_config(self, source_dir):
        config, path = load_project_config(source_dir)

        assert config == ProjectConfig()
        assert path == source_dir / "jenkins-x.yml"

    def test_context_file_is_preferred(self, source_dir):
        (source_dir / "jenkins-x.yml").write_text("buildPack: maven\n")
        (source_dir / "jenkins-x-docs.yml").write_text("buildPack: none\n")

        config, path = load_project_config(source_dir, context="docs")

        assert config.build_pack == "none"
        assert path.name == "jenkins-x-docs.yml"

    def test_missing_context_file_falls_back(self, source_dir):
        (source_dir / "jenkins-x.yml").write_text("buildPack: maven\n")

        config, _ = load_project_config(source_dir, context="docs")

        assert config.build_pack == "maven"

    def test_invalid_yaml(self, source_dir):
        (source_dir / "jenkins-x.yml").write_text("pipelines: [1, 2\n")

        with pytest.raises(ConfigurationError):
            load_project_config(source_dir)


class TestResolvePipelineConfig:
    def test_pack_only(self, packs_dir, source_dir):
        config = resolve_pipeline_config("maven", packs_dir, ProjectConfig(), source_dir / "jenkins-x.yml")

        assert config.agent.get_image() == "maven"
        assert config.pipelines.pull_request.build.steps[1].name == "mvn-install"

    def test_missing_pack_names_pack_and_directory(self, packs_dir, source_dir):
        with pytest.raises(BuildPackNotFoundError) as exc_info:
            resolve_pipeline_config("rust", packs_dir, ProjectConfig(), source_dir / "jenkins-x.yml")

        assert "rust" in str(exc_info.value)
        assert str(packs_dir / "rust") in str(exc_info.value)

    def test_override_slot_wins_and_rest_is_inherited(self, packs_dir, source_dir):
        (source_dir / "jenkins-x.yml").write_text(
            "pipelines:\n"
            "  pullRequest:\n"
            "    build:\n"
            "      steps:\n"
            "        - sh: make build\n"
            "          name: make\n"
        )
        project_config, path = load_project_config(source_dir)

        config = resolve_pipeline_config("maven", packs_dir, project_config, path)

        assert [s.command for s in config.pipelines.pull_request.build.steps] == ["make build"]
        assert config.pipelines.pull_request.promote.steps[0].dir == "./charts/preview"
        assert config.pipelines.release.build.steps[0].name == "mvn-deploy"
        assert config.agent.get_image() == "maven"

    def test_none_pack_uses_project_config(self, source_dir):
        (source_dir / "jenkins-x.yml").write_text(
            "buildPack: none\n"
            "pipelineConfig:\n"
            "  agent:\n"
            "    image: golang\n"
            "  pipelines:\n"
            "    release:\n"
            "      build:\n"
            "        steps:\n"
            "          - sh: go build\n"
        )
        project_config, path = load_project_config(source_dir)

        config = resolve_pipeline_config("none", None, project_config, path)

        assert config.agent.get_image() == "golang"
        assert config.pipelines.release.build.steps[0].command == "go build"

    def test_none_pack_without_project_pipeline(self, source_dir):
        with pytest.raises(ConfigurationError):
            resolve_pipeline_config("none", None, ProjectConfig(), source_dir / "jenkins-x.yml")


class TestBuildPackCoordinates:
    def test_cli_wins(self):
        options = CompileOptions(build_pack_url="https://cli/packs.git", build_pack_ref="cli")
        project = ProjectConfig(build_pack_git_url="https://project/packs.git", build_pack_git_ref="project")

        assert resolve_build_pack_coordinates(options, project) == ("https://cli/packs.git", "cli")

    def test_project_config_then_defaults(self):
        project = ProjectConfig(build_pack_git_url="https://project/packs.git")

        url, ref = resolve_build_pack_coordinates(CompileOptions(), project)

        assert url == "https://project/packs.git"
        assert ref == settings.DEFAULT_BUILD_PACK_REF

    def test_missing_option(self, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_BUILD_PACK_URL", "")

        with pytest.raises(MissingOptionError):
            resolve_build_pack_coordinates(CompileOptions(), ProjectConfig())


class TestValidateBuildPacks:
    def test_valid_packs(self, packs_dir):
        assert validate_build_packs(packs_dir) == {"maven": []}

    def test_invalid_pack_fails(self, packs_dir):
        (packs_dir / "broken").mkdir()
        (packs_dir / "broken" / "pipeline.yaml").write_text("pipelines: [1, 2\n")

        with pytest.raises(ConfigurationError):
            validate_build_packs(packs_dir)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            validate_build_packs(tmp_path / "nope")
