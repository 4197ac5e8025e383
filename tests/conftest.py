"""
Pytest configuration and fixtures for pack2tekton tests.
"""

import sys
from pathlib import Path

import pytest

# src/ на sys.path, чтобы работали `import settings` и `from pack2tekton import ...`
src_root = Path(__file__).parent.parent / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from pack2tekton.models import CompileOptions, GitRepository  # noqa: E402

MAVEN_PIPELINE_YAML = r"""
agent:
  label: jenkins-maven
  container: maven
env:
  - name: DOCKER_CONFIG
    value: /home/jenkins/.docker/
  - name: _JAVA_OPTIONS
    value: -Xmx400m
pipelines:
  pullRequest:
    build:
      steps:
        - sh: mvn versions:set -DnewVersion=$PREVIEW_VERSION
          name: mvn-set
        - sh: mvn install
          name: mvn-install
        - sh: skaffold build -f skaffold.yaml
          name: container-build
    postBuild:
      steps:
        - sh: jx step post build --image $DOCKER_REGISTRY/$ORG/$APP_NAME:$PREVIEW_VERSION
          name: post-build
    promote:
      steps:
        - dir: ./charts/preview
          steps:
            - sh: make preview
              name: make-preview
            - sh: jx preview --app $APP_NAME --dir ../..
              name: jx-preview
  release:
    setVersion:
      steps:
        - sh: echo \$(jx-release-version) > VERSION
          name: next-version
        - sh: jx step tag --version \$(cat VERSION)
          name: tag-version
    build:
      steps:
        - sh: mvn clean deploy
          name: mvn-deploy
        - sh: skaffold build -f skaffold.yaml
          name: container-build
    promote:
      steps:
        - sh: jx step changelog --version v\$(cat ../../VERSION)
          name: changelog
          dir: charts/petclinic
"""


@pytest.fixture
def git_info():
    """Репозиторий acme/petclinic на github.com."""
    return GitRepository(
        url="https://github.com/acme/petclinic.git",
        scheme="https",
        host="github.com",
        organisation="acme",
        name="petclinic",
        project="acme",
    )


@pytest.fixture
def dry_options():
    return CompileOptions(pipeline_kind="pullRequest", branch="feature-x", dry_run=True, retry_delay=0)


@pytest.fixture
def packs_dir(tmp_path):
    """Каталог packs с одним build pack'ом maven."""
    packs = tmp_path / "packs"
    (packs / "maven").mkdir(parents=True)
    (packs / "maven" / "pipeline.yaml").write_text(MAVEN_PIPELINE_YAML, encoding="utf-8")
    return packs


@pytest.fixture
def source_dir(tmp_path):
    """Исходники проекта без jenkins-x.yml и VERSION."""
    source = tmp_path / "source"
    source.mkdir()
    (source / "pom.xml").write_text("<project/>", encoding="utf-8")
    return source
