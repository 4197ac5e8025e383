LOGO = r"""
                  _    ____  _       _        _
  _ __   __ _  ___| | _|___ \| |_ ___| | _____ | |_ ___  _ __
 | '_ \ / _` |/ __| |/ / __) | __/ _ \ |/ / _ \| __/ _ \| '_ \
 | |_) | (_| | (__|   < / __/| ||  __/   < (_) | || (_) | | | |
 | .__/ \__,_|\___|_|\_\_____|\__\___|_|\_\___/ \__\___/|_| |_|
 |_|
"""

# Образы и значения по умолчанию для шагов сборки
KANIKO_IMAGE = "gcr.io/kaniko-project/executor:9912ccbf8d22bbafbf971124600fbb0b13b9cbd6"
KANIKO_SECRET_MOUNT = "/kaniko-secret/secret.json"
KANIKO_SECRET_NAME = "kaniko-secret"
KANIKO_SECRET_KEY = "kaniko-secret"
DEFAULT_CONTAINER_IMAGE = "gcr.io/jenkinsxio/builder-maven"

# Шаг, который собирает docker-образ в build pack'ах
IMAGE_BUILD_STEP_NAME = "build-container-build"

DEFAULT_BUILD_PACK_URL = "https://github.com/jenkins-x-buildpacks/jenkins-x-kubernetes.git"
DEFAULT_BUILD_PACK_REF = "master"

DEFAULT_SERVICE_ACCOUNT = "tekton-bot"
DEFAULT_TRIGGER = "manual"
DEFAULT_SOURCE_NAME = "source"
DEFAULT_OUTPUT_DIR = "out"
DEFAULT_NAMESPACE = "jx"

# Registry внутри кластера, если ни флаг, ни jenkins-x.yml его не задают
DEFAULT_DOCKER_REGISTRY = "docker-registry.jx.svc.cluster.local:5000"

# Публичный registry, для которого TLS-проверку не отключаем
PUBLIC_REGISTRY_HOST = "gcr.io"

# Раннер, под которым исполняются пайплайны (для when: "!prow")
PIPELINE_RUNNER = "prow"

TEKTON_API_VERSION = "tekton.dev/v1alpha1"
JENKINS_API_VERSION = "jenkins.io/v1"
