from .crds import CRDAssembler, GeneratedCRDs, pipeline_resource_name, validate_pipeline, validate_run, validate_task
from .stage import Stage, StageFlattener, docker_registry, docker_registry_org, select_lifecycles
from .steps import SecretLookup, StepTransformer
from .version import BuildValues, VersionMode, VersionResolver

__all__ = [
    "BuildValues",
    "CRDAssembler",
    "GeneratedCRDs",
    "SecretLookup",
    "Stage",
    "StageFlattener",
    "StepTransformer",
    "VersionMode",
    "VersionResolver",
    "docker_registry",
    "docker_registry_org",
    "pipeline_resource_name",
    "select_lifecycles",
    "validate_pipeline",
    "validate_run",
    "validate_task",
]
