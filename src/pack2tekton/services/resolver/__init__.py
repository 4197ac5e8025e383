from .buildpack import (
    load_pipeline_config,
    load_project_config,
    resolve_build_pack_coordinates,
    resolve_pipeline_config,
    validate_build_packs,
)

__all__ = [
    "load_pipeline_config",
    "load_project_config",
    "resolve_build_pack_coordinates",
    "resolve_pipeline_config",
    "validate_build_packs",
]
