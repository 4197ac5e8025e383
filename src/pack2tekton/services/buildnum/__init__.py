from .issuer import BuildNumberAllocator, MemoryBuildNumberIssuer, allocate_build_number, pipeline_id
from .http_client import HTTPBuildNumberClient

__all__ = [
    "BuildNumberAllocator",
    "MemoryBuildNumberIssuer",
    "HTTPBuildNumberClient",
    "allocate_build_number",
    "pipeline_id",
]
