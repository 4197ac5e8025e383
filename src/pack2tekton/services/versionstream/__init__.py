from .resolver import DockerImageResolver, ImageResolution, VersionStreamResolver, resolve_image

__all__ = ["DockerImageResolver", "ImageResolution", "VersionStreamResolver", "resolve_image"]
