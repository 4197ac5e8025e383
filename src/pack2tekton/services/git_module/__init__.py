from .core import GitPack2Tekton
from .models import LocalRepo
from .git_url import parse_git_url

from .exceptions import (
    GitExceptions,
    GitCloneError,
    GitBuildPackError,
    GitLocalPathError,
    GitURLError,
)

__all__ = [
    "GitPack2Tekton",
    "LocalRepo",
    "parse_git_url",
    "GitExceptions",
    "GitCloneError",
    "GitBuildPackError",
    "GitLocalPathError",
    "GitURLError",
]
