from typing import List, Optional

from exception import CLIException


class GitExceptions(CLIException):
    """
    Базовое исключение для работы с Git/репозиториями.

    Дополнительно хранит логи (steps), накопленные во время операции.
    """

    def __init__(
        self,
        *args,
        description: str = "Something happend when work with Git",
        logs: Optional[List[str]] = None,
    ) -> None:
        super().__init__(*args, description=description)
        self.logs: List[str] = logs or []


class GitCloneError(GitExceptions):
    """
    Ошибка при клонировании (init + fetch + checkout) исходников во временную папку.
    """

    def __init__(
        self,
        repository: str,
        revision: str,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to clone repository {repository} at revision {revision}"
        super().__init__(*args, description=description, logs=logs)
        self.repository = repository
        self.revision = revision


class GitBuildPackError(GitExceptions):
    """
    Ошибка при получении репозитория build pack'ов (clone/pull/checkout ref).
    """

    def __init__(
        self,
        pack_url: str,
        pack_ref: str,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to fetch build packs from {pack_url} at ref {pack_ref}"
        super().__init__(*args, description=description, logs=logs)
        self.pack_url = pack_url
        self.pack_ref = pack_ref


class GitLocalPathError(GitExceptions):
    """
    Ошибка при использовании локального пути до репозитория/проекта.
    """

    def __init__(
        self,
        path: str,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to use local repository path {path}"
        super().__init__(*args, description=description, logs=logs)
        self.path = path


class GitURLError(GitExceptions):
    def __init__(self, url: str, *args) -> None:
        super().__init__(*args, description=f"Could not parse Git URL {url}")
        self.url = url
