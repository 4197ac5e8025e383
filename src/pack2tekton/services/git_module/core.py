import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from git import (
    Repo as GitRepo,
    GitCommandError,
    InvalidGitRepositoryError,
    NoSuchPathError,
)

from ...config import BASE_TEMP_DIR, PACKS_CACHE_DIR
from ...models import GitRepository
from .exceptions import GitBuildPackError, GitCloneError, GitLocalPathError
from .git_url import parse_git_url
from .models import LocalRepo
from .utils import PathLike, ensure_dir, make_temp_dir, remove_dir

logger = logging.getLogger(__name__)


class GitPack2Tekton:
    """
    Высокоуровневый фасад над GitPython для компилятора:

    - clone_to_temp(url, ...): init + fetch + checkout во временную папку;
    - init_build_pack(url, ref): clone-or-pull репозитория build pack'ов;
    - from_existing_path(path): использование уже существующей директории;
    - current_branch(path) / find_git_info(path): сведения о рабочей копии.
    """

    def __init__(self, temp_dir: PathLike = BASE_TEMP_DIR, packs_dir: PathLike = PACKS_CACHE_DIR) -> None:
        self.temp_dir = Path(temp_dir)
        self.packs_dir = Path(packs_dir)

    async def clone_to_temp(
        self,
        git_url: str,
        branch: str = "",
        revision: str = "",
        pull_request_number: str = "",
    ) -> LocalRepo:
        """
        Неглубоко забирает нужную ревизию в новую временную папку.

        Для PR дополнительно забирается pull/<n>/head в локальную ветку branch.
        :raises GitCloneError: при любых ошибках git; временная папка удаляется.
        """
        logs: List[str] = []
        repo_dir = make_temp_dir(self.temp_dir, prefix="git_")
        logs.append(f"Shallow cloning repository {git_url} to temp dir {repo_dir}")
        logger.info("shallow cloning repository %s to temp dir %s", git_url, repo_dir)

        refspecs: List[str] = []
        if pull_request_number:
            refspecs.append(f"pull/{pull_request_number}/head:{branch}")
        commitish = revision or "master"
        refspecs.append(commitish)

        repo_obj: Optional[GitRepo] = None
        try:
            repo_obj = GitRepo.init(repo_dir)
            origin = repo_obj.create_remote("origin", git_url)
            logs.append(f"Fetching {refspecs} from {git_url}")
            origin.fetch(refspec=refspecs, depth=1)
            repo_obj.git.checkout(commitish)
            logs.append(f"Checked out {commitish} in {repo_dir}")
        except GitCommandError as e:
            logs.append(str(e))
            remove_dir(repo_dir)
            raise GitCloneError(repository=git_url, revision=commitish, logs=logs)
        finally:
            if repo_obj is not None:
                repo_obj.close()

        return LocalRepo(repo_path=repo_dir, logs=logs, is_temporary=True)

    def init_build_pack(self, pack_url: str, pack_ref: str) -> Path:
        """
        Клонирует (или обновляет) репозиторий build pack'ов в кеш
        <packs_dir>/<host>/<path> и возвращает путь к его каталогу packs.
        """
        logs: List[str] = []
        u = urlparse(pack_url[:-4] if pack_url.endswith(".git") else pack_url)
        if not u.netloc:
            raise GitBuildPackError(pack_url, pack_ref, logs=[f"Failed to parse build pack URL: {pack_url}"])
        pack_dir = ensure_dir(self.packs_dir / u.netloc / u.path.strip("/"))
        logs.append(f"Build pack git dir: {pack_dir}")

        repo_obj: Optional[GitRepo] = None
        try:
            if (pack_dir / ".git").exists():
                repo_obj = GitRepo(pack_dir)
                repo_obj.remotes.origin.pull()
                logs.append(f"Pulled {pack_url}")
            else:
                repo_obj = GitRepo.clone_from(pack_url, pack_dir)
                logs.append(f"Cloned {pack_url}")
            if pack_ref and pack_ref != "master":
                repo_obj.git.checkout(pack_ref)
                logs.append(f"Checked out {pack_ref}")
        except (GitCommandError, InvalidGitRepositoryError) as e:
            logs.append(str(e))
            raise GitBuildPackError(pack_url, pack_ref, logs=logs)
        finally:
            if repo_obj is not None:
                repo_obj.close()

        return pack_dir / "packs"

    async def from_existing_path(self, path: PathLike) -> LocalRepo:
        """
        Использует уже существующую директорию как корень проекта.
        Ничего не копирует и не клонирует, просто валидирует путь.

        :raises GitLocalPathError: если путь не существует или не является директорией.
        """
        logs: List[str] = []
        repo_path = Path(path)
        logs.append(f"Using existing path as repository: {repo_path}")

        if not repo_path.is_dir():
            logs.append("Path does not exist or is not a directory.")
            raise GitLocalPathError(path=str(repo_path), logs=logs)

        # is_temporary=False: cleanup() не трогает реальный проект
        return LocalRepo(repo_path=repo_path, logs=logs, is_temporary=False)

    def current_branch(self, path: PathLike) -> str:
        try:
            with GitRepo(path) as repo_obj:
                return repo_obj.active_branch.name
        except (InvalidGitRepositoryError, NoSuchPathError, TypeError) as e:
            # TypeError: detached HEAD
            raise GitLocalPathError(path=str(path), logs=[f"failed to find git branch: {e!r}"])

    def find_git_info(self, path: PathLike) -> GitRepository:
        try:
            with GitRepo(path) as repo_obj:
                url = repo_obj.remotes.origin.url
        except (InvalidGitRepositoryError, NoSuchPathError, AttributeError) as e:
            raise GitLocalPathError(path=str(path), logs=[f"failed to find git information: {e!r}"])
        return parse_git_url(url)
