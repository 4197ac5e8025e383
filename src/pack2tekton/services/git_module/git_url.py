import re
from urllib.parse import urlparse

from ...models import GitRepository
from .exceptions import GitURLError

GIT_PREFIX = "git@"
DEFAULT_GIT_HOST = "github.com"


def parse_git_url(text: str) -> GitRepository:
    """
    Разбирает URL git-репозитория на host / organisation / name.

    Поддерживаются https/http/ssh URL, git@host:org/repo и пути Bitbucket Server
    (/scm/..., /projects/<p>/repos/<r>).
    """
    text = (text or "").strip()
    if not text:
        raise GitURLError(text)

    if text.startswith(GIT_PREFIX):
        t = text[len(GIT_PREFIX):].strip("/")
        if t.endswith(".git"):
            t = t[: -len(".git")]
        arr = re.split(r"[:/]", t)
        if len(arr) >= 3:
            return GitRepository(
                url=text, scheme="git", host=arr[0], organisation=arr[1], name=arr[2], project=arr[1]
            )
        raise GitURLError(text)

    u = urlparse(text)
    if not u.scheme and not u.netloc:
        raise GitURLError(text)
    host = u.hostname or DEFAULT_GIT_HOST
    if u.port:
        host = f"{host}:{u.port}"
    org, name = _parse_path(u.path, text)
    return GitRepository(
        url=text, scheme=u.scheme or "https", host=host, organisation=org, name=name, project=org
    )


def _parse_path(path: str, text: str):
    trim_path = path
    if trim_path.startswith("/scm"):
        trim_path = trim_path[len("/scm"):]
    trim_path = trim_path.replace("/projects", "", 1).replace("/repos", "", 1)
    trim_path = trim_path.strip("/")
    if trim_path.endswith(".git"):
        trim_path = trim_path[: -len(".git")]

    arr = trim_path.split("/")
    if len(arr) >= 2 and arr[0] and arr[1]:
        return arr[0], arr[1]
    raise GitURLError(text)
