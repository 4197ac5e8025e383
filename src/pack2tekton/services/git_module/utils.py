import logging
import os
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def on_rm_error(func, path, exc_info):
    """
    Обработчик ошибок для shutil.rmtree:
    - снимает флаг read-only (частый кейс для .git/objects/pack на Windows),
    - повторно вызывает функцию удаления.
    """
    os.chmod(path, stat.S_IWRITE)
    func(path)


def ensure_dir(path: PathLike) -> Path:
    """
    Гарантирует, что каталог существует, и возвращает его как Path.
    """
    base = Path(path)
    base.mkdir(parents=True, exist_ok=True)
    return base


def make_temp_dir(base: PathLike, prefix: str = "git_") -> Path:
    return Path(tempfile.mkdtemp(prefix=prefix, dir=ensure_dir(base)))


def remove_dir(path: PathLike) -> None:
    """Удаление временного каталога; неудача: только предупреждение."""
    logger.info("removing the temp directory %s", path)
    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=on_rm_error)
        else:
            shutil.rmtree(path, onerror=on_rm_error)
    except OSError as e:
        logger.warning("failed to delete dir %s: %s", path, e)
