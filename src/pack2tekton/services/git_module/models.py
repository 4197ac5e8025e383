from dataclasses import dataclass
from pathlib import Path
from typing import List

from .utils import remove_dir


@dataclass
class LocalRepo:
    """
    Рабочая копия исходников, с которой работает компилятор.

    repo_path: корень проекта (здесь ищутся jenkins-x.yml и VERSION).
    logs: текстовые логи шагов подготовки.
    is_temporary: если True, cleanup() удалит repo_path; иначе нет.
    """

    repo_path: Path
    logs: List[str]
    is_temporary: bool = True

    def cleanup(self) -> None:
        """
        Удаляет временную копию, если is_temporary = True.
        Для существующих локальных путей (is_temporary = False) ничего не делает.
        """
        if self.is_temporary and self.repo_path.exists():
            remove_dir(self.repo_path)
