from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel

from exception import ConfigurationError

logger = logging.getLogger(__name__)

# Директории, которые игнорируем при обходе репозитория
IGNORED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    ".venv",
    "venv",
    "__pycache__",
    "dist",
    "build",
    "target",
    ".idea",
    ".vscode",
}

EXT_TO_LANGUAGE: Dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "javascript",
    ".tsx": "javascript",
    ".java": "java",
    ".kt": "java",
    ".go": "go",
}

# Файл-маркер -> менеджер пакетов
MANIFEST_TO_PM: Dict[str, str] = {
    "requirements.txt": "pip",
    "pyproject.toml": "pip",
    "setup.py": "pip",
    "pipfile": "pipenv",
    "package.json": "npm",
    "pom.xml": "maven",
    "build.gradle": "gradle",
    "build.gradle.kts": "gradle",
    "go.mod": "go-mod",
}

# Менеджер пакетов важнее языка: maven и gradle: разные build pack'и для одного java
PM_TO_PACK: List[Tuple[str, str]] = [
    ("maven", "maven"),
    ("gradle", "gradle"),
    ("go-mod", "go"),
    ("npm", "javascript"),
    ("pip", "python"),
    ("pipenv", "python"),
]

LANGUAGE_TO_PACK: Dict[str, str] = {
    "java": "maven",
    "go": "go",
    "javascript": "javascript",
    "python": "python",
}


class StackInfo(BaseModel):
    languages: List[str] = []
    language_counts: Dict[str, int] = {}
    package_managers: List[str] = []
    has_dockerfile: bool = False
    has_helm_chart: bool = False


def _iter_files(base_dir: Path) -> Iterable[Path]:
    """
    Обход файлов репозитория с пропуском служебных и тяжёлых директорий.
    """
    for root, dirs, files in os.walk(base_dir):
        dirs[:] = [d for d in dirs if d not in IGNORED_DIRS]
        for filename in files:
            yield Path(root) / filename


def analyze_stack(repo_path: Path) -> Tuple[StackInfo, List[str]]:
    """
    Определяет языки (по расширениям) и менеджеры пакетов (по манифестам в корне проекта).
    Возвращает StackInfo + лог.
    """
    logs: List[str] = [f"Analyzing source tree: {repo_path}"]
    language_counts: Dict[str, int] = {}
    for file_path in _iter_files(repo_path):
        lang = EXT_TO_LANGUAGE.get(file_path.suffix.lower())
        if lang:
            language_counts[lang] = language_counts.get(lang, 0) + 1

    pms = set()
    for manifest, pm in MANIFEST_TO_PM.items():
        if any(p.name.lower() == manifest for p in repo_path.iterdir() if p.is_file()):
            pms.add(pm)

    stack = StackInfo(
        languages=sorted(language_counts, key=lambda lang: (-language_counts[lang], lang)),
        language_counts=language_counts,
        package_managers=sorted(pms),
        has_dockerfile=(repo_path / "Dockerfile").exists(),
        has_helm_chart=(repo_path / "charts").is_dir(),
    )
    logs.append(f"Detected languages {stack.languages} and package managers {stack.package_managers}")
    return stack, logs


def discover_build_pack(repo_path: Path, packs_dir: Path | None = None) -> str:
    """
    Подбирает build pack по исходникам: сначала по манифесту сборки, потом по
    самому частому языку. Если каталог packs известен, берётся только существующий pack.
    """
    if not repo_path.is_dir():
        raise ConfigurationError(f"failed to discover the build pack: {repo_path} is not a directory")

    stack, logs = analyze_stack(repo_path)
    for line in logs:
        logger.info(line)

    candidates: List[str] = [pack for pm, pack in PM_TO_PACK if pm in stack.package_managers]
    candidates += [LANGUAGE_TO_PACK[lang] for lang in stack.languages if lang in LANGUAGE_TO_PACK]

    for pack in candidates:
        if packs_dir is None or (packs_dir / pack).is_dir():
            logger.info("Discovered build pack %s for %s", pack, repo_path)
            return pack

    raise ConfigurationError(f"failed to discover the build pack for the source code in {repo_path}")
