import logging
from pathlib import Path
from typing import List

import click

import settings
from exception import CLIException
from model import Task
from utils import async_click
from pack2tekton.core import Pack2TektonCore
from pack2tekton.models import PIPELINE_KINDS, CompileOptions
from pack2tekton.services.resolver import validate_build_packs


def render_steps(tasks: List[Task]) -> str:
    """Таблица шагов для --view; колонка TASK только если Task'ов несколько."""
    show_task = len(tasks) > 1
    header = ["TASK", "NAME", "COMMAND", "IMAGE"] if show_task else ["NAME", "COMMAND", "IMAGE"]
    rows = [header]
    for task in tasks:
        for step in task.spec.steps:
            row = [step.name, step.full_command(), step.image]
            rows.append([task.name] + row if show_task else row)
    widths = [max(len(row[i]) for row in rows) for i in range(len(header))]
    return "\n".join(
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in rows
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Подробные логи")
def main(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("create-task")
@click.option("-d", "--dir", "dir_", default=".", help="Каталог с исходниками проекта")
@click.option("-o", "--output", default=settings.DEFAULT_OUTPUT_DIR, help="Каталог для сгенерированных YAML")
@click.option("-n", "--namespace", default=settings.DEFAULT_NAMESPACE, help="Namespace кластера")
@click.option("-p", "--pack", default="", help="Имя build pack'а; пусто: определить по исходникам")
@click.option("-u", "--url", "build_pack_url", default="", help="git URL репозитория build pack'ов")
@click.option("-r", "--ref", "build_pack_ref", default="", help="git ref репозитория build pack'ов")
@click.option("-k", "--kind", default="release", type=click.Choice(PIPELINE_KINDS), help="Вид пайплайна")
@click.option("-c", "--context", default="", help="Контекст пайплайна (несколько пайплайнов на репозиторий)")
@click.option("-l", "--label", "labels", multiple=True, help="Метка PipelineRun вида NAME=VALUE")
@click.option("-e", "--env", "envs", multiple=True, help="Переменная окружения шагов вида NAME=VALUE")
@click.option("--trigger", default=settings.DEFAULT_TRIGGER, help="Тип триггера PipelineRun")
@click.option("--service-account", default=settings.DEFAULT_SERVICE_ACCOUNT, help="ServiceAccount PipelineRun")
@click.option("--source", "source_name", default=settings.DEFAULT_SOURCE_NAME, help="Имя ресурса с исходниками")
@click.option("--target-path", default="", help="Куда в workspace выкладывать исходники")
@click.option("-b", "--branch", default="", help="Ветка; пусто: текущая ветка в --dir")
@click.option("--revision", default="", help="Ревизия для checkout")
@click.option("--pr-number", "pull_request_number", default="", help="Номер pull request'а")
@click.option("--clone-git-url", default="", help="Склонировать исходники во временный каталог")
@click.option("--keep-temp-dir", is_flag=True, help="Не удалять временный клон")
@click.option("--image", "custom_image", default="", help="Образ для всех шагов")
@click.option("--default-image", default=settings.DEFAULT_CONTAINER_IMAGE, help="Образ, если pack его не задаёт")
@click.option("--no-apply", is_flag=True, help="Не применять в кластер, только записать YAML")
@click.option("--dry-run", is_flag=True, help="Без кластера и внешних сервисов")
@click.option("--view", "view_steps", is_flag=True, help="Только показать шаги")
@click.option("--no-release-prepare", is_flag=True, help="Не вычислять версию релиза")
@click.option("--no-kaniko", is_flag=True, help="Не заменять skaffold build на Kaniko")
@click.option("--kaniko-image", default=settings.KANIKO_IMAGE, help="Образ Kaniko")
@click.option("--kaniko-secret-mount", default=settings.KANIKO_SECRET_MOUNT, help="Путь к ключу Kaniko в контейнере")
@click.option("--kaniko-secret", default=settings.KANIKO_SECRET_NAME, help="Секрет с ключом Kaniko")
@click.option("--kaniko-secret-key", default=settings.KANIKO_SECRET_KEY, help="Ключ в секрете Kaniko")
@click.option("--project-id", default="", help="ID проекта для cache-repo Kaniko")
@click.option("--docker-registry", default="", help="Docker registry")
@click.option("--docker-registry-org", default="", help="Организация в docker registry")
@click.option("--build-number-url", default="", help="Адрес сервиса выдачи номеров сборок")
@async_click
async def create_task(dir_: str, output: str, labels, envs, keep_temp_dir: bool, **kwargs):
    """Генерирует Tekton Pipeline/Task/PipelineRun для build pack'а и применяет их."""
    click.echo(settings.LOGO + "\n", err=True)

    options = CompileOptions(
        dir=dir_,
        output_dir=output,
        custom_labels=list(labels),
        custom_envs=list(envs),
        delete_temp_dir=not keep_temp_dir,
        pipeline_kind=kwargs.pop("kind"),
        **kwargs,
    )

    core = Pack2TektonCore(options)
    try:
        result = await core.create_task()
    except CLIException as e:
        for line in core.logs:
            click.echo(line, err=True)
        raise click.ClickException(e.description)

    if options.view_steps:
        click.echo(render_steps(result.crds.tasks))
        return

    for line in result.logs:
        click.echo(line, err=True)
    for warning in result.warnings:
        click.secho(warning, fg="yellow", err=True)

    if result.written:
        for path in result.written:
            click.echo(f"YAML сохранён в файл: {path}", err=True)
    else:
        click.echo(f"PipelineRun {result.crds.run.name} создан в namespace {options.namespace}")


@main.command("validate-buildpacks")
@click.option("--dir", "packs_dir", required=True, help="Каталог packs репозитория build pack'ов")
def validate_buildpacks(packs_dir: str):
    """Проверяет синтаксис pipeline.yaml всех build pack'ов."""
    try:
        results = validate_build_packs(Path(packs_dir))
    except CLIException as e:
        raise click.ClickException(e.description)
    for pack in results:
        click.echo(f"SUCCESS: {pack}")


if __name__ == "__main__":
    main()
