"""
CLI tests via click's CliRunner.
"""

from click.testing import CliRunner

from cli import main, render_steps
from model import Container, ObjectMeta, Task, TaskSpec


def make_task(name, *steps):
    containers = [
        Container(name=step_name, image=image, command=["/bin/sh", "-c"], args=[command])
        for step_name, command, image in steps
    ]
    return Task(metadata=ObjectMeta(name=name), spec=TaskSpec(steps=containers))


def test_render_steps_single_task():
    task = make_task("t", ("build-make", "make", "maven"), ("build-test", "make test", "golang"))

    lines = render_steps([task]).splitlines()

    assert lines[0].split() == ["NAME", "COMMAND", "IMAGE"]
    assert lines[1].split() == ["build-make", "/bin/sh", "-c", "make", "maven"]
    assert len(lines) == 3


def test_render_steps_shows_task_column_for_many_tasks():
    tasks = [make_task("one", ("a", "x", "i")), make_task("two", ("b", "y", "j"))]

    lines = render_steps(tasks).splitlines()

    assert lines[0].split() == ["TASK", "NAME", "COMMAND", "IMAGE"]
    assert lines[2].split()[0] == "two"


def test_validate_buildpacks(packs_dir):
    result = CliRunner().invoke(main, ["validate-buildpacks", "--dir", str(packs_dir)])

    assert result.exit_code == 0, result.output
    assert "SUCCESS: maven" in result.output


def test_validate_buildpacks_reports_broken_pack(packs_dir):
    (packs_dir / "broken").mkdir()
    (packs_dir / "broken" / "pipeline.yaml").write_text("pipelines: [1, 2\n", encoding="utf-8")

    result = CliRunner().invoke(main, ["validate-buildpacks", "--dir", str(packs_dir)])

    assert result.exit_code == 1
    assert "one or more build packs failed validation" in result.output


def test_create_task_rejects_unknown_kind(source_dir):
    result = CliRunner().invoke(main, ["create-task", "--dir", str(source_dir), "--kind", "nightly"])

    assert result.exit_code == 2
    assert "nightly" in result.output


def test_create_task_outside_git_repository(source_dir, packs_dir):
    result = CliRunner().invoke(main, ["create-task", "--dir", str(source_dir), "--pack", "maven", "--dry-run"])

    assert result.exit_code == 1
    assert "Error" in result.output
