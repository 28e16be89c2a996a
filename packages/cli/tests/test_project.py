"""Tests for project directory support."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from canvasform.diagram import Diagram, NamingConvention, ProjectConfig
from canvasform_cli.project import (
    apply_project_config,
    find_project_root,
    get_project_diagram_path,
    load_diagram,
    load_project_config,
    resolve_diagram_path,
)


def test_find_project_root_exists(tmp_path: Path):
    (tmp_path / ".canvasform").mkdir()
    result = find_project_root(tmp_path)
    assert result == tmp_path


def test_find_project_root_not_found(tmp_path: Path):
    result = find_project_root(tmp_path)
    assert result is None


def test_find_project_root_parent(tmp_path: Path):
    (tmp_path / ".canvasform").mkdir()
    child = tmp_path / "sub" / "deep"
    child.mkdir(parents=True)
    result = find_project_root(child)
    assert result == tmp_path


def test_load_project_config(tmp_path: Path):
    proj_dir = tmp_path / ".canvasform"
    proj_dir.mkdir()
    config = {"terraform_version": ">= 1.5", "common_tags": {"team": "platform"}}
    (proj_dir / "config.yaml").write_text(yaml.dump(config))
    result = load_project_config(tmp_path)
    assert result["common_tags"] == {"team": "platform"}


def test_load_project_config_missing(tmp_path: Path):
    result = load_project_config(tmp_path)
    assert result == {}


def test_get_project_diagram_path(tmp_path: Path):
    proj_dir = tmp_path / ".canvasform"
    proj_dir.mkdir()
    assert get_project_diagram_path(tmp_path) is None
    (proj_dir / "diagram.yaml").write_text("name: x\n")
    assert get_project_diagram_path(tmp_path) == proj_dir / "diagram.yaml"


def test_resolve_diagram_path_explicit():
    path = resolve_diagram_path("my_diagram.yaml")
    assert path == Path("my_diagram.yaml")


def test_resolve_diagram_path_not_found(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError, match="diagram.yaml"):
        resolve_diagram_path(None)


def test_resolve_diagram_path_from_project(tmp_path: Path, monkeypatch):
    proj_dir = tmp_path / ".canvasform"
    proj_dir.mkdir()
    (proj_dir / "diagram.yaml").write_text("name: x\n")
    monkeypatch.chdir(tmp_path)
    assert resolve_diagram_path(None).resolve() == (proj_dir / "diagram.yaml").resolve()


def test_apply_project_config_fills_unset_fields():
    diagram = Diagram(name="d")
    merged = apply_project_config(diagram, {"common_tags": {"team": "platform"}, "terraform_version": ">= 1.5"})
    assert merged.project.common_tags == {"team": "platform"}
    assert merged.project.terraform_version == ">= 1.5"
    assert diagram.project.common_tags == {}


def test_apply_project_config_diagram_wins():
    diagram = Diagram(project=ProjectConfig(naming=NamingConvention(enabled=True, env="prod")))
    merged = apply_project_config(
        diagram,
        {"naming": {"enabled": True, "env": "dev"}, "common_tags": {"team": "platform"}},
    )
    assert merged.project.naming.env == "prod"
    assert merged.project.common_tags == {"team": "platform"}


def test_apply_project_config_ignores_unknown_keys():
    diagram = Diagram()
    assert apply_project_config(diagram, {"editor": {"theme": "dark"}}) is diagram


def test_load_diagram_outside_project(tmp_path: Path):
    p = tmp_path / "d.yaml"
    p.write_text("name: Solo\n")
    assert load_diagram(p).name == "Solo"


def test_load_diagram_applies_project_config(tmp_path: Path):
    proj_dir = tmp_path / ".canvasform"
    proj_dir.mkdir()
    (proj_dir / "config.yaml").write_text("terraform_version: '>= 1.7'\n")
    p = tmp_path / "d.yaml"
    p.write_text("name: InProject\n")
    assert load_diagram(p).project.terraform_version == ">= 1.7"
