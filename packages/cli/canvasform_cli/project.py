"""Project directory support: finds and loads .canvasform/ configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from canvasform.diagram import Diagram, ProjectConfig

PROJECT_DIR = ".canvasform"


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for a .canvasform/ directory."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / PROJECT_DIR).is_dir():
            return parent
    return None


def load_project_config(project_root: Path) -> dict[str, Any]:
    """Load .canvasform/config.yaml if it exists."""
    config_path = project_root / PROJECT_DIR / "config.yaml"
    if config_path.exists():
        return yaml.safe_load(config_path.read_text()) or {}
    return {}


def get_project_diagram_path(project_root: Path) -> Path | None:
    """Return the path to .canvasform/diagram.yaml if it exists."""
    diagram_path = project_root / PROJECT_DIR / "diagram.yaml"
    if diagram_path.exists():
        return diagram_path
    return None


def resolve_diagram_path(diagram_file: str | Path | None) -> Path:
    """Resolve a diagram file path; if None, try the project directory."""
    if diagram_file:
        return Path(diagram_file)

    root = find_project_root()
    if root:
        diagram_path = get_project_diagram_path(root)
        if diagram_path:
            return diagram_path

    raise FileNotFoundError(
        f"No diagram file specified and no {PROJECT_DIR}/diagram.yaml found. "
        "Pass a diagram file or create a project directory."
    )


def apply_project_config(diagram: Diagram, config: dict[str, Any]) -> Diagram:
    """Fill project settings the diagram leaves unset from the project config."""
    known = {k: v for k, v in config.items() if k in ProjectConfig.model_fields}
    if not known:
        return diagram
    base = ProjectConfig.model_validate(known)
    explicit = {f: getattr(diagram.project, f) for f in diagram.project.model_fields_set}
    merged = base.model_copy(update=explicit)
    return diagram.model_copy(update={"project": merged})


def load_diagram(diagram_file: str | Path | None) -> Diagram:
    path = resolve_diagram_path(diagram_file)
    diagram = Diagram.from_file(path)
    root = find_project_root(path.parent)
    if root:
        diagram = apply_project_config(diagram, load_project_config(root))
    return diagram
