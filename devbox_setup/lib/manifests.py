from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml

MANIFEST_DIR = Path(__file__).resolve().parents[1] / "manifests"


def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a mapping/dict: {p}")
    return data


@lru_cache(maxsize=None)
def load_components_manifest() -> Dict[str, Any]:
    return load_yaml(MANIFEST_DIR / "components.yaml")


def packages_for(section: str, manager: str, manifest: Dict[str, Any] | None = None) -> List[str]:
    """Package list for one manager from a per-manager manifest section."""

    data = load_components_manifest() if manifest is None else manifest
    groups = data.get(section) or {}
    if not isinstance(groups, dict):
        raise ValueError(f"components.yaml: {section} must be a mapping")
    pkgs = groups.get(manager) or []
    if not isinstance(pkgs, list):
        raise ValueError(f"components.yaml: {section}.{manager} must be a list")
    return [str(p).strip() for p in pkgs if str(p).strip()]


def ai_tools(manifest: Dict[str, Any] | None = None) -> List[Dict[str, str]]:
    data = load_components_manifest() if manifest is None else manifest
    tools = data.get("ai_tools") or []
    if not isinstance(tools, list):
        raise ValueError("components.yaml: ai_tools must be a list")
    out: List[Dict[str, str]] = []
    for t in tools:
        if not isinstance(t, dict) or not t.get("name") or not t.get("url"):
            raise ValueError(f"components.yaml: ai_tools entry needs name and url: {t!r}")
        out.append({"name": str(t["name"]), "url": str(t["url"]), "description": str(t.get("description") or "")})
    return out


def probed_tools(manifest: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
    data = load_components_manifest() if manifest is None else manifest
    tools = data.get("summary_tools") or []
    if not isinstance(tools, list):
        raise ValueError("components.yaml: summary_tools must be a list")
    return [dict(t) for t in tools if isinstance(t, dict) and t.get("name") and t.get("command")]
