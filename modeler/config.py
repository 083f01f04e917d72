"""
Config files and engine settings (OmegaConf).

- load_config / save_config / merge_configs for graph snapshots and settings files
- ``_base_`` key: path of a file merged underneath (relative to the including file)
- load_settings: DEFAULT_SETTINGS <- settings file <- "key=value" overrides
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from omegaconf import DictConfig, OmegaConf

DEFAULT_SETTINGS: Dict[str, Any] = {
    "logging": {
        "level": "WARNING",
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    },
    "graph": {
        # Reject add_edge calls that would close a cycle.
        "reject_cycles": True,
    },
    "selector": {
        # Raise on unrecognized selector atoms instead of ignoring them.
        "strict": False,
    },
}


def load_config(path: Union[str, Path, DictConfig]) -> DictConfig:
    """Load a YAML/JSON config with ``_base_`` inheritance."""
    if isinstance(path, (str, Path)):
        path = Path(path)
        cfg = OmegaConf.load(path)
        here = path.parent
    else:
        cfg = path
        here = Path.cwd()

    if not isinstance(cfg, DictConfig):
        raise ValueError(f"Config {path} must contain a mapping at the top level")

    if "_base_" in cfg:
        base_path = Path(cfg._base_)
        if not base_path.is_absolute():
            base_path = here / base_path
        base = load_config(base_path)
        cfg = OmegaConf.merge(base, cfg)
        del cfg["_base_"]

    return cfg


def save_config(config: DictConfig, path: Union[str, Path]) -> None:
    OmegaConf.save(config, path)


def merge_configs(*configs: Union[DictConfig, Dict[str, Any]]) -> DictConfig:
    """Merge several configs (last one wins)."""
    return OmegaConf.merge(*configs)


def load_settings(
    path: Optional[Union[str, Path]] = None,
    overrides: Iterable[str] = (),
) -> DictConfig:
    """Defaults, then an optional settings file, then dotlist overrides ("graph.reject_cycles=false")."""
    layers = [OmegaConf.create(DEFAULT_SETTINGS)]
    if path is not None:
        layers.append(load_config(path))
    overrides = list(overrides)
    if overrides:
        layers.append(OmegaConf.from_dotlist(overrides))
    return merge_configs(*layers)


def graph_options(settings: DictConfig) -> Dict[str, Any]:
    """Keyword arguments for Graph(...) / Graph.load(...) taken from settings."""
    return {
        "reject_cycles": bool(settings.graph.reject_cycles),
        "strict_selectors": bool(settings.selector.strict),
    }
