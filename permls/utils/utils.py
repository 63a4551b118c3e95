#
from typing import Dict, List, Union, Any

from omegaconf import DictConfig, ListConfig, OmegaConf


__all__ = [
    "rm_from_kwargs",
    "parse_from_cfg",
]


def rm_from_kwargs(kwargs: Dict, keys: List):
    """Remove specified items from kwargs."""
    keys_ = list(kwargs.keys())
    for k in keys:
        if k in keys_:
            del kwargs[k]
    return kwargs


def parse_from_cfg(x: Union[DictConfig, ListConfig, Any]):
    """Convert omegaconf containers to plain python containers."""
    if isinstance(x, (DictConfig, ListConfig)):
        return OmegaConf.to_container(x, resolve=True)
    return x
