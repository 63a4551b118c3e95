#
from typing import NamedTuple, Union, List, Optional
import numpy as np
import torch

__all__ = ["TSPInstance", "TSPSolution"]


def format_repr(k, v, space: str = ' '):
    if isinstance(v, int) or isinstance(v, float):
        return f"{space}{k}={v}"
    elif isinstance(v, np.ndarray):
        return f"{space}{k}=ndarray_{list(v.shape)}"
    elif isinstance(v, torch.Tensor):
        return f"{space}{k}=tensor_{list(v.shape)}"
    elif isinstance(v, list) and len(v) > 3:
        return f"{space}{k}=list_{[len(v)]}"
    else:
        return f"{space}{k}={v}"


class TSPInstance(NamedTuple):
    """Typed TSP instance wrapper."""
    coords: Union[np.ndarray, torch.Tensor]
    graph_size: int
    symmetric: bool = True
    scale: float = 1.0

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        info = [format_repr(k, v) for k, v in self._asdict().items()]
        return '{}({})'.format(cls, ', '.join(info))


class TSPSolution(NamedTuple):
    """Typed wrapper for TSP solutions."""
    solution: List[int]
    cost: Optional[Union[int, float]] = None
    run_time: Optional[float] = None
    problem: str = "TSP"
    instance: Optional[TSPInstance] = None

    def update(self, **kwargs):
        return self._replace(**kwargs)
