#
import logging
from typing import Optional
from timeit import default_timer

__all__ = ["Budget"]
logger = logging.getLogger(__name__)


class Budget:
    """
    Computational budget shared between a search run and its controller.

    The search records every tour evaluation and every completed
    iteration (neighborhood scan or generation) and polls
    :meth:`is_exhausted` at iteration boundaries. The controller may stop
    a run at any time via :meth:`cancel`.

    Args:
        max_evaluations: maximum number of tour evaluations
        max_time: maximum wall-clock time in seconds, measured from :meth:`start`
        max_iterations: maximum number of iterations (scans / generations)
    """
    def __init__(self,
                 max_evaluations: Optional[int] = None,
                 max_time: Optional[float] = None,
                 max_iterations: Optional[int] = None,
                 ):
        if max_evaluations is None and max_time is None and max_iterations is None:
            raise ValueError(f"a budget needs at least one of "
                             f"'max_evaluations', 'max_time' or 'max_iterations'.")
        assert max_evaluations is None or max_evaluations >= 0
        assert max_time is None or max_time >= 0
        assert max_iterations is None or max_iterations >= 0
        self.max_evaluations = max_evaluations
        self.max_time = max_time
        self.max_iterations = max_iterations

        self.num_evaluations = 0
        self.num_iterations = 0
        self._tinit = None
        self._cancelled = False

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}("
                f"evaluations={self.num_evaluations}/{self.max_evaluations}, "
                f"iterations={self.num_iterations}/{self.max_iterations}, "
                f"time={self.elapsed:.3f}/{self.max_time})")

    @classmethod
    def from_cfg(cls, cfg) -> "Budget":
        """Create a budget from a (hydra) config node or dict."""
        return cls(
            max_evaluations=cfg.get("max_evaluations", None),
            max_time=cfg.get("max_time", None),
            max_iterations=cfg.get("max_iterations", None),
        )

    def start(self) -> "Budget":
        """Start the clock. Called by the engines at the beginning of a run."""
        if self._tinit is None:
            self._tinit = default_timer()
        return self

    def reset(self) -> "Budget":
        """Reset all counters to allow reuse of the same limits for a new run."""
        self.num_evaluations = 0
        self.num_iterations = 0
        self._tinit = None
        self._cancelled = False
        return self

    @property
    def elapsed(self) -> float:
        if self._tinit is None:
            return 0.0
        return default_timer() - self._tinit

    def record_evaluation(self, n: int = 1):
        self.num_evaluations += n

    def record_iteration(self, n: int = 1):
        self.num_iterations += n

    def cancel(self):
        """Cooperatively stop the run at the next budget check."""
        logger.debug("budget cancelled.")
        self._cancelled = True

    def is_exhausted(self) -> bool:
        if self._cancelled:
            return True
        if self.max_evaluations is not None and self.num_evaluations >= self.max_evaluations:
            return True
        if self.max_iterations is not None and self.num_iterations >= self.max_iterations:
            return True
        if self.max_time is not None and self.elapsed >= self.max_time:
            return True
        return False
