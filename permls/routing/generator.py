#
from typing import Union, Optional, Tuple, List
import logging
import math

import numpy as np
from scipy.linalg import block_diag
from torch.utils.data import Dataset

from permls.routing.formats import TSPInstance
from permls.routing.edge_data import EdgeWeightStore

__all__ = [
    "TSPGenerator",
    "TSPDataset",
    "build_store",
]
logger = logging.getLogger(__name__)


def build_store(instance: TSPInstance, rounding: bool = True) -> EdgeWeightStore:
    """Create the edge-weight store of a (coordinate based) TSP instance."""
    return EdgeWeightStore.from_coords(
        instance.coords,
        scale=instance.scale,
        rounding=rounding,
    )


class DataSampler:
    """Sampler implementing different options to generate node coordinates."""
    def __init__(self,
                 n_components: int = 5,
                 n_dims: int = 2,
                 coords_sampling_dist: str = "uniform",
                 covariance_type: str = "diag",
                 mu_sampling_dist: str = "normal",
                 mu_sampling_params: Tuple = (0, 1),
                 sigma_sampling_dist: str = "uniform",
                 sigma_sampling_params: Tuple = (0.1, 0.3),
                 random_state: Optional[Union[int, np.random.Generator]] = None,
                 ):
        """

        Args:
            n_components: number of mixture components
            n_dims: dimension of sampled features, e.g. 2 for Euclidean coordinates
            coords_sampling_dist: type of distribution to sample coordinates, one of ["uniform", "gm"]
            covariance_type: type of covariance matrix, one of ['diag', 'full']
            mu_sampling_dist: type of distribution to sample initial mus, one of ['uniform', 'normal']
            mu_sampling_params: parameters for mu sampling distribution
            sigma_sampling_dist: type of distribution to sample initial sigmas, one of ['uniform', 'normal']
            sigma_sampling_params: parameters for sigma sampling distribution
            random_state: seed integer or numpy random generator
        """
        self.nc = n_components
        self.f = n_dims
        self.coords_sampling_dist = coords_sampling_dist.lower()
        if self.coords_sampling_dist not in ["uniform", "gm", "gaussian_mixture"]:
            raise ValueError(f"unknown coords sampling distribution: <{coords_sampling_dist}>")
        self.covariance_type = covariance_type.lower()
        if self.covariance_type not in ["diag", "full"]:
            raise ValueError(f"unknown covariance type: <{covariance_type}>")
        self.mu_sampling_dist = mu_sampling_dist.lower()
        self.mu_sampling_params = mu_sampling_params
        self.sigma_sampling_dist = sigma_sampling_dist.lower()
        self.sigma_sampling_params = sigma_sampling_params
        # set random generator
        if random_state is None or isinstance(random_state, int):
            self.rnd = np.random.default_rng(random_state)
        else:
            self.rnd = random_state
        self.mu = None
        self.sigma = None

    def seed(self, seed: Optional[int] = None):
        if seed is not None:
            self.rnd = np.random.default_rng(seed)

    def resample_gm(self):
        """Resample mus and sigmas of the mixture components."""
        self.mu = self._sample_mu(self.mu_sampling_dist, self.mu_sampling_params)
        self.sigma = self._sample_sigma(self.sigma_sampling_dist, self.sigma_sampling_params)

    def sample_coords(self, n: int, resample_mixture_components: bool = True) -> np.ndarray:
        """
        Args:
            n: number of samples to draw
            resample_mixture_components: flag to resample mu and sigma of all mixture components for each instance

        Returns:
            coords: (n, n_dims) in [0, 1]
        """
        if self.coords_sampling_dist == "uniform":
            return self.rnd.uniform(size=(n, self.f))
        if resample_mixture_components or self.mu is None:
            self.resample_gm()
        n_per_c = math.ceil(n / self.nc)
        coords = self.rnd.multivariate_normal(
            mean=self.mu,
            cov=self.sigma,
            size=n_per_c,
        ).reshape(-1, self.f)[:n]  # if n % nc != 0, some of the components have 1 more sample
        return self._normalize_coords(coords)

    def _sample_mu(self, dist: str, params: Tuple):
        size = self.nc * self.f
        if dist == "uniform":
            return self.rnd.uniform(size=size, low=params[0], high=params[1])
        elif dist == "normal":
            return self.rnd.normal(size=size, loc=params[0], scale=params[1])
        else:
            raise ValueError(f"unknown sampling distribution: <{dist}>")

    def _sample_sigma(self, dist: str, params: Tuple):
        size = self.nc * self.f**2 if self.covariance_type == "full" else self.nc * self.f
        if dist == "uniform":
            x = self.rnd.uniform(size=size, low=params[0], high=params[1])
        elif dist == "normal":
            x = np.abs(self.rnd.normal(size=size, loc=params[0], scale=params[1]))
        else:
            raise ValueError(f"unknown sampling distribution: <{dist}>")
        if self.covariance_type == "full":
            # block diagonal matrix to model covariance only
            # between features of each individual component
            x = x.reshape((self.nc, self.f, self.f))
            x = x @ x.transpose(0, 2, 1)   # positive semi-definite blocks
            return block_diag(*x)
        return np.diag(x)

    @staticmethod
    def _normalize_coords(coords: np.ndarray):
        """Applies joint min-max normalization to all coordinate dimensions."""
        coords = coords - coords.min(axis=0)
        max_val = coords.max()  # joint max to preserve relative spatial distances
        if max_val > 0:
            coords = coords / max_val
        return coords


class TSPGenerator:
    """Wraps random instance generation for the TSP."""
    def __init__(self,
                 seed: Optional[int] = None,
                 scale: float = 1000.0,
                 float_prec: np.dtype = np.float32,
                 **kwargs):
        self._seed = seed
        self.scale = scale
        self.float_prec = float_prec
        self.sampler = DataSampler(random_state=seed, **kwargs)

    def seed(self, seed: Optional[int] = None):
        """Set generator seed."""
        if self._seed is None or (seed is not None and self._seed != seed):
            self._seed = seed
            self.sampler.seed(seed)

    def generate(self,
                 sample_size: int = 1,
                 graph_size: int = 20,
                 **kwargs) -> List[TSPInstance]:
        """Generate TSP instances with node coordinates in [0, 1].

        Args:
            sample_size: size of dataset (number of problem instances)
            graph_size: size of problem instance graph (number of nodes)

        Returns:
            list of TSPInstance
        """
        logger.debug(f"Sampling {sample_size} problems with graph of size {graph_size}.")
        return [
            TSPInstance(
                coords=self.sampler.sample_coords(n=graph_size, **kwargs).astype(self.float_prec),
                graph_size=graph_size,
                symmetric=True,
                scale=self.scale,
            )
            for _ in range(sample_size)
        ]


class TSPDataset(Dataset):
    """TSP dataset wrapper."""
    def __init__(self, seed: Optional[int] = None, **kwargs):
        """

        Args:
            seed: seed for random generator
            **kwargs:  additional kwargs for the generator
        """
        super(TSPDataset, self).__init__()
        self.gen = TSPGenerator(seed=seed, **kwargs)
        self.size = None
        self.data = None

    def seed(self, seed: int):
        self.gen.seed(seed)

    def sample(self, sample_size: int = 1000, graph_size: int = 100, **kwargs):
        """Samples a new dataset based on specified config."""
        self.data = self.gen.generate(
            sample_size=sample_size,
            graph_size=graph_size,
            **kwargs
        )
        self.size = len(self.data)
        return self

    def __len__(self):
        return self.size

    def __getitem__(self, idx):
        return self.data[idx]
