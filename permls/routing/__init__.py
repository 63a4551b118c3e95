#
from .formats import *
from .edge_data import EdgeWeightStore, select_kind, INT_KINDS, FLOAT_KINDS
from .tour import Tour, is_permutation
from .generator import TSPGenerator, TSPDataset, build_store
from .construction_h import ConstructionHeuristic, CONSTRUCTION_METHODS
from .evaluation import eval_tsp, eval_tour
