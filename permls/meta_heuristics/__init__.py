#
from .neighborhoods import *
from .crossover import *
from .mutation import *
from .vns import *
from .ea import *
