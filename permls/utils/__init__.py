#
from .utils import *
from .errors import *
from .budget import Budget
