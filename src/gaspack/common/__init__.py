from .config import *
from .enum import *
