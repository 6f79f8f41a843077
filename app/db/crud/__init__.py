"""CRUD operations module - exports all functions from submodules."""

from .common import *
from .user import *
from .pharmacy import *
from .due import *
from .payment import *
from .event import *
from .election import *
from .communication import *
from .notification import *
from .document import *
from .audit import *
