from .commons import *
from .encoding import *
from .keyspec import *
from .keyfactory import *
from .pem import *
from .builder import *
from .certificate import *
