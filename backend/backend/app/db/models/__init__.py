from .common import *  # noqa
from .security_audit import *  # noqa
from .projects import *  # noqa
from .team import *  # noqa
from .finance import *  # noqa
