"""
Avatar Card Compositor
~~~~~~~~~~~~~~~~~~~~~~
Renders circular avatars and outlined text onto a background image.

:copyright: (c) 2018-present HitchedSyringe
:license: MPL-2.0, see LICENSE for more information.

"""


__title__ = "avatarcard"
__author__ = "HitchedSyringe"
__copyright__ = "Copyright (c) 2018-present HitchedSyringe"
__license__ = "MPL-2.0"
__version__ = "1.0.0"


from . import utils as utils
from .assets import *
from .compositor import *
from .config import *
from .errors import *
from .http import *
from .layout import *
from .publisher import *
from .server import *
from .service import *
