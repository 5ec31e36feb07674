"""Codec bridge: value trees to wire bytes and back."""

from .bridge import EMPTY as EMPTY
from .bridge import EMPTY_PAYLOAD as EMPTY_PAYLOAD
from .bridge import DecodeFallback as DecodeFallback
from .bridge import DisplayValue as DisplayValue
from .bridge import Empty as Empty
from .bridge import Opaque as Opaque
from .bridge import Structured as Structured
from .bridge import Text as Text
from .bridge import Transport as Transport
from .bridge import decode as decode
from .bridge import decode_tree as decode_tree
from .bridge import display_tree as display_tree
from .bridge import encode as encode
from .bridge import submit as submit
from .encoder import ValueValidationError as ValueValidationError
from .encoder import validate as validate
from .wire import DecodeError as DecodeError
