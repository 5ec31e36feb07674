"""Schema language interpreter."""

from .descriptor import *
from .oneof import OneofClass as OneofClass
from .oneof import active_member as active_member
from .oneof import classify as classify
from .oneof import clear_group as clear_group
from .oneof import is_synthetic as is_synthetic
from .oneof import real_oneofs as real_oneofs
from .oneof import select_member as select_member
from .oneof import standalone_fields as standalone_fields
from .parser import SchemaParseError as SchemaParseError
from .parser import find_primary as find_primary
from .parser import parse as parse
from .types import *
