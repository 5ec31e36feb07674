"""Value tree editor: widgets, forms and the schema session."""

from .editor import ChoiceWidget as ChoiceWidget
from .editor import Form as Form
from .editor import MessageEditor as MessageEditor
from .editor import RepeatedList as RepeatedList
from .editor import default_element as default_element
from .editor import project as project
from .editor import set_key as set_key
from .editor import widget_for as widget_for
from .session import FormSession as FormSession
from .session import LoadedSchema as LoadedSchema
from .session import load_schema as load_schema
from .widgets import EditError as EditError
from .widgets import EnumChoice as EnumChoice
from .widgets import NumberEntry as NumberEntry
from .widgets import TextEntry as TextEntry
from .widgets import Toggle as Toggle
from .widgets import Widget as Widget
