"""
Subconscious - async Python client for the Subconscious run API.
"""

__version__ = "0.1.0"

from .client import ClientConfig as ClientConfig
from .client import Subconscious as Subconscious
from .errors import APIError as APIError
from .errors import AuthenticationError as AuthenticationError
from .errors import InvalidRequestError as InvalidRequestError
from .errors import NotFoundError as NotFoundError
from .errors import OperationCancelledError as OperationCancelledError
from .errors import RateLimitError as RateLimitError
from .errors import StreamCancelledError as StreamCancelledError
from .errors import StreamProtocolError as StreamProtocolError
from .errors import SubconsciousError as SubconsciousError
from .events import StreamEvent as StreamEvent
from .models import ReasoningNode as ReasoningNode
from .models import Run as Run
from .models import RunInput as RunInput
from .models import RunResult as RunResult
from .models import Usage as Usage
from .schema import output_schema as output_schema
from .streaming import RunStream as RunStream
from .tools import FunctionSpec as FunctionSpec
from .tools import FunctionTool as FunctionTool
from .tools import MCPTool as MCPTool
from .tools import PlatformTool as PlatformTool
