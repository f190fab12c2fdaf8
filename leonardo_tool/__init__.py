"""
leonardo-tool: Leonardo.ai image generation as an agent tool.

Submits a generation job to the Leonardo REST API and polls it at a fixed
interval until the images are ready, the job fails, or the time budget runs
out.
"""

__version__ = "0.1.0"

from leonardo_tool.config import Config, load_config, resolve_api_key
from leonardo_tool.errors import LeonardoError
from leonardo_tool.poller import PollState, StatusPoller
from leonardo_tool.request import GenerationRequest, PresetStyle
from leonardo_tool.submitter import submit_generation
from leonardo_tool.tool import GenerationResult, LeonardoImageTool, create_leonardo_tool

__all__ = [
    "Config",
    "load_config",
    "resolve_api_key",
    "LeonardoError",
    "PollState",
    "StatusPoller",
    "GenerationRequest",
    "PresetStyle",
    "submit_generation",
    "GenerationResult",
    "LeonardoImageTool",
    "create_leonardo_tool",
]
