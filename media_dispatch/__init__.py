"""
Media Dispatch
Multi-provider image and video generation dispatcher

Supported providers: KIE.ai (createTask and Veo endpoints), Google Gemini
(generateContent and Veo long-running operations)
"""

import logging

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("[MediaDispatch]")

__version__ = "1.0.0"

from .dispatch_config import DispatchConfig, get_config
from .generation_types import GenerationRequest, GenerationResult, Job, JobState
from .utils.errors import ErrorKind, GenerationError
from .utils.model_registry import MediaKind, ModelDescriptor, ModelRegistry, get_model_registry
from .dispatcher import GenerationDispatcher, dispatch

__all__ = [
    "DispatchConfig",
    "ErrorKind",
    "GenerationDispatcher",
    "GenerationError",
    "GenerationRequest",
    "GenerationResult",
    "Job",
    "JobState",
    "MediaKind",
    "ModelDescriptor",
    "ModelRegistry",
    "dispatch",
    "get_config",
    "get_model_registry",
]
