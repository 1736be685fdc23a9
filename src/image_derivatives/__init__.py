"""Image derivative pipeline: validate, stage and optimize uploaded images."""

from .core.factories import PipelineFactory
from .core.services import ImagePipeline

__version__ = "0.1.0"

__all__ = ["ImagePipeline", "PipelineFactory", "__version__"]
