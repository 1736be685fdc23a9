# src/image_derivatives/core/error_handling.py

import functools
import logging
from typing import Any, Dict, List

from PIL import Image, UnidentifiedImageError

from .exceptions import DerivativePipelineError, ImageProcessingError, StorageError


def with_error_handling(func):
    """
    A decorator to wrap functions with standardized error handling.

    Pipeline errors pass through untouched. Pillow decode errors become
    ImageProcessingError, file system errors become StorageError.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except DerivativePipelineError:
            raise
        except (UnidentifiedImageError, Image.DecompressionBombError, SyntaxError) as e:
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise ImageProcessingError(f"Failed to decode image in {func.__name__}: {e}") from e
        except (ValueError, EOFError) as e:
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise ImageProcessingError(f"Image transformation error in {func.__name__}: {e}") from e
        except OSError as e:
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise StorageError(f"File operation failed in {func.__name__}: {e}") from e
    return wrapper


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{error_detail['item']}': {error_detail['error']}"
                )
        elif exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Never suppress exceptions raised inside the block
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item within the 'with' block.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): A string identifying the item that failed (e.g., asset id).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")
