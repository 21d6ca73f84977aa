"""HTTP surface for the pipeline."""

from .api import create_app, set_pipeline_instance

__all__ = ["create_app", "set_pipeline_instance"]
