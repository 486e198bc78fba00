"""Composición y conversión de video con FFmpeg."""

from .composer import ComposeOptions, ConvertOptions, VideoComposer, metadata_args

__all__ = ["ComposeOptions", "ConvertOptions", "VideoComposer", "metadata_args"]
