"""Layouts, animaciones y render de frames en navegador headless."""

from .animations import evaluate_directive, frame_updates, waveform_bars
from .background import BackgroundEnricher
from .browser import BrowserPool
from .layout import Layout, LayoutBuilder, Visuals
from .renderer import FrameRenderer, RenderOptions

__all__ = [
    "evaluate_directive",
    "frame_updates",
    "waveform_bars",
    "BackgroundEnricher",
    "BrowserPool",
    "Layout",
    "LayoutBuilder",
    "Visuals",
    "FrameRenderer",
    "RenderOptions",
]
