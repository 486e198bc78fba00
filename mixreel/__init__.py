"""
mixreel
Genera videos cortos a partir de mixes de audio: clip de audio + frames
animados renderizados en un navegador headless + composición con FFmpeg.
"""

__version__ = "0.3.0"
