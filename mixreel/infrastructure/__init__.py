"""Adaptadores de procesos externos (FFmpeg / FFprobe)."""

from .ffmpeg import FFmpegRunner, MediaInfo, StreamInfo, parse_probe_payload

__all__ = ["FFmpegRunner", "MediaInfo", "StreamInfo", "parse_probe_payload"]
