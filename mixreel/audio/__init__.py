from .acquirer import AcquireOptions, AudioAcquirer, build_audio_filters, compute_clip_start, plan_fades

__all__ = ["AcquireOptions", "AudioAcquirer", "build_audio_filters", "compute_clip_start", "plan_fades"]
