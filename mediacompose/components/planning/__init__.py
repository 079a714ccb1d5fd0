"""映像/音声のノード列を計画するプランナ群。"""

from .audio_planner import AudioPlan, TrackSkipped, TrackTiming, compute_timing, plan_audio
from .mix_strategy import AverageMix, EmptyMix, MixStrategy, PassthroughMix, select_mix_strategy
from .video_planner import VideoPlan, plan_base_video, plan_image_video

__all__ = [
    "AudioPlan",
    "AverageMix",
    "EmptyMix",
    "MixStrategy",
    "PassthroughMix",
    "TrackSkipped",
    "TrackTiming",
    "VideoPlan",
    "compute_timing",
    "plan_audio",
    "plan_base_video",
    "plan_image_video",
    "select_mix_strategy",
]
