from tubestats.models.base import Base
from tubestats.models.channel import Channel
from tubestats.models.video import Video
from tubestats.models.statistics import VideoStatistics
from tubestats.models.runs import RefreshRun

__all__ = [
    "Base",
    "Channel",
    "Video",
    "VideoStatistics",
    "RefreshRun",
]
