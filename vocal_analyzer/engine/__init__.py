"""Engine layer - Live and offline orchestration.

Live:    push(samples) -> tick() -> LiveSnapshot (pitch, note, vibrato, key)
Offline: SampleBuffer -> [Key, Vocal Range, Tempo] -> AnalysisReport
"""

from .live import LiveSession, LiveSnapshot, NoteStabilizer, RingBuffer
from .offline import AnalysisReport, OfflineAnalyzer, STAGES

__all__ = [
    "LiveSession",
    "LiveSnapshot",
    "NoteStabilizer",
    "RingBuffer",
    "AnalysisReport",
    "OfflineAnalyzer",
    "STAGES",
]
