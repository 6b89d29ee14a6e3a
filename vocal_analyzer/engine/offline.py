"""Offline mode: key, vocal range and tempo for a complete buffer.

Stages run as checkpointed generators, so the same pipeline can be driven
synchronously (`analyze`) or inside an asyncio event loop (`analyze_async`)
without blocking it for more than one checkpoint slice.
"""

import time
import warnings
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple
import numpy as np

from ..core import (
    AnalysisConfig,
    AnalysisTimeout,
    CancellationToken,
    Checkpoint,
    InvalidInputError,
    SampleBuffer,
    Steps,
    run_steps,
    run_steps_async,
)
from ..analysis.filters import vocal_band_steps
from ..analysis.tempo import TempoAnalyzer, TempoResult
from ..inference.key import ChromaStrategy, KeyEstimate, KeyEstimator
from ..inference.voice import VoiceRangeAnalyzer, VoiceRangeResult

ProgressCallback = Callable[[str], None]

# Progress labels, in pipeline order
STAGE_FILTERING = "Filtering"
STAGE_KEY = "Detecting Key"
STAGE_RANGE = "Analyzing Vocal Range"
STAGE_TEMPO = "Detecting Tempo"
STAGES = (STAGE_FILTERING, STAGE_KEY, STAGE_RANGE, STAGE_TEMPO)


@dataclass(frozen=True)
class AnalysisReport:
    """Merged result of one offline run."""

    key: KeyEstimate
    tempo: TempoResult
    voice: VoiceRangeResult
    duration_seconds: float = 0.0
    sample_rate: int = 0
    timed_out: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "key": self.key.to_dict(),
            "tempo": self.tempo.to_dict(),
            "voice": self.voice.to_dict(),
            "duration_seconds": round(self.duration_seconds, 3),
            "sample_rate": self.sample_rate,
            "timed_out": list(self.timed_out),
        }


class OfflineAnalyzer:
    """Run the full offline pipeline on a SampleBuffer."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize OfflineAnalyzer.

        Args:
            config: Analysis configuration (default: AnalysisConfig())
            clock: Time source for checkpoints and stage deadlines
        """
        self.config = config or AnalysisConfig()
        self._clock = clock

        strategy = (
            ChromaStrategy.SPECTRAL
            if self.config.use_spectral_key_detection
            else ChromaStrategy.HISTOGRAM
        )
        self.key_estimator = KeyEstimator(strategy, pitch_algorithm=self.config.key_pitch_algorithm)
        self.range_analyzer = VoiceRangeAnalyzer()
        self.tempo_analyzer = TempoAnalyzer()

    def analyze(
        self,
        buffer: SampleBuffer,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> AnalysisReport:
        """
        Analyze a buffer, blocking until done.

        Args:
            buffer: Decoded audio
            progress: Called with each stage label as it starts
            token: Cancels the run at the next checkpoint

        Returns:
            AnalysisReport

        Raises:
            InvalidInputError: If the buffer is not a SampleBuffer
            AnalysisCancelled: If the token was cancelled
        """
        return run_steps(self.analyze_steps(buffer, progress, token))

    async def analyze_async(
        self,
        buffer: SampleBuffer,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> AnalysisReport:
        """Same as `analyze`, yielding to the event loop at every checkpoint."""
        return await run_steps_async(self.analyze_steps(buffer, progress, token))

    def prepare(self, buffer: SampleBuffer) -> np.ndarray:
        """Mono, windowed and gained copy of the buffer's samples."""
        if not isinstance(buffer, SampleBuffer):
            raise InvalidInputError(
                f"Expected a SampleBuffer, got {type(buffer).__name__}"
            )

        audio = buffer.mono()
        window = self.config.analysis_window_seconds
        if window > 0:
            audio = audio[:int(window * buffer.sample_rate)]
            if len(audio) == 0:
                raise InvalidInputError(f"Analysis window of {window}s holds no samples")
        return np.asarray(audio, dtype=np.float32) * np.float32(self.config.input_gain)

    def analyze_steps(
        self,
        buffer: SampleBuffer,
        progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> Steps:
        """Checkpointed pipeline shared by `analyze` and `analyze_async`."""
        config = self.config
        audio = self.prepare(buffer)
        sr = buffer.sample_rate

        checkpoint = Checkpoint(
            every_frames=config.checkpoint_frames,
            slice_seconds=config.checkpoint_slice_seconds,
            token=token,
            clock=self._clock,
        )
        timed_out = []

        def report(stage: str) -> None:
            checkpoint.check()
            if progress is not None:
                progress(stage)

        # 1. Vocal-band copy for the range scan
        report(STAGE_FILTERING)
        vocal = audio
        if config.vocal_bandpass:
            vocal = yield from vocal_band_steps(audio, sr, checkpoint)
        yield

        # 2. Key on the full mix
        report(STAGE_KEY)
        try:
            with checkpoint.limit(config.key_timeout_seconds, "Key detection"):
                key = yield from self.key_estimator.estimate_steps(audio, sr, checkpoint)
        except AnalysisTimeout as e:
            warnings.warn(f"{e}; reporting an unknown key")
            key = KeyEstimate.unknown()
            timed_out.append("key")

        # 3. Range and voice type on the filtered copy
        report(STAGE_RANGE)
        voice = yield from self.range_analyzer.analyze_steps(vocal, sr, checkpoint)

        # 4. Tempo
        report(STAGE_TEMPO)
        try:
            with checkpoint.limit(config.tempo_timeout_seconds, "Tempo detection"):
                tempo = yield from self.tempo_analyzer.detect_steps(audio, sr, checkpoint)
        except AnalysisTimeout as e:
            warnings.warn(f"{e}; reporting an unknown tempo")
            tempo = TempoResult.unknown()
            timed_out.append("tempo")

        return AnalysisReport(
            key=key,
            tempo=tempo,
            voice=voice,
            duration_seconds=len(audio) / sr,
            sample_rate=sr,
            timed_out=tuple(timed_out),
        )
