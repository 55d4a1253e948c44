"""End-to-end tests for pitch estimation over whole buffers."""

import math

import numpy as np
import pytest

from swarapitch import (
    ConfigurationError,
    EstimatorConfig,
    PitchService,
    SampleBuffer,
    estimate_pitch,
    estimate_pitch_from_samples,
)

from conftest import SAMPLE_RATE, make_sine


def cents(a, b):
    return 1200.0 * math.log2(a / b)


# =============================================================================
# Core properties
# =============================================================================

class TestEstimatePitch:
    """Test estimate_pitch() on synthetic signals."""

    def test_sine_220(self, sine_220):
        """One second of 220 Hz is found within 2% with full confidence."""
        config = EstimatorConfig(min_frequency=60, max_frequency=1200)
        result = estimate_pitch(SampleBuffer(sine_220, SAMPLE_RATE), config)
        assert result.frequency == pytest.approx(220.0, rel=0.02)
        assert result.confidence >= 0.95
        assert result.total_frames == 42

    @pytest.mark.parametrize("method", ["amdf", "cc", "ac"])
    def test_sine_all_methods(self, method):
        config = EstimatorConfig(method=method, min_frequency=150, max_frequency=1000)
        result = estimate_pitch(SampleBuffer(make_sine(330.0), SAMPLE_RATE), config)
        assert result.frequency == pytest.approx(330.0, rel=0.02)
        assert result.confidence >= 0.95

    def test_silence(self):
        """All zeros gives no frequency and no voiced frames."""
        result = estimate_pitch(SampleBuffer(np.zeros(SAMPLE_RATE), SAMPLE_RATE))
        assert result.frequency is None
        assert result.voiced_frames == 0
        assert result.total_frames == 42
        assert result.confidence == 0.0

    def test_buffer_shorter_than_frame(self):
        """Insufficient data is a normal result, not an error."""
        result = estimate_pitch(SampleBuffer(make_sine(220.0, duration=0.01), SAMPLE_RATE))
        assert result.total_frames == 0
        assert result.voiced_frames == 0
        assert result.frequency is None
        assert result.confidence == 0.0

    def test_empty_buffer(self):
        result = estimate_pitch(SampleBuffer(np.array([]), SAMPLE_RATE))
        assert result.to_dict() == {
            "frequency": None, "confidence": 0.0, "framesAnalyzed": 0, "framesVoiced": 0,
        }

    def test_dc_offset_ignored(self, sine_220):
        """A constant bias does not change the estimate."""
        clean = estimate_pitch(SampleBuffer(sine_220, SAMPLE_RATE))
        biased = estimate_pitch(SampleBuffer(sine_220 + 0.3, SAMPLE_RATE))
        assert biased.frequency == pytest.approx(clean.frequency, abs=0.05)
        assert biased.voiced_frames == clean.voiced_frames

    def test_deterministic(self, sine_220):
        buffer = SampleBuffer(sine_220, SAMPLE_RATE)
        assert estimate_pitch(buffer) == estimate_pitch(buffer)

    def test_counter_invariants(self, rng):
        """voiced <= total and confidence is their ratio."""
        signal = np.concatenate([
            np.zeros(20000),
            make_sine(250.0, duration=0.5),
            rng.uniform(-0.3, 0.3, 10000),
            np.zeros(5000),
        ])
        result = estimate_pitch(SampleBuffer(signal, SAMPLE_RATE))
        assert 0 <= result.voiced_frames <= result.total_frames
        assert result.confidence == round(result.voiced_frames / result.total_frames, 2)
        assert 0.0 < result.confidence < 1.0
        assert result.frequency == pytest.approx(250.0, rel=0.02)

    def test_gated_frames_count_toward_total(self, sine_220):
        """Quiet half lowers confidence without changing the pitch."""
        signal = np.concatenate([sine_220, np.zeros(SAMPLE_RATE)])
        result = estimate_pitch(SampleBuffer(signal, SAMPLE_RATE))
        assert result.frequency == pytest.approx(220.0, rel=0.02)
        assert 0.4 <= result.confidence <= 0.6

    def test_corrupted_frame_does_not_shift_median(self, rng):
        """A burst of noise is outvoted by the clean frames."""
        signal = make_sine(220.0, duration=2.0)
        clean = estimate_pitch(SampleBuffer(signal, SAMPLE_RATE))

        corrupted = signal.copy()
        corrupted[40000:42048] = rng.uniform(-0.9, 0.9, 2048)
        noisy = estimate_pitch(SampleBuffer(corrupted, SAMPLE_RATE))

        assert noisy.frequency is not None
        assert abs(cents(noisy.frequency, clean.frequency)) < 100
        assert noisy.frequency == pytest.approx(clean.frequency, rel=0.01)

    def test_octave_outliers_rejected_by_median(self):
        """Median keeps the majority pitch when a minority is an octave off."""
        signal = np.concatenate([make_sine(220.0, duration=1.0), make_sine(440.0, duration=0.3)])
        result = estimate_pitch(SampleBuffer(signal, SAMPLE_RATE))
        assert result.frequency == pytest.approx(220.0, rel=0.02)

    def test_first_aggregation(self):
        """First mode reports the earliest voiced frame."""
        signal = np.concatenate([
            np.zeros(10000), make_sine(440.0, duration=0.3), make_sine(220.0, duration=1.0),
        ])
        config = EstimatorConfig(aggregation="first")
        result = estimate_pitch(SampleBuffer(signal, SAMPLE_RATE), config)
        assert result.frequency == pytest.approx(440.0, rel=0.02)
        median_result = estimate_pitch(SampleBuffer(signal, SAMPLE_RATE))
        assert median_result.frequency == pytest.approx(220.0, rel=0.02)

    def test_other_sample_rate(self):
        sr = 16000
        result = estimate_pitch(SampleBuffer(make_sine(150.0, sample_rate=sr), sr),
                                EstimatorConfig(frame_size=1024, hop_size=512))
        assert result.frequency == pytest.approx(150.0, rel=0.02)

    def test_low_tone_in_wide_band(self):
        """A tone just above min_frequency is not reported near max_frequency."""
        config = EstimatorConfig(frame_size=4096, hop_size=2048, min_frequency=30)
        result = estimate_pitch(SampleBuffer(make_sine(35.0, duration=2.0), SAMPLE_RATE), config)
        assert result.total_frames == 42
        assert result.frequency == pytest.approx(35.0, rel=0.02)
        assert result.confidence >= 0.95

    def test_from_samples(self, sine_220):
        result = estimate_pitch_from_samples(sine_220, SAMPLE_RATE)
        assert result.frequency == pytest.approx(220.0, rel=0.02)

    def test_buffer_method(self, sine_220):
        buffer = SampleBuffer(sine_220, SAMPLE_RATE)
        assert buffer.to_pitch_estimate() == estimate_pitch(buffer)


# =============================================================================
# Configuration errors
# =============================================================================

class TestConfigurationErrors:
    """Invalid configuration fails before analysis."""

    def test_hop_larger_than_frame(self, sine_220):
        with pytest.raises(ConfigurationError):
            estimate_pitch(SampleBuffer(sine_220, SAMPLE_RATE),
                           EstimatorConfig(frame_size=1024, hop_size=2048))

    def test_min_not_below_max(self, sine_220):
        with pytest.raises(ConfigurationError):
            estimate_pitch(SampleBuffer(sine_220, SAMPLE_RATE),
                           EstimatorConfig(min_frequency=500, max_frequency=500))

    def test_service_validates_on_construction(self):
        with pytest.raises(ConfigurationError):
            PitchService(EstimatorConfig(frame_size=0))

    def test_raised_even_for_short_buffer(self):
        """Validation does not depend on there being frames to process."""
        with pytest.raises(ConfigurationError):
            estimate_pitch(SampleBuffer(np.zeros(10), SAMPLE_RATE),
                           EstimatorConfig(min_frequency=1000, max_frequency=100))


# =============================================================================
# Service
# =============================================================================

class TestPitchService:
    """Test PitchService."""

    def test_analyze_frames(self, sine_220):
        signal = np.concatenate([np.zeros(4096), sine_220])
        verdicts = PitchService().analyze_frames(SampleBuffer(signal, SAMPLE_RATE))
        assert [v.index for v in verdicts] == list(range(len(verdicts)))
        assert verdicts[0].silent
        assert verdicts[0].frequency is None
        assert verdicts[-1].voiced
        assert verdicts[-1].frequency == pytest.approx(220.0, rel=0.02)

    def test_parallel_matches_sequential(self, sine_220, rng):
        signal = np.concatenate([sine_220, rng.uniform(-0.5, 0.5, 8000), np.zeros(8000)])
        buffer = SampleBuffer(signal, SAMPLE_RATE)
        sequential = PitchService(EstimatorConfig(max_workers=1))
        parallel = PitchService(EstimatorConfig(max_workers=4))
        assert parallel.analyze_frames(buffer) == sequential.analyze_frames(buffer)
        assert parallel.estimate(buffer) == sequential.estimate(buffer)

    def test_shared_service_is_reentrant(self):
        """One service instance handles independent buffers independently."""
        service = PitchService()
        low = SampleBuffer(make_sine(200.0), SAMPLE_RATE)
        high = SampleBuffer(make_sine(400.0), SAMPLE_RATE)
        first_low = service.estimate(low)
        service.estimate(high)
        assert service.estimate(low) == first_low

    def test_buffer_not_modified(self, sine_220):
        buffer = SampleBuffer(sine_220, SAMPLE_RATE)
        before = buffer.samples.copy()
        estimate_pitch(buffer)
        np.testing.assert_array_equal(buffer.samples, before)

    def test_summarize_matches_estimate(self, sine_220):
        service = PitchService()
        buffer = SampleBuffer(np.concatenate([np.zeros(8192), sine_220]), SAMPLE_RATE)
        assert service.summarize(service.analyze_frames(buffer)) == service.estimate(buffer)
