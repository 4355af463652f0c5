"""Tests for dynamic range, crest factor and clipping."""

import math

import numpy as np
import pytest

from sahih.dynamics import channel_dr, measure_dynamic_range
from sahih.errors import UnsupportedInput

from conftest import sine


class TestChannelDR:
    def test_sine_is_zero(self):
        assert channel_dr(sine(440, 6.0), 44100 * 3) == pytest.approx(0.0, abs=0.05)

    def test_silence_is_zero(self):
        assert channel_dr(np.zeros(1000), 100) == 0.0

    def test_shorter_than_block(self):
        assert channel_dr(sine(440, 0.5), 44100 * 3) == pytest.approx(0.0, abs=0.05)


class TestMeasureDynamicRange:
    def test_sine(self, sine_pcm):
        r = measure_dynamic_range(sine_pcm.channel_data, sine_pcm.sample_rate)
        assert r.dr_score == 0
        assert r.crest_factor_db == pytest.approx(3.01, abs=0.05)
        assert r.peak_db == pytest.approx(-6.02, abs=0.05)
        assert r.clipped_samples == 0
        assert len(r.channel_scores) == 2

    def test_noise(self, noise_pcm):
        r = measure_dynamic_range(noise_pcm.channel_data, noise_pcm.sample_rate)
        assert 9 <= r.dr_score <= 13

    def test_clipping_counted(self):
        x = np.clip(sine(440, 1.0, amplitude=2.0), -1.0, 1.0)
        r = measure_dynamic_range([x], 44100)
        assert r.clipped_samples > 0

    def test_silence(self, silence_pcm):
        r = measure_dynamic_range(silence_pcm.channel_data, silence_pcm.sample_rate)
        assert r.dr_score == 0
        assert r.crest_factor_db == 0.0
        assert r.peak_db == -math.inf
        assert r.clipped_samples == 0
        assert r.non_finite_fields() == []

    def test_score_range(self):
        spikes = np.zeros(44100 * 6)
        spikes[::44100] = 1.0
        spikes += 1e-6
        r = measure_dynamic_range([spikes], 44100)
        assert 0 <= r.dr_score <= 20

    def test_bad_block(self, sine_pcm):
        with pytest.raises(UnsupportedInput):
            measure_dynamic_range(sine_pcm.channel_data, 44100, block_seconds=0)
