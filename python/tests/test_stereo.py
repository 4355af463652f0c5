"""Tests for stereo field analysis."""

import numpy as np
import pytest

from sahih.stereo import BALANCE_LIMIT_DB, analyze_stereo, balance_db, correlation

from conftest import sine


class TestHelpers:
    def test_correlation_identical(self):
        x = sine()
        assert correlation(x, x) == pytest.approx(1.0)

    def test_correlation_inverted(self):
        x = sine()
        assert correlation(x, -x) == pytest.approx(-1.0)

    def test_correlation_constant_channels(self):
        assert correlation(np.zeros(10), np.zeros(10)) == 1.0
        assert correlation(np.zeros(10), sine()[:10]) == 0.0

    def test_balance(self):
        assert balance_db(1.0, 1.0) == 0.0
        assert balance_db(10.0, 1.0) == pytest.approx(10.0)
        assert balance_db(0.0, 0.0) == 0.0
        assert balance_db(1.0, 0.0) == BALANCE_LIMIT_DB
        assert balance_db(0.0, 1.0) == -BALANCE_LIMIT_DB


class TestAnalyzeStereo:
    def test_identical_channels(self, sine_pcm):
        r = analyze_stereo(sine_pcm.channel_data, sine_pcm.sample_rate)
        assert r.correlation == pytest.approx(1.0)
        assert r.stereo_width == pytest.approx(0.0)
        assert r.mono_compatibility_loss == pytest.approx(0.0)
        assert r.balance_db == pytest.approx(0.0)
        assert not r.is_mono

    def test_inverted_channels(self):
        x = sine()
        r = analyze_stereo([x, -x], 44100)
        assert r.correlation == pytest.approx(-1.0)
        assert r.side_energy == pytest.approx(1.0)
        assert r.mid_energy == pytest.approx(0.0)
        assert r.mono_compatibility_loss == pytest.approx(100.0)

    def test_independent_noise(self, noise_pcm):
        r = analyze_stereo(noise_pcm.channel_data, noise_pcm.sample_rate)
        assert abs(r.correlation) < 0.05
        assert r.stereo_width == pytest.approx(0.5, abs=0.05)
        assert r.mid_energy + r.side_energy == pytest.approx(1.0)

    def test_left_only(self):
        r = analyze_stereo([sine(), np.zeros(44100)], 44100)
        assert r.balance_db == BALANCE_LIMIT_DB
        assert r.correlation == 0.0

    def test_mono(self, mono_sine_pcm):
        r = analyze_stereo(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate)
        assert r.is_mono
        assert r.correlation == 1.0
        assert r.stereo_width == 0.0

    def test_silent_stereo(self):
        r = analyze_stereo([np.zeros(100), np.zeros(100)], 44100)
        assert r.correlation == 1.0
        assert r.mid_energy == 1.0
        assert r.non_finite_fields() == []
