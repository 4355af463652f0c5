"""Tests for BS.1770 loudness measurement."""

import math

import numpy as np
import pytest

from sahih.errors import UnsupportedInput
from sahih.loudness import (
    block_energies,
    channel_weights,
    energy_to_lufs,
    gated_loudness,
    k_weighting_coefficients,
    measure_loudness,
    oversampling_factor,
)

from conftest import sine


class TestFilters:
    def test_coefficients_shape(self):
        stages = k_weighting_coefficients(48000)
        assert len(stages) == 2
        for b, a in stages:
            assert b.shape == (3,)
            assert a[0] == 1.0

    def test_48k_reference_coefficients(self):
        (shelf_b, shelf_a), (hp_b, hp_a) = k_weighting_coefficients(48000)
        np.testing.assert_allclose(shelf_b, [1.53512485958697, -2.69169618940638, 1.19839281085285],
                                   rtol=1e-5)
        np.testing.assert_allclose(shelf_a, [1.0, -1.69065929318241, 0.73248077421585], rtol=1e-5)
        np.testing.assert_allclose(hp_a, [1.0, -1.99004745483398, 0.99007225036621], rtol=1e-5)

    def test_channel_weights(self):
        assert channel_weights(2) == [1.0, 1.0]
        assert channel_weights(6)[3] == 0.0
        assert channel_weights(5)[-1] == 1.41

    @pytest.mark.parametrize("sr", [2000, 3000, 3363])
    def test_rate_below_shelf_corner_rejected(self, sr):
        with pytest.raises(UnsupportedInput):
            k_weighting_coefficients(sr)

    def test_lowest_usable_rate_is_stable(self):
        for _, a in k_weighting_coefficients(4000):
            assert np.all(np.abs(np.roots(a)) < 1.0)

    def test_oversampling_factor(self):
        assert oversampling_factor(44100) == 4
        assert oversampling_factor(96000) == 2
        assert oversampling_factor(192000) == 1


class TestGating:
    def test_energy_to_lufs_zero(self):
        out = energy_to_lufs(np.array([0.0, 1.0]))
        assert out[0] == -np.inf
        assert out[1] == pytest.approx(-0.691)

    def test_all_below_absolute_gate(self):
        integrated, mask = gated_loudness(np.full(10, 1e-9), -10.0)
        assert integrated == -math.inf
        assert not mask.any()

    def test_relative_gate_drops_quiet_blocks(self):
        energies = np.array([1.0] * 10 + [1e-4] * 10)
        integrated, mask = gated_loudness(energies, -10.0)
        assert mask.sum() == 10
        assert integrated == pytest.approx(-0.691)

    def test_block_energies_short_input(self):
        assert block_energies([np.zeros(10)], [1.0], 100, 10).size == 0

    def test_block_energies_constant(self):
        e = block_energies([np.full(1000, 0.5)], [1.0], 100, 50)
        np.testing.assert_allclose(e, 0.25)


class TestMeasureLoudness:
    def test_full_scale_1k_sine(self):
        x = sine(1000, 5.0, 48000, amplitude=1.0)
        r = measure_loudness([x], 48000)
        assert r.integrated == pytest.approx(-3.01, abs=0.1)

    def test_identical_stereo_adds_3_lu(self):
        x = sine(1000, 5.0, 48000, amplitude=0.5)
        mono = measure_loudness([x], 48000)
        stereo = measure_loudness([x, x], 48000)
        assert stereo.integrated - mono.integrated == pytest.approx(3.01, abs=0.05)

    def test_half_amplitude_is_6_lu_quieter(self):
        loud = measure_loudness([sine(1000, 5.0, 48000, amplitude=0.8)], 48000)
        quiet = measure_loudness([sine(1000, 5.0, 48000, amplitude=0.4)], 48000)
        assert loud.integrated - quiet.integrated == pytest.approx(6.02, abs=0.05)

    def test_steady_tone_has_no_range(self):
        r = measure_loudness([sine(1000, 10.0, 48000)], 48000)
        assert r.lra == pytest.approx(0.0, abs=0.1)
        assert len(r.short_term) == 8
        assert len(r.momentary) == 97

    def test_range_of_two_levels(self):
        x = np.concatenate([sine(1000, 10.0, 48000, amplitude=0.5),
                            sine(1000, 10.0, 48000, amplitude=0.05)])
        r = measure_loudness([x], 48000)
        assert r.lra == pytest.approx(20.0, abs=1.0)

    def test_silence(self, silence_pcm):
        r = measure_loudness(silence_pcm.channel_data, silence_pcm.sample_rate)
        assert r.integrated == -math.inf
        assert r.is_silent
        assert r.lra == 0.0
        assert r.sample_peak_db == -math.inf
        assert r.true_peak_db == -math.inf
        assert r.non_finite_fields() == []

    def test_shorter_than_one_block(self):
        r = measure_loudness([sine(1000, 0.2, 48000)], 48000)
        assert r.integrated == -math.inf
        assert r.momentary == ()
        assert r.short_term == ()
        assert r.sample_peak_db == pytest.approx(-6.02, abs=0.05)

    def test_true_peak_above_sample_peak(self):
        sr = 48000
        t = np.arange(sr) / sr
        x = np.sin(2 * np.pi * (sr / 4) * t + np.pi / 4)
        r = measure_loudness([x], sr)
        assert r.sample_peak_db == pytest.approx(-3.01, abs=0.05)
        assert r.true_peak_db > r.sample_peak_db + 2.5

    def test_true_peak_disabled(self, sine_pcm):
        r = measure_loudness(sine_pcm.channel_data, sine_pcm.sample_rate, true_peak=False)
        assert r.true_peak_db is None

    def test_rate_too_low_for_k_weighting(self):
        with pytest.raises(UnsupportedInput):
            measure_loudness([sine(200, 1.0, 2000)], 2000)

    def test_bad_sample_rate(self, sine_pcm):
        with pytest.raises(UnsupportedInput):
            measure_loudness(sine_pcm.channel_data, -1)

    def test_sub_full_scale_sine_is_negative(self, mono_sine_pcm):
        r = measure_loudness(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate)
        assert r.integrated < 0
