"""Tests for spectrum, spectrogram and waveform views."""

import numpy as np
import pytest

from sahih.errors import UnsupportedInput
from scipy.signal import get_window

from sahih.spectral import (
    STFT_CHUNK_FRAMES,
    THIRD_OCTAVE_CENTRES,
    compute_spectrogram,
    compute_spectrum,
    compute_waveform,
    third_octave_bands,
)

from conftest import sine, white_noise


class TestSpectrum:
    def test_peak_at_tone(self, mono_sine_pcm):
        r = compute_spectrum(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate)
        peak_freq = r.frequencies[np.argmax(r.magnitudes_db)]
        assert peak_freq == pytest.approx(440, abs=44100 / 8192)
        assert len(r.frequencies) == 4096
        assert r.frame_count == 5

    def test_arrays_read_only(self, mono_sine_pcm):
        r = compute_spectrum(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate)
        with pytest.raises(ValueError):
            r.magnitudes_db[0] = 0.0
        with pytest.raises(ValueError):
            r.frequencies[0] = 1.0

    def test_octave_bands(self, mono_sine_pcm):
        r = compute_spectrum(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate)
        centres = [c for c, _ in r.octave_bands]
        assert set(centres) <= set(float(c) for c in THIRD_OCTAVE_CENTRES)
        loudest = max(r.octave_bands, key=lambda band: band[1])
        assert loudest[0] == 400.0

    def test_octave_bands_disabled(self, mono_sine_pcm):
        r = compute_spectrum(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate,
                             octave_bands=False)
        assert r.octave_bands == ()

    def test_short_input_counts_one_frame(self):
        r = compute_spectrum([sine(duration=0.01)], 44100)
        assert r.frame_count == 1

    def test_silence_floored(self, silence_pcm):
        r = compute_spectrum(silence_pcm.channel_data, silence_pcm.sample_rate)
        assert np.all(np.isfinite(r.magnitudes_db))
        assert r.non_finite_fields() == []

    def test_third_octave_skips_empty_bands(self):
        freqs = np.array([1000.0, 2000.0])
        bands = third_octave_bands(freqs, np.array([1.0, 1.0]))
        assert [c for c, _ in bands] == [1000.0, 2000.0]


class TestSpectrogram:
    def test_shape_and_dtype(self, sine_pcm):
        r = compute_spectrogram(sine_pcm.channel_data, sine_pcm.sample_rate)
        assert r.magnitudes_db.shape == (83, 2048)
        assert r.magnitudes_db.dtype == np.float32
        assert len(r.times) == 83
        assert r.times[1] == pytest.approx(1024 / 44100)
        assert r.fft_size == 4096
        assert r.hop_size == 1024

    def test_peak_bin(self, sine_pcm):
        r = compute_spectrogram(sine_pcm.channel_data, sine_pcm.sample_rate)
        peak_bins = np.argmax(r.magnitudes_db, axis=1)
        assert np.all(np.abs(r.frequencies[peak_bins] - 440) < 44100 / 4096)

    def test_read_only(self, sine_pcm):
        r = compute_spectrogram(sine_pcm.channel_data, sine_pcm.sample_rate)
        with pytest.raises(ValueError):
            r.magnitudes_db[0, 0] = 0.0

    def test_short_input_padded(self):
        r = compute_spectrogram([sine(duration=0.001)], 44100)
        assert r.magnitudes_db.shape == (1, 2048)

    def test_mono_mixdown(self, noise_pcm):
        r = compute_spectrogram(noise_pcm.channel_data, noise_pcm.sample_rate, channel=None)
        assert r.magnitudes_db.shape[1] == 2048

    def test_channel_out_of_range(self, mono_sine_pcm):
        with pytest.raises(UnsupportedInput):
            compute_spectrogram(mono_sine_pcm.channel_data, 44100, channel=1)

    def test_bad_geometry(self, mono_sine_pcm):
        with pytest.raises(UnsupportedInput):
            compute_spectrogram(mono_sine_pcm.channel_data, 44100, hop_size=0)

    def test_hop_longer_than_frame(self, mono_sine_pcm):
        with pytest.raises(UnsupportedInput):
            compute_spectrogram(mono_sine_pcm.channel_data, 44100, fft_size=1024, hop_size=2048)

    def test_bin_centred_sine_level(self):
        sr, fft = 44100, 4096
        x = sine(100 * sr / fft, duration=0.5, sr=sr, amplitude=1.0)
        r = compute_spectrogram([x], sr, fft_size=fft)
        assert np.all(np.argmax(r.magnitudes_db, axis=1) == 100)
        assert r.magnitudes_db[:, 100] == pytest.approx(-12.04, abs=0.1)

    def test_frames_across_chunks_match_direct_fft(self):
        x = white_noise(3.0)
        r = compute_spectrogram([x], 44100, hop_size=256)
        assert r.magnitudes_db.shape[0] == (len(x) - 4096) // 256 + 1 > STFT_CHUNK_FRAMES

        win = get_window("hann", 4096, fftbins=False)
        for frame in (0, STFT_CHUNK_FRAMES - 1, STFT_CHUNK_FRAMES, r.magnitudes_db.shape[0] - 1):
            seg = x[frame * 256:frame * 256 + 4096]
            mag = np.abs(np.fft.rfft(seg * win)[:2048]) / 4096
            expected = 20 * np.log10(np.maximum(mag, 1e-12))
            np.testing.assert_allclose(r.magnitudes_db[frame], expected, atol=1e-3)


class TestWaveform:
    def test_bucket_count(self, mono_sine_pcm):
        r = compute_waveform(mono_sine_pcm.channel_data, mono_sine_pcm.sample_rate)
        assert r.samples_per_pixel == 22
        assert len(r.peaks) == int(np.ceil(44100 / 22))
        assert r.mins.dtype == np.float32

    def test_envelope_bounds(self, mono_sine_pcm):
        r = compute_waveform(mono_sine_pcm.channel_data, target_width=100)
        assert np.all(r.mins <= r.maxs)
        assert np.all(r.peaks <= 0.5 + 1e-6)
        assert np.all(r.rms <= r.peaks + 1e-6)
        assert r.peaks.max() == pytest.approx(0.5, abs=1e-3)

    def test_fewer_samples_than_width(self):
        r = compute_waveform([np.array([0.1, -0.2, 0.3])], target_width=2000)
        assert r.samples_per_pixel == 1
        np.testing.assert_allclose(r.peaks, [0.1, 0.2, 0.3], rtol=1e-6)

    def test_silence(self, silence_pcm):
        r = compute_waveform(silence_pcm.channel_data)
        assert not r.peaks.any()
        assert r.non_finite_fields() == []

    def test_read_only(self, mono_sine_pcm):
        r = compute_waveform(mono_sine_pcm.channel_data)
        with pytest.raises(ValueError):
            r.peaks[0] = 1.0

    def test_bad_width(self, mono_sine_pcm):
        with pytest.raises(UnsupportedInput):
            compute_waveform(mono_sine_pcm.channel_data, target_width=0)
