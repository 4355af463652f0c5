"""Tests for WAV decoding."""

import numpy as np
import pytest

from sahih.errors import UnsupportedInput
from sahih.wav import decode_wav, read_wav

from conftest import make_wav, quantize, sine


class TestDecodeWav:
    def test_16_bit_stereo(self):
        left, right = sine(440, 0.1), sine(880, 0.1)
        decoded = decode_wav(make_wav([left, right], 44100, 2))
        assert decoded.bit_depth == 16
        assert decoded.pcm.channels == 2
        assert decoded.pcm.sample_rate == 44100
        np.testing.assert_allclose(decoded.pcm.channel_data[0], left, atol=1 / 32768)
        np.testing.assert_allclose(decoded.pcm.channel_data[1], right, atol=1 / 32768)

    def test_24_bit_exact(self):
        x = quantize(sine(1000, 0.05, 96000, amplitude=0.9), 24)
        x[:4] = [-1.0, -0.5, 0.5, 8388607 / 8388608]
        decoded = decode_wav(make_wav([x], 96000, 3))
        assert decoded.bit_depth == 24
        np.testing.assert_array_equal(decoded.pcm.channel_data[0], x)

    def test_32_bit(self):
        x = sine(440, 0.05)
        decoded = decode_wav(make_wav([x], 44100, 4))
        assert decoded.bit_depth == 32
        np.testing.assert_allclose(decoded.pcm.channel_data[0], x, atol=1e-9)

    def test_not_a_wav(self):
        with pytest.raises(UnsupportedInput):
            decode_wav(b"definitely not RIFF data")

    def test_no_samples(self):
        with pytest.raises(UnsupportedInput):
            decode_wav(make_wav([np.zeros(0)], 44100, 2))

    def test_read_wav(self, tmp_path):
        path = tmp_path / "tone.wav"
        path.write_bytes(make_wav([sine(duration=0.1, sr=48000)], 48000, 2))
        decoded = read_wav(path)
        assert decoded.pcm.sample_rate == 48000
        assert decoded.pcm.length == 4800

    def test_decoded_buffer_is_read_only(self):
        decoded = decode_wav(make_wav([sine(duration=0.01)], 44100, 2))
        with pytest.raises(ValueError):
            decoded.pcm.channel_data[0][0] = 0.0
