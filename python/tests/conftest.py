"""Shared pytest fixtures for Sahih tests."""

import io
import wave

import numpy as np
import pytest

from sahih import PCMBuffer


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def sine(freq: float = 440.0, duration: float = 1.0, sr: int = 44100,
         amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(sr * duration)) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


def white_noise(duration: float = 1.0, sr: int = 44100, sigma: float = 0.1,
                seed: int = 1234) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.standard_normal(int(sr * duration)) * sigma


def brickwall_lowpass(x: np.ndarray, sr: int, cutoff: float) -> np.ndarray:
    """Zero every FFT bin above ``cutoff``, like an encoder lowpass."""
    spectrum = np.fft.rfft(x)
    freqs = np.fft.rfftfreq(len(x), 1 / sr)
    spectrum[freqs > cutoff] = 0
    return np.fft.irfft(spectrum, len(x))


def quantize(x: np.ndarray, bits: int) -> np.ndarray:
    """Round samples onto a signed integer grid of ``bits`` bits."""
    scale = 2 ** (bits - 1)
    return np.clip(np.round(x * scale), -scale, scale - 1) / scale


def make_wav(channels, sr: int = 44100, sampwidth: int = 2) -> bytes:
    """Encode float channels as integer PCM WAV (2, 3 or 4 bytes per sample)."""
    bits = sampwidth * 8
    scale = 2 ** (bits - 1)
    frames = np.stack([np.asarray(ch, dtype=np.float64) for ch in channels], axis=1)
    ints = np.clip(np.round(frames * scale), -scale, scale - 1).astype(np.int64).reshape(-1)

    if sampwidth == 3:
        u = (ints & 0xFFFFFF).astype(np.uint32)
        raw = np.stack([u & 0xFF, (u >> 8) & 0xFF, (u >> 16) & 0xFF], axis=1).astype(np.uint8).tobytes()
    else:
        raw = ints.astype({2: '<i2', 4: '<i4'}[sampwidth]).tobytes()

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(len(channels))
        wf.setsampwidth(sampwidth)
        wf.setframerate(sr)
        wf.writeframes(raw)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# PCM fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sine_pcm():
    """2 s stereo 440 Hz sine at 0.5 amplitude, identical channels."""
    x = sine(duration=2.0)
    return PCMBuffer((x, x), 44100)


@pytest.fixture()
def mono_sine_pcm():
    """1 s mono 440 Hz sine at 0.5 amplitude."""
    return PCMBuffer((sine(),), 44100)


@pytest.fixture()
def silence_pcm():
    """1 s of mono digital silence."""
    return PCMBuffer((np.zeros(44100),), 44100)


@pytest.fixture()
def noise_pcm():
    """3 s stereo white noise with independent channels."""
    return PCMBuffer((white_noise(3.0, seed=1), white_noise(3.0, seed=2)), 44100)


@pytest.fixture()
def hires_pcm():
    """4 s of full-band 24-bit white noise at 96 kHz."""
    return PCMBuffer((quantize(white_noise(4.0, sr=96000, seed=7), 24),), 96000)


@pytest.fixture()
def padded_cd_pcm():
    """16-bit noise at 96 kHz, as it looks inside a 24-bit container."""
    return PCMBuffer((quantize(white_noise(4.0, sr=96000, seed=7), 16),), 96000)


@pytest.fixture()
def mp3_like_pcm():
    """3 s of noise brick-wall lowpassed at 16 kHz, 16-bit, 44.1 kHz."""
    x = brickwall_lowpass(white_noise(3.0, sigma=0.1, seed=3), 44100, 16000)
    return PCMBuffer((quantize(x, 16),), 44100)
