"""WAV decoding into PCMBuffer for the command line and tests."""

import io
import logging
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from .errors import UnsupportedInput
from .types import PCMBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedAudio:
    """Decoded samples plus the header bit depth."""
    pcm: PCMBuffer
    bit_depth: int


def _unpack_samples(raw: bytes, sampwidth: int) -> np.ndarray:
    if sampwidth == 1:
        return (np.frombuffer(raw, dtype=np.uint8).astype(np.float64) - 128.0) / 128.0
    if sampwidth == 2:
        return np.frombuffer(raw, dtype='<i2').astype(np.float64) / 32768.0
    if sampwidth == 3:
        # 24-bit: vectorized unpack of 3-byte little-endian samples
        raw_arr = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3)
        samples = (raw_arr[:, 0].astype(np.int32)
                   | (raw_arr[:, 1].astype(np.int32) << 8)
                   | (raw_arr[:, 2].astype(np.int32) << 16))
        samples = np.where(samples >= 0x800000, samples - 0x1000000, samples)
        return samples.astype(np.float64) / 8388608.0
    if sampwidth == 4:
        return np.frombuffer(raw, dtype='<i4').astype(np.float64) / 2147483648.0
    raise UnsupportedInput(f"Unsupported sample width: {sampwidth}")


def decode_wav(audio_bytes: bytes) -> DecodedAudio:
    """Decode integer PCM WAV bytes, keeping channels separate.

    Supports 8-bit, 16-bit, 24-bit and 32-bit PCM.

    Raises:
        UnsupportedInput: not a readable PCM WAV file, or no samples.
    """
    try:
        with wave.open(io.BytesIO(audio_bytes), 'rb') as wf:
            sr = wf.getframerate()
            n_channels = wf.getnchannels()
            sampwidth = wf.getsampwidth()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as e:
        raise UnsupportedInput(f"Failed to decode WAV: {e}") from e

    samples = _unpack_samples(raw, sampwidth)
    usable = len(samples) - len(samples) % n_channels
    if usable == 0:
        raise UnsupportedInput("WAV file contains no samples")

    pcm = PCMBuffer.from_interleaved(samples[:usable], n_channels, sr)
    logger.debug(f"Decoded WAV: {n_channels}ch {sr}Hz {sampwidth * 8}-bit, {pcm.length} frames")
    return DecodedAudio(pcm=pcm, bit_depth=sampwidth * 8)


def read_wav(path: Union[str, Path]) -> DecodedAudio:
    """Read and decode a WAV file from disk."""
    return decode_wav(Path(path).read_bytes())
