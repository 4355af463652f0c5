"""Command-line interface for Sahih."""
import argparse
import json
import logging
import math
import sys
from pathlib import Path

from .engine import AnalysisEngine
from .errors import AnalysisError
from .report import ReportBuilder
from .types import AnalysisKind
from .wav import read_wav

DEFAULT_KINDS = [
    AnalysisKind.BIT_DEPTH,
    AnalysisKind.BANDWIDTH,
    AnalysisKind.LOSSY_DETECT,
    AnalysisKind.LUFS,
    AnalysisKind.DYNAMIC_RANGE,
    AnalysisKind.STEREO,
    AnalysisKind.VERDICT,
]

VERDICT_KINDS = [
    AnalysisKind.BIT_DEPTH,
    AnalysisKind.BANDWIDTH,
    AnalysisKind.LOSSY_DETECT,
    AnalysisKind.DYNAMIC_RANGE,
    AnalysisKind.VERDICT,
]


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _db(value) -> str:
    if value is None:
        return "n/a"
    return "-inf" if math.isinf(value) else f"{value:.1f}"


def _summarize(result) -> str:
    kind = result.kind
    if kind is AnalysisKind.BIT_DEPTH:
        return (f"{result.effective_bit_depth}-bit effective of {result.reported_bit_depth}-bit "
                f"(noise floor {_db(result.noise_floor_db)} dBFS, confidence {result.confidence}%)")
    if kind is AnalysisKind.BANDWIDTH:
        return (f"ceiling {result.frequency_ceiling / 1000:.1f} kHz ({result.cutoff_type}), "
                f"{result.source_guess}, confidence {result.confidence}%")
    if kind is AnalysisKind.LOSSY_DETECT:
        verdict = "lossy" if result.is_lossy else "clean"
        detail = f", {result.encoder_fingerprint}" if result.encoder_fingerprint else ""
        return f"{verdict}: {result.spectral_holes} spectral holes{detail}"
    if kind is AnalysisKind.LUFS:
        return (f"{_db(result.integrated)} LUFS, LRA {result.lra:.1f} LU, "
                f"sample peak {_db(result.sample_peak_db)} dBFS, true peak {_db(result.true_peak_db)} dBTP")
    if kind is AnalysisKind.DYNAMIC_RANGE:
        return (f"DR{result.dr_score}, crest {result.crest_factor_db:.1f} dB, "
                f"{result.clipped_samples} clipped samples")
    if kind is AnalysisKind.STEREO:
        if result.is_mono:
            return "mono"
        return (f"correlation {result.correlation:.2f}, width {result.stereo_width:.2f}, "
                f"balance {result.balance_db:.1f} dB")
    if kind is AnalysisKind.VERDICT:
        return f"score {result.score}/100, grade {result.grade.value}"
    if kind is AnalysisKind.SPECTRUM:
        return f"{len(result.frequencies)} bins over {result.frame_count} frames"
    if kind is AnalysisKind.SPECTROGRAM:
        return f"{result.magnitudes_db.shape[0]} frames x {result.magnitudes_db.shape[1]} bins"
    if kind is AnalysisKind.WAVEFORM:
        return f"{len(result.peaks)} buckets of {result.samples_per_pixel} samples"
    return kind.value


def _load(args):
    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)
    try:
        decoded = read_wav(path)
    except AnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    return path, decoded


def _run(args, kinds):
    """Decode the file and compute ``kinds``; returns (path, decoded, bit_depth, results)."""
    path, decoded = _load(args)
    bit_depth = getattr(args, "bit_depth", None) or decoded.bit_depth
    with AnalysisEngine(use_worker=not getattr(args, "no_worker", False)) as engine:
        engine.load(decoded.pcm, reported_bit_depth=bit_depth)
        try:
            results = engine.analyze_all(kinds)
        except AnalysisError as e:
            print(f"Error: Analysis failed: {e}", file=sys.stderr)
            sys.exit(1)
    return path, decoded, bit_depth, results


def _print_results(path, decoded, bit_depth, results, title):
    pcm = decoded.pcm
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}\n")
    print(f"File: {path.resolve()}")
    print(f"Format: {pcm.channels}ch, {pcm.sample_rate} Hz, {bit_depth}-bit, {pcm.duration:.2f}s")
    print()
    for kind, result in results.items():
        print(f"  {kind.value:<14} {_summarize(result)}")


def analyze_command(args):
    """Run analyses on a WAV file."""
    _configure_logging(args.verbose)
    try:
        kinds = [AnalysisKind.parse(k) for k in args.kinds] if args.kinds else DEFAULT_KINDS
    except AnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    path, decoded, bit_depth, results = _run(args, kinds)

    if args.json:
        report = ReportBuilder(decoded.pcm, bit_depth).add_results(list(results.values())).build()
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_results(path, decoded, bit_depth, results, "Audio Analysis Report")
        print(f"\n{'='*60}\n")


def verdict_command(args):
    """Grade a WAV file and optionally write the report to disk."""
    _configure_logging(args.verbose)

    path, decoded, bit_depth, results = _run(args, VERDICT_KINDS)
    verdict = results[AnalysisKind.VERDICT]

    report = ReportBuilder(decoded.pcm, bit_depth).add_results(list(results.values())).build()

    if args.output:
        Path(args.output).write_text(json.dumps(report.to_dict(), indent=2))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_results(path, decoded, bit_depth, results, "Hi-Res Authenticity Verdict")
        status = "GENUINE HI-RES" if verdict.is_genuine_hires else "NOT GENUINE HI-RES"
        print(f"\nVerdict: {status} (score {verdict.score}, grade {verdict.grade.value})")

        if verdict.issues:
            print("\nIssues:")
            for issue in verdict.issues:
                print(f"  • {issue}")

        if verdict.positives:
            print("\nPositives:")
            for positive in verdict.positives:
                print(f"  • {positive}")

        if args.output:
            print(f"Report saved to: {Path(args.output).resolve()}")

        print(f"\n{'='*60}\n")

    sys.exit(0 if verdict.is_genuine_hires else 1)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sahih",
        description="Audio forensics: check whether hi-res audio is what it claims to be"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    kinds = [k.value for k in AnalysisKind]

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Run signal analyses on a WAV file")
    analyze_parser.add_argument("file", help="WAV file to analyze")
    analyze_parser.add_argument("-k", "--kinds", nargs="+", choices=kinds, help="Analyses to run")
    analyze_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    analyze_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    analyze_parser.add_argument("--no-worker", action="store_true", help="Run analyses in the calling thread")
    analyze_parser.add_argument("--bit-depth", type=int, help="Override the reported bit depth")
    analyze_parser.set_defaults(func=analyze_command)

    # Verdict command
    verdict_parser = subparsers.add_parser("verdict", help="Grade hi-res authenticity")
    verdict_parser.add_argument("file", help="WAV file to grade")
    verdict_parser.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    verdict_parser.add_argument("-o", "--output", help="Write the report to this path")
    verdict_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    verdict_parser.add_argument("--no-worker", action="store_true", help="Run analyses in the calling thread")
    verdict_parser.add_argument("--bit-depth", type=int, help="Override the reported bit depth")
    verdict_parser.set_defaults(func=verdict_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
