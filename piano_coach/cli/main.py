"""Main entry point for the Piano Coach CLI."""

import argparse
import os
import sys
from typing import List, Optional

import numpy as np

from ..app import TuningApp
from ..audio.audio_input import AudioDeviceError, MicrophoneSource, list_input_devices
from ..audio.pitch import PitchDetector
from ..audio.playback import beep, play_reference
from ..coordinator import TuningCoordinator
from ..core.config import ConfigManager
from ..logger import get_logger
from ..logging_config import setup_logging
from ..notes import normalize_to_sharp, note_for_midi, parse_note_name
from ..services.audio_providers import WavFileAudioSource
from ..services.storage import SessionStore
from ..tuning.session import TuningMode
from ..tuning.stretch import StretchCurve
from ..tuning.temperament import Temperament
from ..ui.console import CursesPresenter

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="piano-coach", description="Piano Coach - guided piano tuning"
    )
    parser.add_argument(
        "--resume", action="store_true", help="Resume the most recent incomplete session"
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--quick", action="store_true", help="Start in quick tune mode (calibrate to the piano)"
    )
    mode_group.add_argument(
        "--concert", action="store_true", help="Start in concert pitch mode"
    )
    mode_group.add_argument(
        "--profile", action="store_true", help="Measure every key first, then tune worst-first"
    )
    parser.add_argument("--a4", type=float, default=None, help="Reference A4 in Hz")
    parser.add_argument(
        "--beep", action="store_true", help="Beep whenever a note is recorded"
    )
    parser.add_argument(
        "--stretch", action="store_true", help="Apply an octave stretch curve to the targets"
    )
    parser.add_argument("--device", type=int, default=None, help="Audio input device ID")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--data-dir", default=None, help="Directory for saved sessions and profiles"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    analyze_parser = subparsers.add_parser(
        "analyze", help="Detect the pitch of a recorded WAV file"
    )
    analyze_parser.add_argument("file", help="Path to an audio file")
    analyze_parser.add_argument(
        "--window", type=int, default=None, help="Analysis window in samples"
    )

    reference_parser = subparsers.add_parser(
        "reference", help="Play the target pitch of a note"
    )
    reference_parser.add_argument("note", help="Note name, e.g. A4, C#3 or Bb2")
    reference_parser.add_argument(
        "--duration", type=float, default=2.0, help="Tone duration in seconds"
    )

    subparsers.add_parser("history", help="List saved sessions and profiles")
    subparsers.add_parser("reset", help="Delete all saved sessions")
    subparsers.add_parser("devices", help="List audio input devices")

    return parser


def _selected_mode(parsed_args, tuner_config) -> Optional[TuningMode]:
    if parsed_args.quick:
        return TuningMode.QUICK
    if parsed_args.concert:
        return TuningMode.CONCERT
    if parsed_args.profile:
        return TuningMode.PROFILE
    default_mode = tuner_config.get("default_mode")
    if default_mode:
        try:
            return TuningMode(default_mode)
        except ValueError:
            logger.warning(f"Ignoring unknown default_mode {default_mode!r} in configuration")
    return None


def run_tuner(parsed_args, config: ConfigManager, store: SessionStore) -> int:
    """Run the interactive curses tuner."""
    tuner_config = config.get_config("tuner")
    audio_config = config.get_config("audio_input")
    pitch_config = config.get_config("pitch")

    a4 = parsed_args.a4 or tuner_config["a4"]
    sample_rate = audio_config["sample_rate"]
    use_stretch = parsed_args.stretch or tuner_config["stretch"]

    coordinator = TuningCoordinator(
        store=store,
        a4=a4,
        tolerance_cents=tuner_config["tolerance_cents"],
        tuning_confidence=pitch_config["tuning_confidence"],
        calibration_confidence=pitch_config["calibration_confidence"],
        calibration_samples=pitch_config["calibration_samples"],
        stretch=StretchCurve() if use_stretch else None,
    )

    session = store.load_most_recent_incomplete() if parsed_args.resume else None
    if session is not None:
        coordinator.resume(session)
    else:
        if parsed_args.resume:
            print("No incomplete session to resume; starting a new one.")
        mode = _selected_mode(parsed_args, tuner_config)
        if mode is not None:
            coordinator.select_mode(mode)

    device_id = parsed_args.device if parsed_args.device is not None else audio_config["device_id"]
    try:
        source = MicrophoneSource(
            device_id=device_id,
            sample_rate=sample_rate,
            frames_per_buffer=audio_config["frames_per_buffer"],
            channels=audio_config["channels"],
        )
        detector = PitchDetector(source.sample_rate, threshold=pitch_config["threshold"])
        app = TuningApp(
            source,
            coordinator,
            CursesPresenter(),
            detector=detector,
            window_size=audio_config["window_size"],
            on_note_completed=(
                (lambda: beep(sample_rate)) if parsed_args.beep or tuner_config["beep"] else None
            ),
        )
        app.run()
    except AudioDeviceError as e:
        logger.error(f"Audio device error: {e}")
        print(f"Audio device error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")

    if coordinator.session is not None:
        session = coordinator.session
        print(
            f"Session {session.id}: {len(session.completed_notes)} keys recorded, "
            f"average deviation {session.average_deviation():.1f} cents"
        )
    return 0


def run_analyze(parsed_args, config: ConfigManager) -> int:
    """Print the detected pitch over time for an audio file."""
    audio_config = config.get_config("audio_input")
    pitch_config = config.get_config("pitch")
    a4 = parsed_args.a4 or config.get_config("tuner")["a4"]

    try:
        source = WavFileAudioSource(parsed_args.file)
    except (OSError, RuntimeError) as e:
        print(f"Could not read {parsed_args.file}: {e}", file=sys.stderr)
        return 1

    window = parsed_args.window or audio_config["window_size"]
    detector = PitchDetector(source.sample_rate, threshold=pitch_config["threshold"])
    temperament = Temperament(a4)
    floor = pitch_config["tuning_confidence"]

    print(f"{parsed_args.file}: {source.duration:.2f}s at {source.sample_rate}Hz")
    frequencies = []
    for i, frame in enumerate(source.frames(window, hop_size=window // 2)):
        estimate = detector.detect(frame)
        if estimate is None or estimate.confidence < floor:
            continue
        frequencies.append(estimate.frequency)
        midi = temperament.nearest_midi(estimate.frequency)
        cents = Temperament.cents_from_target(estimate.frequency, temperament.frequency(midi))
        note = note_for_midi(midi)
        name = note.display_name if note else f"MIDI {midi}"
        t = i * (window // 2) / source.sample_rate
        print(
            f"{t:7.2f}s  {estimate.frequency:9.2f}Hz  {name:>4} {cents:+6.1f} cents  "
            f"(confidence {estimate.confidence:.2f})"
        )

    if not frequencies:
        print("No confident pitch found")
        return 0

    median = float(np.median(frequencies))
    midi = temperament.nearest_midi(median)
    note = note_for_midi(midi)
    cents = Temperament.cents_from_target(median, temperament.frequency(midi))
    name = note.display_name if note else f"MIDI {midi}"
    print(f"Median pitch: {median:.2f}Hz = {name} {cents:+.1f} cents (A4 = {a4:.1f}Hz)")
    return 0


def run_reference(parsed_args, config: ConfigManager) -> int:
    midi = parse_note_name(parsed_args.note)
    if midi is None:
        print(f"Not a note name: {parsed_args.note}", file=sys.stderr)
        return 1
    a4 = parsed_args.a4 or config.get_config("tuner")["a4"]
    frequency = Temperament(a4).frequency(midi)
    print(f"{normalize_to_sharp(parsed_args.note)}: {frequency:.2f}Hz")
    play_reference(frequency, parsed_args.duration, config.get_config("audio_input")["sample_rate"])
    return 0


def run_history(store: SessionStore) -> int:
    sessions = store.list_sessions()
    if not sessions:
        print("No saved sessions")
    for session in sessions:
        state = "complete" if session.is_complete() else "in progress"
        print(
            f"{session.created_at:%Y-%m-%d %H:%M}  {session.mode.value:<8} "
            f"{session.progress_percent():5.1f}%  "
            f"avg {session.average_deviation():4.1f} cents  A4={session.effective_a4:.2f}Hz  ({state})"
        )

    profiles = store.list_profiles()
    if profiles:
        print("\nProfiles:")
    for profile in profiles:
        measured, total = profile.progress()
        worst = ", ".join(
            f"{note_for_midi(n.midi).display_name} {n.cents:+.0f}" for n in profile.worst_notes(3)
        )
        print(
            f"{profile.created_at:%Y-%m-%d %H:%M}  {measured}/{total} keys  "
            f"avg {profile.average_deviation():4.1f} cents  worst: {worst or '-'}"
        )
    return 0


def run_devices() -> int:
    devices = list_input_devices()
    if not devices:
        print("No input devices found")
        return 1
    for device_id, name, default_rate in devices:
        print(f"{device_id:3d}  {name}  ({default_rate:.0f}Hz)")
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command line arguments, or None to use sys.argv

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    parsed_args = parser.parse_args(args)
    level = "DEBUG" if parsed_args.debug else None

    config = ConfigManager()
    store = SessionStore(parsed_args.data_dir)

    if parsed_args.command is None:
        # The curses screen owns the terminal, so logs go to a file
        store.base_dir.mkdir(parents=True, exist_ok=True)
        setup_logging(level=level, log_file=os.path.join(store.base_dir, "piano_coach.log"))
        return run_tuner(parsed_args, config, store)

    setup_logging(level=level)
    if parsed_args.command == "analyze":
        return run_analyze(parsed_args, config)
    if parsed_args.command == "reference":
        return run_reference(parsed_args, config)
    if parsed_args.command == "history":
        return run_history(store)
    if parsed_args.command == "reset":
        count = store.reset()
        print(f"Removed {count} saved session(s)")
        return 0
    if parsed_args.command == "devices":
        return run_devices()

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
