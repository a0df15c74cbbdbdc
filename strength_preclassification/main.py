#!/usr/bin/env python3
"""
Main Entry Point for the Strength Preclassification Pipeline.

Usage:
    strength-preclassification --summary
    strength-preclassification --replay recordings/set_01 --model-path models/Squat.pth
    strength-preclassification --replay recordings/set_02 --mode train --label Deadlift

Thresholds and window sizes are in config/settings.py.
"""

import argparse
import sys
from pathlib import Path


class ConsoleReporter:
    """Prints detector transitions and block results."""

    def moving(self):
        print("  -> moving")

    def not_moving(self):
        print("  -> not moving")

    def exercising(self):
        print("  -> exercising")

    def exercise_ended(self):
        print("  -> exercise ended")

    def classification_completed(self, results, data, failure=None):
        print("\n" + "-"*70)
        if failure is not None:
            print(f"Classification failed: {failure.reason}")
        elif not results:
            print("No exercise classified")
        for rank, result in enumerate(results, 1):
            reps = result.repetitions if result.repetitions is not None else '-'
            print(f"  {rank:2d}. {result.label:<15} confidence {result.confidence:.3f}   reps {reps}")
        print(f"  ({len(data)} bytes of window data)")
        print("-"*70)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Strength Preclassification - exercise detection and classification from wearable sensors',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    strength-preclassification --summary                              Print configuration
    strength-preclassification --replay DIR --model-path model.pth    Classify a recording
    strength-preclassification --replay DIR --mode train --label Squat
                                                                      Record a training block
        """
    )

    parser.add_argument(
        '--summary',
        action='store_true',
        help='Print configuration summary and exit'
    )

    parser.add_argument(
        '--replay',
        type=str,
        default=None,
        metavar='DIR',
        help='Recording folder with <sensor>_<location>[_<device>].csv files'
    )

    parser.add_argument(
        '--mode',
        choices=['train', 'classify'],
        default='classify',
        help='Session mode (default: classify)'
    )

    parser.add_argument(
        '--label',
        type=str,
        default=None,
        help='Ground-truth exercise for training mode'
    )

    parser.add_argument(
        '--model-path',
        type=str,
        default=None,
        help='Classifier checkpoint for classify mode'
    )

    parser.add_argument(
        '--model-id',
        type=str,
        default=None,
        help='Load <model-id>.pth from the configured models directory'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help='Where training blocks are saved (default from config)'
    )

    parser.add_argument(
        '--frame-size',
        type=int,
        default=25,
        help='Records per replayed device frame (default: 25)'
    )

    parser.add_argument(
        '--window-step',
        type=float,
        default=None,
        help='Window step size in seconds (overrides config)'
    )

    args = parser.parse_args(argv)

    # Import after parsing to avoid slow imports for --help
    from .config import CONFIG, set_window_step
    from .utils import setup_logging, get_logger

    CONFIG.output.ensure_directories()
    setup_logging(
        log_dir=CONFIG.output.logs_dir,
        log_level=CONFIG.output.log_level,
        verbose_console=CONFIG.output.verbose_console,
        log_to_file=CONFIG.output.log_to_file
    )
    logger = get_logger('main')

    # Print header
    print("\n" + "="*70)
    print("STRENGTH PRECLASSIFICATION")
    print("Exercise detection and classification from wearable sensors")
    print("="*70)

    if args.window_step is not None:
        set_window_step(args.window_step)
        logger.info(f"Window step set to: {args.window_step} s")

    if args.summary:
        CONFIG.print_summary()
        return 0

    # Validate configuration
    errors, warnings = CONFIG.validate()
    if errors:
        logger.error("Configuration validation failed!")
        for error in errors:
            logger.error(f"  - {error}")
        return 1

    for warning in warnings:
        logger.warning(f"  - {warning}")

    if args.replay is None:
        parser.print_help()
        return 0

    if args.mode == 'train':
        return run_training(args)
    return run_classification(args)


def run_training(args) -> int:
    """Replay a recording as one labelled training block."""
    from .config import CONFIG
    from .data import load_recording, TrainingDataWriter
    from .pipeline import Preclassification
    from .utils import get_logger

    logger = get_logger('main')

    if args.label is None:
        logger.error("Training mode needs --label")
        return 1

    try:
        frames = load_recording(Path(args.replay), args.frame_size, CONFIG, hint=args.label)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load recording: {e}")
        return 1

    output_dir = Path(args.output_dir) if args.output_dir else CONFIG.output.training_dir
    writer = TrainingDataWriter(output_dir)
    reporter = ConsoleReporter()

    print(f"\nReplaying {len(frames)} frames as training block '{args.label}'")

    with Preclassification.training(
        CONFIG,
        exercise_block_observer=reporter,
        training_observer=writer
    ) as session:
        session.training_started(args.label)
        replay(session, frames)
        session.training_completed()

    logger.info(f"Diagnostics: {session.diagnostics}")
    if not writer.saved:
        logger.error("No training block was saved")
        return 1
    print(f"\nTraining block saved to: {writer.saved[-1]}")
    return 0


def run_classification(args) -> int:
    """Replay a recording through a classifying session."""
    from .classification import DirectoryModelSource, load_classifier
    from .config import CONFIG
    from .data import load_recording
    from .exceptions import ClassificationFailure
    from .pipeline import Preclassification
    from .utils import get_logger

    logger = get_logger('main')

    model_path = args.model_path or CONFIG.classification.model_path
    classifier = None
    try:
        if args.model_id is not None:
            classifier = DirectoryModelSource(CONFIG.output.models_dir, CONFIG).get_exercise_model(args.model_id)
        elif model_path is not None:
            classifier = load_classifier(Path(model_path), CONFIG)
        else:
            logger.warning("No model given; every block will report a classification failure")
    except ClassificationFailure as e:
        logger.error(str(e))
        return 1

    try:
        frames = load_recording(Path(args.replay), args.frame_size, CONFIG)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load recording: {e}")
        return 1

    reporter = ConsoleReporter()
    print(f"\nReplaying {len(frames)} frames")

    with Preclassification.classifying(
        classifier,
        CONFIG,
        exercise_block_observer=reporter,
        classification_observer=reporter
    ) as session:
        replay(session, frames)
        session.exercise_completed()

    logger.info(f"Diagnostics: {session.diagnostics}")
    return 0


def replay(session, frames):
    """Push frames through the session's wire path, in order."""
    from .data import frame_to_bytes

    for frame in frames:
        session.push_data(frame_to_bytes(frame, session.config), frame.location, frame.hint)


if __name__ == "__main__":
    sys.exit(main())
