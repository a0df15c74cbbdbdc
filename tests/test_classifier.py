import pytest
import torch

from strength_preclassification.classification import (
    DirectoryModelSource,
    MLPClassifier,
    check_labels,
    create_classifier,
    load_classifier,
    save_classifier,
)
from strength_preclassification.exceptions import ClassificationFailure

from conftest import LEFT_ACC, RIGHT_ACC, make_window, sinusoid

LABELS = ['Squat', 'Deadlift', 'Pullups']


def test_mlp_output_shape():
    model = MLPClassifier(n_channels=3, samples_per_window=200, n_classes=4, hidden_size=32)
    model.eval()

    logits = model(torch.zeros(2, 3, 200))

    assert logits.shape == (2, 4)


def test_classify_window(config):
    classifier = create_classifier(LABELS, 3, 200, config, hidden_size=32)

    verdict = classifier.classify(make_window(0, 0.0, sinusoid(4.0)))

    assert verdict.label in LABELS
    assert 0.0 <= verdict.confidence <= 1.0


def test_short_window_is_resampled(config):
    classifier = create_classifier(LABELS, 3, 100, config, hidden_size=32)

    tensor = classifier.prepare(make_window(0, 0.0, sinusoid(2.5)))

    assert tuple(tensor.shape) == (1, 3, 100)


def test_channel_mismatch_is_a_classification_failure(config):
    classifier = create_classifier(LABELS, 6, 200, config, hidden_size=32)

    with pytest.raises(ClassificationFailure):
        classifier.classify(make_window(0, 0.0, sinusoid(4.0)))


def test_checkpoint_round_trip(config, tmp_path):
    classifier = create_classifier(LABELS, 6, 200, config, hidden_size=32)
    window = make_window(0, 0.0, sinusoid(4.0), key=LEFT_ACC)
    window.segments.update(make_window(0, 0.0, sinusoid(4.0, period=0.7), key=RIGHT_ACC).segments)
    path = tmp_path / "models" / "squat.pth"

    save_classifier(classifier, path)
    loaded = load_classifier(path, config)

    assert loaded.labels == LABELS
    assert loaded.n_channels == 6
    assert loaded.classify(window) == classifier.classify(window)


def test_missing_checkpoint(config, tmp_path):
    with pytest.raises(ClassificationFailure):
        load_classifier(tmp_path / "missing.pth", config)


def test_corrupt_checkpoint(config, tmp_path):
    path = tmp_path / "corrupt.pth"
    path.write_bytes(b"not a checkpoint")

    with pytest.raises(ClassificationFailure):
        load_classifier(path, config)


def test_directory_model_source(config):
    save_classifier(
        create_classifier(LABELS, 3, 200, config, hidden_size=32),
        config.output.models_dir / "wrist.pth"
    )
    source = DirectoryModelSource(config=config)

    model = source.get_exercise_model('wrist')

    assert model is source.get_exercise_model('wrist')
    with pytest.raises(ClassificationFailure):
        source.get_exercise_model('ankle')


def test_model_labels_are_checked_against_exercises(config):
    config.classification.exercises = ['Squat', 'Deadlift']

    assert check_labels(LABELS, config) == ['Pullups']
    assert check_labels(['Squat'], config) == []
