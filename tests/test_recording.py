import json

import numpy as np
import pandas as pd
import pytest

from strength_preclassification.data import (
    Location,
    SampleDecoder,
    SensorType,
    TrainingDataWriter,
    decode_windows,
    encode_windows,
    load_recording,
    save_training_block,
)
from strength_preclassification.main import main
from strength_preclassification.pipeline import Preclassification

from conftest import LEFT_ACC, RATE, frames, sinusoid, sliding_windows, still


def _write_csv(path, values, rate=RATE, start=0.0):
    df = pd.DataFrame(values, columns=['x', 'y', 'z'])
    df.insert(0, 'time', start + np.arange(len(values)) / rate)
    df.to_csv(path, index=False)


def test_save_training_block(tmp_path):
    windows = sliding_windows(sinusoid(6.0))

    folder = save_training_block('Squat', encode_windows(windows), tmp_path)

    assert folder.name == 'training_001'
    df = pd.read_csv(folder / 'accelerometer_left_wrist_0.csv')
    assert len(df) == 300
    assert list(df.columns) == ['time', 'x', 'y', 'z']
    metadata = json.loads((folder / 'metadata.json').read_text())
    assert metadata['exercise'] == 'Squat'
    assert metadata['windows'] == 3
    assert len(decode_windows((folder / 'windows.bin').read_bytes())) == 3


def test_training_folders_are_numbered(tmp_path):
    windows = sliding_windows(sinusoid(4.0))

    first = save_training_block('Squat', windows, tmp_path)
    second = save_training_block('Squat', windows, tmp_path)

    assert (first.name, second.name) == ('training_001', 'training_002')


def test_load_recording(config, tmp_path):
    _write_csv(tmp_path / 'accelerometer_left_wrist.csv', sinusoid(2.0))
    _write_csv(tmp_path / 'gyroscope_right_wrist_3.csv', still(1.0), start=0.01)
    (tmp_path / 'notes.csv').write_text("not,a,recording\n")

    loaded = load_recording(tmp_path, frame_size=25, config=config, hint='Squat')

    assert len(loaded) == 6
    assert [f.timestamp for f in loaded] == sorted(f.timestamp for f in loaded)
    gyro = [f for f in loaded if f.sensor_type == SensorType.GYROSCOPE]
    assert gyro[0].device_id == 3
    assert gyro[0].location == Location.RIGHT_WRIST
    assert loaded[0].hint == 'Squat'

    batch = SampleDecoder(config).decode(loaded[0])
    np.testing.assert_array_equal(batch.values, sinusoid(2.0)[:25])


def test_load_recording_rejects_wrong_columns(config, tmp_path):
    pd.DataFrame({'time': [0.0, 0.02], 'x': [1, 2]}).to_csv(tmp_path / 'accelerometer_left_wrist.csv', index=False)

    with pytest.raises(ValueError):
        load_recording(tmp_path, config=config)


def test_load_recording_missing_folder(config, tmp_path):
    with pytest.raises(FileNotFoundError):
        load_recording(tmp_path / 'missing', config=config)


def test_training_data_writer_saves_blocks(short_window_config, tmp_path):
    writer = TrainingDataWriter(tmp_path / 'training')
    session = Preclassification.training(short_window_config, training_observer=writer)

    session.training_started('Deadlift')
    for data in frames(sinusoid(4.0), config=short_window_config):
        session.push_data(data, Location.LEFT_WRIST)
    session.training_completed()

    assert len(writer.saved) == 1
    metadata = json.loads((writer.saved[0] / 'metadata.json').read_text())
    assert metadata['exercise'] == 'Deadlift'
    assert metadata['windows'] == 4
    assert metadata['total_samples'] == {str(LEFT_ACC): 200}


def test_cli_training_replay(tmp_path, monkeypatch):
    from strength_preclassification.config import CONFIG

    monkeypatch.setattr(CONFIG.output, 'output_dir', tmp_path / 'output')
    monkeypatch.setattr(CONFIG.output, 'logs_dir', tmp_path / 'output' / 'logs')
    monkeypatch.setattr(CONFIG.output, 'training_dir', tmp_path / 'output' / 'training')
    monkeypatch.setattr(CONFIG.output, 'models_dir', tmp_path / 'output' / 'models')
    monkeypatch.setattr(CONFIG.output, 'log_to_file', False)

    recording = tmp_path / 'recording'
    recording.mkdir()
    _write_csv(recording / 'accelerometer_left_wrist.csv', sinusoid(10.0))

    code = main(['--replay', str(recording), '--mode', 'train', '--label', 'Squat',
                 '--output-dir', str(tmp_path / 'blocks')])

    assert code == 0
    assert (tmp_path / 'blocks' / 'training_001' / 'metadata.json').exists()


def test_cli_training_needs_label(tmp_path, monkeypatch):
    from strength_preclassification.config import CONFIG

    monkeypatch.setattr(CONFIG.output, 'output_dir', tmp_path / 'output')
    monkeypatch.setattr(CONFIG.output, 'logs_dir', tmp_path / 'output' / 'logs')
    monkeypatch.setattr(CONFIG.output, 'training_dir', tmp_path / 'output' / 'training')
    monkeypatch.setattr(CONFIG.output, 'models_dir', tmp_path / 'output' / 'models')
    monkeypatch.setattr(CONFIG.output, 'log_to_file', False)

    assert main(['--replay', str(tmp_path), '--mode', 'train']) == 1
