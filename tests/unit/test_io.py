"""
Unit tests for curleacoustics/model/io.py

Tests the result file writer and the HDF5 surface recording.
"""

import numpy as np
import pytest

from curleacoustics.analysis.observer import Spectrum
from curleacoustics.model.io import (
    OUTPUT_DIRECTORY,
    AcousticWriter,
    SurfaceRecording,
    read_time_history,
)
from curleacoustics.pre.fields import BoundaryField, FieldRegistry


def fields_at(time):
    return FieldRegistry([
        BoundaryField("p", {"wall": [time, 2.0 * time], "fin": [-time]}, is_pressure=False),
        BoundaryField("rho", {"wall": [1.0, 1.1], "fin": [0.9]}),
    ])


class TestAcousticWriter:
    """Test AcousticWriter output formats."""

    def test_time_history_file(self, tmp_path):
        with AcousticWriter(str(tmp_path), "cyl") as writer:
            writer.open(["mic1", "mic2"])
            writer.write_time_step(0.0, [1.5, -2.0])
            writer.write_time_step(0.01, [0.25, 3.0e-7])

        path = tmp_path / OUTPUT_DIRECTORY / "cyl-time.dat"
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "Time mic1_pFluct mic2_pFluct"
        assert lines[1].split() == ["0", "1.5", "-2"]

        header, data = read_time_history(str(path))
        assert header == ["Time", "mic1_pFluct", "mic2_pFluct"]
        np.testing.assert_allclose(data, [[0.0, 1.5, -2.0], [0.01, 0.25, 3.0e-7]])

    def test_write_before_open(self, tmp_path):
        writer = AcousticWriter(str(tmp_path), "cyl")
        with pytest.raises(RuntimeError):
            writer.write_time_step(0.0, [1.0])

    def test_open_twice_keeps_file(self, tmp_path):
        writer = AcousticWriter(str(tmp_path), "cyl")
        writer.open(["a"])
        writer.write_time_step(1.0, [2.0])
        writer.open(["a"])
        writer.close()
        lines = (tmp_path / OUTPUT_DIRECTORY / "cyl-time.dat").read_text().splitlines()
        assert len(lines) == 2

    def test_spectrum_file(self, tmp_path):
        writer = AcousticWriter(str(tmp_path), "cyl")
        spectrum = Spectrum(
            frequencies=np.array([10.0, 20.0]),
            amplitudes=np.array([0.5, 0.0]),
            spl=np.array([87.96, -np.inf]),
        )
        assert writer.write_spectrum("mic1", spectrum)

        lines = (tmp_path / OUTPUT_DIRECTORY / "fft-cyl-mic1.dat").read_text().splitlines()
        assert lines[0] == "Freq p' spl"
        assert lines[1].split() == ["10", "0.5", "87.96"]
        assert lines[2].split() == ["20", "0", "-inf"]

    def test_spectrum_file_rewritten(self, tmp_path):
        writer = AcousticWriter(str(tmp_path), "cyl")
        writer.write_spectrum("mic1", Spectrum(np.array([1.0, 2.0]), np.array([1.0, 1.0]), np.array([0.0, 0.0])))
        writer.write_spectrum("mic1", Spectrum(np.array([1.0]), np.array([1.0]), np.array([0.0])))
        lines = (tmp_path / OUTPUT_DIRECTORY / "fft-cyl-mic1.dat").read_text().splitlines()
        assert len(lines) == 2

    def test_empty_spectrum_not_written(self, tmp_path):
        writer = AcousticWriter(str(tmp_path), "cyl")
        assert not writer.write_spectrum("mic1", Spectrum())
        assert not (tmp_path / OUTPUT_DIRECTORY / "fft-cyl-mic1.dat").exists()


class TestSurfaceRecording:
    """Test SurfaceRecording storage and replay."""

    def test_record_and_replay(self):
        recording = SurfaceRecording()
        for t in (0.0, 0.1, 0.2):
            recording.record(t, fields_at(t))

        steps = list(recording.steps())
        assert [s[0] for s in steps] == [0.0, 0.1, 0.2]
        assert [s[1] for s in steps] == pytest.approx([0.1, 0.1, 0.1])

        _, _, fields = steps[2]
        p = fields.lookup("p")
        assert p.is_pressure is False
        np.testing.assert_allclose(p.on_patch("wall"), [0.2, 0.4])
        np.testing.assert_allclose(fields.lookup("rho").on_patch("fin"), [0.9])

    def test_save_and_load(self, tmp_path):
        recording = SurfaceRecording()
        for t in (0.0, 0.5, 1.0, 1.5):
            recording.record(t, fields_at(t))
        path = str(tmp_path / "surface.h5")
        recording.save(path)

        loaded = SurfaceRecording.load(path)
        assert loaded.n_steps == 4
        assert sorted(loaded.field_names) == ["p", "rho"]
        assert loaded.times == [0.0, 0.5, 1.0, 1.5]
        fields = loaded.fields_at(3)
        assert fields.lookup("p").is_pressure is False
        assert fields.lookup("rho").is_pressure is True
        np.testing.assert_allclose(fields.lookup("p").on_patch("fin"), [-1.5])

    def test_load_rejects_non_hdf5(self, tmp_path):
        path = tmp_path / "surface.h5"
        path.write_text("plain text")
        with pytest.raises(ValueError):
            SurfaceRecording.load(str(path))

    def test_times_must_increase(self):
        recording = SurfaceRecording()
        recording.record(1.0, fields_at(1.0))
        with pytest.raises(ValueError):
            recording.record(1.0, fields_at(1.0))

    def test_fields_must_match(self):
        recording = SurfaceRecording()
        recording.record(0.0, fields_at(0.0))
        with pytest.raises(ValueError):
            recording.record(1.0, FieldRegistry([BoundaryField("p", {"wall": [0.0, 0.0]})]))

    def test_single_step_has_no_time_step(self):
        recording = SurfaceRecording()
        recording.record(0.0, fields_at(0.0))
        with pytest.raises(ValueError):
            list(recording.steps())
