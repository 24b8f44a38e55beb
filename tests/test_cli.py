import json
import unittest.mock as mock

import numpy as np
import pytest
import soundfile as sf
from click.testing import CliRunner

from rhythmscope.cli import cli, format_time


@pytest.fixture
def runner():
    return CliRunner()


def _write_click_track(path, bpm=120, duration=4, sr=22050):
    y = np.zeros(sr * duration)
    period = int(round(sr * 60.0 / bpm))
    t = np.arange(int(sr * 0.08)) / sr
    burst = 0.9 * np.sin(2 * np.pi * 80 * t) * np.exp(-t * 40)
    for start in range(period // 2, len(y) - len(burst), period):
        y[start : start + len(burst)] += burst
    sf.write(str(path), y, sr)
    return str(path)


@pytest.fixture
def temp_audio_file(tmp_path):
    return _write_click_track(tmp_path / "test.wav")


@pytest.fixture
def short_audio_file(tmp_path):
    file_path = tmp_path / "short.wav"
    sr = 22050
    t = np.arange(1000) / sr
    sf.write(str(file_path), 0.5 * np.sin(2 * np.pi * 440 * t), sr)
    return str(file_path)


def test_analyze_valid_audio_file(runner, temp_audio_file):
    """Text output shows tempo, onset counts and the band table"""
    result = runner.invoke(cli, ["analyze", temp_audio_file])
    assert result.exit_code == 0
    assert "Analyzing:" in result.output
    assert "BPM:" in result.output
    assert "confidence:" in result.output
    assert "Beats:" in result.output
    assert "Hi-hats:" in result.output
    assert "sub_bass" in result.output
    assert "treble" in result.output


def test_analyze_missing_file(runner):
    """Missing file returns error and non-zero exit code"""
    result = runner.invoke(cli, ["analyze", "nonexistent.wav"])
    assert result.exit_code == 1
    assert "Error: Unable to load audio file" in result.output


def test_analyze_undecodable_file(runner, tmp_path):
    """A file librosa cannot read is reported as a load error"""
    bogus = tmp_path / "bogus.wav"
    bogus.write_text("not audio")
    with mock.patch("librosa.load", side_effect=RuntimeError("Format not recognised")):
        result = runner.invoke(cli, ["analyze", str(bogus)])
    assert result.exit_code == 1
    assert "Error: Unable to load audio file" in result.output


def test_analyze_json_output(runner, temp_audio_file):
    """JSON output is valid and contains the session summary"""
    result = runner.invoke(cli, ["analyze", temp_audio_file, "--format", "json"])
    assert result.exit_code == 0

    data = json.loads(result.output)
    assert data["file"] == temp_audio_file
    for key in ("frames", "duration", "bpm", "confidence", "mean_energy", "bands", "onsets"):
        assert key in data
    assert set(data["bands"]) == {"sub_bass", "bass", "low_mid", "mid", "high_mid", "treble"}
    assert len(data["onsets"]["beat"]) >= 4
    assert 110 <= data["bpm"] <= 130


def test_analyze_multiple_files_json(runner, temp_audio_file, tmp_path):
    """Multiple files are reported as a track list"""
    second = _write_click_track(tmp_path / "fast.wav", bpm=150)
    result = runner.invoke(cli, ["analyze", temp_audio_file, second, "--format", "json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert [t["file"] for t in data["tracks"]] == [temp_audio_file, second]


def test_analyze_multiple_files_text(runner, temp_audio_file, tmp_path):
    second = _write_click_track(tmp_path / "second.wav")
    result = runner.invoke(cli, ["analyze", temp_audio_file, second])
    assert result.exit_code == 0
    assert result.output.count("Analyzing:") == 2


def test_short_audio_file_warning(runner, short_audio_file):
    """Files shorter than one analysis window produce a warning, not an error"""
    result = runner.invoke(cli, ["analyze", short_audio_file])
    assert result.exit_code == 0
    assert "File too short for analysis" in result.output


def test_short_audio_file_json(runner, short_audio_file):
    result = runner.invoke(cli, ["analyze", short_audio_file, "--format", "json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["bpm"] is None
    assert "warning" in data


def test_events_and_timeline(runner, temp_audio_file):
    result = runner.invoke(cli, ["analyze", temp_audio_file, "--events", "--timeline"])
    assert result.exit_code == 0
    assert "  Beats: 0:00." in result.output
    assert "Onsets" in result.output


def test_invalid_fft_size(runner, temp_audio_file):
    result = runner.invoke(cli, ["analyze", temp_audio_file, "--fft-size", "1000"])
    assert result.exit_code == 2
    assert "fft_size must be a power of two" in result.output


def test_empty_file_list_fails(runner):
    result = runner.invoke(cli, ["analyze"])
    assert result.exit_code != 0


def test_bands_command(runner):
    result = runner.invoke(cli, ["bands"])
    assert result.exit_code == 0
    for name in ("sub_bass", "bass", "low_mid", "mid", "high_mid", "treble"):
        assert name in result.output
    assert "20000" in result.output


def test_bands_command_custom_rate(runner):
    result = runner.invoke(cli, ["bands", "--sample-rate", "8000", "--fft-size", "256"])
    assert result.exit_code == 0
    assert "8000 Hz" in result.output


def test_verbose_flag(runner):
    result = runner.invoke(cli, ["-v", "bands"])
    assert result.exit_code == 0


def test_format_time():
    assert format_time(250.0) == "0:00.25"
    assert format_time(125300.0) == "2:05.30"
