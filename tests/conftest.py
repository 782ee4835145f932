"""Shared fixtures for the identity test-suite."""

from pathlib import Path

import pytest
from PIL import Image

from identity.utils import RunLog, logger, LogLevel


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch):
    monkeypatch.setattr(logger, "_current_level", LogLevel.ERROR)


def make_image(path: Path, size=(90, 60), color=(255, 255, 255), mode="RGB") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path)
    return path


def make_gif(path: Path, frames=3, size=(20, 20)) -> Path:
    palette = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0), (0, 255, 255)]
    images = [Image.new("RGB", size, palette[i % len(palette)]) for i in range(frames)]
    path.parent.mkdir(parents=True, exist_ok=True)
    images[0].save(path, save_all=True, append_images=images[1:], duration=100, loop=0)
    return path


@pytest.fixture
def watermark(tmp_path) -> Path:
    return make_image(tmp_path / "watermark.png", size=(30, 30), color=(255, 0, 0, 255), mode="RGBA")


@pytest.fixture
def run_log(tmp_path) -> RunLog:
    return RunLog(tmp_path / "error.log", tmp_path / "unsupported_files.log")
