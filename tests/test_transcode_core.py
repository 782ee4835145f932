from pathlib import Path

import pytest

from identity.errors import MetadataUnavailable
from identity.transcode import core
from identity.transcode.core import CodecProbe, VideoInfo


@pytest.fixture(autouse=True)
def _clear_caches():
    for fn in (core.probe_best_codec, core._ffmpeg_hwaccels, core._ffmpeg_encoders):
        fn.cache_clear()
    yield
    for fn in (core.probe_best_codec, core._ffmpeg_hwaccels, core._ffmpeg_encoders):
        fn.cache_clear()


def test_select_codec_falls_back_to_software():
    preference = [
        CodecProbe("nvenc", lambda: False, "h264_nvenc"),
        CodecProbe("qsv", lambda: False, "h264_qsv"),
        CodecProbe("amf", lambda: False, "h264_amf"),
        CodecProbe("software", lambda: True, "libx264"),
    ]
    assert core.select_codec(preference) == "libx264"


def test_select_codec_is_first_match():
    calls = []

    def probe(name, result):
        def _probe():
            calls.append(name)
            return result
        return _probe

    preference = [
        CodecProbe("nvenc", probe("nvenc", False), "h264_nvenc"),
        CodecProbe("qsv", probe("qsv", True), "h264_qsv"),
        CodecProbe("amf", probe("amf", True), "h264_amf"),
    ]
    assert core.select_codec(preference) == "h264_qsv"
    assert calls == ["nvenc", "qsv"]


def test_select_codec_treats_broken_probe_as_unavailable():
    def boom():
        raise RuntimeError("driver exploded")

    preference = [CodecProbe("nvenc", boom, "h264_nvenc"), CodecProbe("software", lambda: True, "libx264")]
    assert core.select_codec(preference) == "libx264"


def test_software_entry_is_last_and_always_available():
    last = core.CODEC_PREFERENCE[-1]
    assert last.codec == "libx264"
    assert last.probe() is True
    assert [p.name for p in core.CODEC_PREFERENCE] == ["nvenc", "qsv", "amf", "software"]


def test_probe_best_codec_runs_probes_once(monkeypatch):
    calls = []

    def counting():
        calls.append(1)
        return True

    monkeypatch.setattr(core, "CODEC_PREFERENCE", (CodecProbe("fake", counting, "h264_fake"),))

    assert core.probe_best_codec() == "h264_fake"
    assert core.probe_best_codec() == "h264_fake"
    assert len(calls) == 1


def test_probes_survive_missing_binaries(monkeypatch):
    def missing(cmd, timeout=None):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(core.system_util, "run_cmd", missing)

    assert core._nvidia_available() is False
    assert core._intel_available() is False
    assert core._amd_available() is False
    assert core.probe_best_codec() == "libx264"


def test_probes_treat_nonzero_exit_as_unavailable(monkeypatch):
    monkeypatch.setattr(core.system_util, "run_cmd", lambda cmd, timeout=None: (9, "GPU 0: qsv h264_amf", ""))

    assert core.probe_best_codec() == "libx264"


def test_probes_match_vendor_signatures(monkeypatch):
    outputs = {
        "nvidia-smi": (0, "", ""),
        "-hwaccels": (0, "Hardware acceleration methods:\nvaapi\nqsv\n", ""),
        "-encoders": (0, " V....D h264_amf  AMD AMF H.264 Encoder\n", ""),
    }

    def fake_run(cmd, timeout=None):
        key = cmd[0] if cmd[0] == "nvidia-smi" else cmd[-1]
        return outputs[key]

    monkeypatch.setattr(core.system_util, "run_cmd", fake_run)

    assert core._nvidia_available() is False
    assert core._intel_available() is True
    assert core._amd_available() is True
    assert core.probe_best_codec() == "h264_qsv"


@pytest.mark.parametrize("text, expected", [
    ("1920x1080\n", (1920, 1080)),
    ("640x480x\n", (640, 480)),
    ("\n1280x720\n", (1280, 720)),
])
def test_parse_dimensions(text, expected):
    assert core.parse_dimensions(text) == expected


@pytest.mark.parametrize("text", ["", "N/A", "1920", "axb", "1920x"])
def test_parse_dimensions_rejects_garbage(text):
    with pytest.raises(MetadataUnavailable):
        core.parse_dimensions(text)


def test_parse_duration():
    assert core.parse_duration("12.480000\n") == pytest.approx(12.48)
    for bad in ("", "N/A", "-3"):
        with pytest.raises(MetadataUnavailable):
            core.parse_duration(bad)


def test_probe_failure_is_metadata_unavailable(monkeypatch):
    monkeypatch.setattr(core.system_util, "run_cmd", lambda cmd, timeout=None: (1, "", "moov atom not found"))

    with pytest.raises(MetadataUnavailable, match="moov atom"):
        core.probe_dimensions(Path("broken.mp4"))


def test_ffprobe_video_info(monkeypatch):
    def fake_run(cmd, timeout=None):
        if "format=duration" in cmd:
            return 0, "7.5\n", ""
        return 0, "1280x720\n", ""

    monkeypatch.setattr(core.system_util, "run_cmd", fake_run)

    assert core.ffprobe_video_info(Path("clip.mp4")) == VideoInfo(width=1280, height=720, duration=7.5)


def test_build_watermark_cmd():
    info = VideoInfo(width=1920, height=1080, duration=10.0)
    cmd = core.build_watermark_cmd(Path("in.mov"), Path("wm.png"), Path("out/in.mp4"), info, "h264_nvenc")

    assert cmd.count("-i") == 2
    assert cmd[cmd.index("-i") + 1] == "in.mov"
    graph = cmd[cmd.index("-filter_complex") + 1]
    assert "min(iw,640)" in graph and "min(ih,360)" in graph
    assert "force_original_aspect_ratio=decrease" in graph
    assert "overlay=10:H-h-10" in graph
    assert cmd[cmd.index("-c:v") + 1] == "h264_nvenc"
    assert cmd[cmd.index("-c:a") + 1] == "aac"
    assert cmd[cmd.index("-b:a") + 1] == "192k"
    assert cmd[cmd.index("-pix_fmt") + 1] == "yuv420p"
    assert cmd[cmd.index("-movflags") + 1] == "+faststart"
    assert cmd[-1] == str(Path("out/in.mp4"))


def test_build_convert_cmd():
    cmd = core.build_convert_cmd(Path("a.gif"), Path("gifs/a.mp4"), "libx264")

    assert cmd[cmd.index("-i") + 1] == "a.gif"
    assert cmd[cmd.index("-c:v") + 1] == "libx264"
    assert cmd[cmd.index("-pix_fmt") + 1] == "yuv420p"
    assert "+faststart" in cmd
    assert cmd[-1] == str(Path("gifs/a.mp4"))
