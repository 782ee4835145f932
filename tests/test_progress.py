import pytest

from identity.transcode.progress import ProgressParser
from identity.utils.time_util import parse_timestamp

from conftest import make_gif


def _status(t: str) -> str:
    return f"frame=  120 fps= 30 q=28.0 size=     512KiB time={t} bitrate=1048.6kbits/s speed=1.0x"


def test_time_progress_is_monotonic_and_bounded():
    parser = ProgressParser.for_duration(10.0)
    stamps = ["00:00:00.00", "00:00:02.50", "00:00:05.00", "00:00:09.99", "00:00:10.00", "00:00:12.00"]

    fractions = [parser.feed(_status(t)) for t in stamps]

    assert fractions == sorted(fractions)
    assert all(0.0 <= f <= 1.0 for f in fractions)
    assert fractions[1] == pytest.approx(0.25)
    assert fractions[-1] == 1.0


@pytest.mark.parametrize("line", [
    None,
    "",
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mp4':",
    _status("N/A"),
    _status("00:61:00.00"),
    _status("-00:00:00.02"),
    _status("1:2"),
])
def test_lines_without_usable_marker_leave_state_unchanged(line):
    parser = ProgressParser.for_duration(20.0)
    parser.feed(_status("00:00:05.00"))

    assert parser.feed(line) is None
    assert parser.state.current_units == 5.0
    assert parser.fraction == pytest.approx(0.25)


def test_position_never_moves_backwards():
    parser = ProgressParser.for_duration(100.0)
    parser.feed(_status("00:00:50.00"))

    assert parser.feed(_status("00:00:49.96")) == pytest.approx(0.5)


def test_zero_total_never_divides():
    parser = ProgressParser.for_duration(0)

    assert parser.feed(_status("00:00:03.00")) == 0.0
    assert ProgressParser.for_frames(0).feed("frame=   10 fps=0.0") == 0.0


def test_frame_progress():
    parser = ProgressParser.for_frames(40)

    assert parser.feed("frame=   10 fps=0.0 q=-1.0 size=0kB time=00:00:00.33") == pytest.approx(0.25)
    assert parser.feed("frame=40 fps=0.0") == 1.0
    assert parser.feed("time=00:00:01.00 bitrate=N/A") is None


def test_for_animation_reads_frame_count_once(tmp_path):
    gif = make_gif(tmp_path / "anim.gif", frames=4)

    parser = ProgressParser.for_animation(gif)

    assert parser.state.total_units == 4
    assert parser.feed("frame=    2 fps=0.0") == pytest.approx(0.5)


@pytest.mark.parametrize("text, expected", [
    ("00:00:01.50", 1.5),
    ("01:02:03", 3723.0),
    ("10:00:00.00", 36000.0),
    ("00:60:00", None),
    ("garbage", None),
    ("", None),
])
def test_parse_timestamp(text, expected):
    assert parse_timestamp(text) == expected
