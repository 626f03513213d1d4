import pytest

from bandwatch.display.frame import Buffer, Frame, Rect
from bandwatch.display.help_text import (
    TEXT_TAB_TIP,
    TEXT_WHEN_DNS_NOT_SHOWN,
    TEXT_WHEN_DNS_SHOWN,
    TEXT_WHEN_NOT_PAUSED,
    TEXT_WHEN_PAUSED,
    HelpText,
)


def test_full_width_text():
    expected = (
        " Press <SPACE> to pause. Use <TAB> to rearrange tables. (DNS queries hidden)."
    )
    assert HelpText(False, False).text_for_width(100) == expected


def test_dns_shown_text():
    assert HelpText(False, True).text_for_width(100).endswith(TEXT_WHEN_DNS_SHOWN)


@pytest.mark.parametrize("width", [55, 76])
def test_dns_hint_dropped_below_first_breakpoint(width):
    text = HelpText(False, False).text_for_width(width)
    assert text == TEXT_WHEN_NOT_PAUSED + TEXT_TAB_TIP
    assert TEXT_WHEN_DNS_NOT_SHOWN not in text


@pytest.mark.parametrize("width", [10, 54])
def test_only_pause_hint_when_narrow(width):
    assert HelpText(True, True).text_for_width(width) == TEXT_WHEN_PAUSED


def test_paused_text_mentions_resume():
    assert HelpText(True, False).text_for_width(100).startswith(TEXT_WHEN_PAUSED)


def test_render_writes_text():
    help_text = HelpText(False, True)
    buffer = Buffer(Rect(0, 0, 100, 1))
    help_text.render(Frame(buffer), buffer.area)
    assert buffer.lines()[0].startswith(help_text.text_for_width(100))


def test_render_clips_to_width():
    help_text = HelpText(False, False)
    buffer = Buffer(Rect(0, 0, 20, 1))
    help_text.render(Frame(buffer), buffer.area)
    assert buffer.lines()[0] == help_text.text_for_width(20)[:20]