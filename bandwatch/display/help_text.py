"""The bottom line with key hints."""

from __future__ import annotations

from dataclasses import dataclass

from wcwidth import wcwidth

from bandwatch.display.frame import Frame, Rect, Style

FIRST_WIDTH_BREAKPOINT = 76
SECOND_WIDTH_BREAKPOINT = 54

TEXT_WHEN_PAUSED = " Press <SPACE> to resume."
TEXT_WHEN_NOT_PAUSED = " Press <SPACE> to pause."
TEXT_WHEN_DNS_NOT_SHOWN = " (DNS queries hidden)."
TEXT_WHEN_DNS_SHOWN = " (DNS queries shown)."
TEXT_TAB_TIP = " Use <TAB> to rearrange tables."


def _clip(text: str, width: int) -> str:
    used = 0
    kept = []
    for ch in text:
        used += max(wcwidth(ch), 0)
        if used > width:
            break
        kept.append(ch)
    return "".join(kept)


@dataclass
class HelpText:
    """Hints on pausing, rearranging and DNS display."""

    paused: bool
    show_dns: bool

    def text_for_width(self, width: int) -> str:
        """The hint text that suits a line of this width."""
        pause = TEXT_WHEN_PAUSED if self.paused else TEXT_WHEN_NOT_PAUSED
        if width <= FIRST_WIDTH_BREAKPOINT:
            dns = ""
        elif self.show_dns:
            dns = TEXT_WHEN_DNS_SHOWN
        else:
            dns = TEXT_WHEN_DNS_NOT_SHOWN
        tab = "" if width <= SECOND_WIDTH_BREAKPOINT else TEXT_TAB_TIP
        return pause + tab + dns

    def render(self, frame: Frame, rect: Rect) -> None:
        if rect.width <= 0 or rect.height <= 0:
            return
        text = _clip(self.text_for_width(rect.width), rect.width)
        frame.buffer.set_string(rect.x, rect.y, text, Style(bold=True))