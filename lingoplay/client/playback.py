"""
Playback-time alignment for a player UI.

Pure functions over an ordered cue sequence and the current playback time.
The only side effect is the explicit seek issued by jump_to().
"""

import re
from typing import Optional, Sequence, List, Dict, Any, Protocol

from lingoplay.models import Cue

_NON_WORD = re.compile(r'[^\w]')


class PlayerHandle(Protocol):
    """The embedded video player, as seen by the subtitle UI."""

    def get_current_time(self) -> float:
        ...

    def seek_to(self, seconds: float) -> None:
        ...

    def set_playback_rate(self, rate: float) -> None:
        ...


def current_cue(cues: Sequence[Cue], t: float) -> Optional[Cue]:
    """The cue with start <= t <= end; the earliest one wins under overlap."""
    for cue in cues:
        if cue.start <= t <= cue.end:
            return cue
    return None


def next_cue(cues: Sequence[Cue], t: float) -> Optional[Cue]:
    for cue in cues:
        if cue.start > t:
            return cue
    return None


def previous_cue(cues: Sequence[Cue], t: float) -> Optional[Cue]:
    found = None
    for cue in cues:
        if cue.start < t:
            found = cue
    return found


def jump_to(cue: Optional[Cue], player: Optional[PlayerHandle]) -> bool:
    """Seek the player to the cue start. No-op until a player is bound."""
    if cue is None or player is None:
        return False
    player.seek_to(cue.start)
    return True


def go_to_next(cues: Sequence[Cue], t: float, player: Optional[PlayerHandle]) -> Optional[Cue]:
    cue = next_cue(cues, t)
    return cue if jump_to(cue, player) else None


def go_to_previous(cues: Sequence[Cue], t: float, player: Optional[PlayerHandle]) -> Optional[Cue]:
    cue = previous_cue(cues, t)
    return cue if jump_to(cue, player) else None


def format_timestamp(seconds: float) -> str:
    """H:MM:SS from one hour on, M:SS below."""
    total = int(max(0, seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def split_into_words(text: str) -> List[Dict[str, Any]]:
    """
    Space-separated tokens for click-to-save. `clean_word` drops punctuation
    so "world!" and "world" land on the same vocabulary entry.
    """
    return [
        {'word': word, 'index': index, 'clean_word': _NON_WORD.sub('', word)}
        for index, word in enumerate((text or '').split(' '))
    ]
