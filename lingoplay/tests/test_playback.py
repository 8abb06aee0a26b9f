from unittest.mock import MagicMock

import pytest

from lingoplay.client.playback import (
    current_cue, next_cue, previous_cue, jump_to, go_to_next, go_to_previous,
    format_timestamp, split_into_words,
)
from lingoplay.models import Cue

CUES = [
    Cue(1.0, 3.0, 'first'),
    Cue(2.5, 4.0, 'overlap'),
    Cue(5.0, 6.0, 'third'),
]


class TestCurrentCue:

    def test_inside_cue(self):
        assert current_cue(CUES, 1.5).text == 'first'

    def test_bounds_are_inclusive(self):
        assert current_cue(CUES, 1.0).text == 'first'
        assert current_cue(CUES, 6.0).text == 'third'

    def test_first_match_wins_under_overlap(self):
        assert current_cue(CUES, 2.7).text == 'first'

    def test_gap_and_empty(self):
        assert current_cue(CUES, 4.5) is None
        assert current_cue([], 1.0) is None


class TestNavigation:

    def test_next_cue(self):
        assert next_cue(CUES, 1.0).text == 'overlap'
        assert next_cue(CUES, 0.0).text == 'first'
        assert next_cue(CUES, 5.0) is None

    def test_previous_cue(self):
        assert previous_cue(CUES, 5.5).text == 'third'
        assert previous_cue(CUES, 5.0).text == 'overlap'
        assert previous_cue(CUES, 1.0) is None

    def test_jump_seeks_to_start(self):
        player = MagicMock()
        assert jump_to(CUES[2], player) is True
        player.seek_to.assert_called_once_with(5.0)

    def test_jump_without_player_is_noop(self):
        assert jump_to(CUES[0], None) is False

    def test_go_to_next_and_previous(self):
        player = MagicMock()
        assert go_to_next(CUES, 3.0, player).text == 'third'
        assert go_to_previous(CUES, 3.0, player).text == 'overlap'
        assert [c.args for c in player.seek_to.call_args_list] == [(5.0,), (2.5,)]

    def test_go_to_next_past_end(self):
        player = MagicMock()
        assert go_to_next(CUES, 10.0, player) is None
        player.seek_to.assert_not_called()


@pytest.mark.parametrize('seconds,expected', [
    (0, '0:00'),
    (65, '1:05'),
    (599.9, '9:59'),
    (3600, '1:00:00'),
    (3661, '1:01:01'),
])
def test_format_timestamp(seconds, expected):
    assert format_timestamp(seconds) == expected


def test_split_into_words():
    words = split_into_words('Hello, world!')
    assert words == [
        {'word': 'Hello,', 'index': 0, 'clean_word': 'Hello'},
        {'word': 'world!', 'index': 1, 'clean_word': 'world'},
    ]
