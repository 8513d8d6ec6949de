"""Shared pytest fixtures for the engine tests."""

import random

import pytest

from game import GameState, X
from settings import SearchConfig


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fast_config():
    """Iteration-bounded search so results do not depend on machine speed."""
    return SearchConfig(time_limit_ms=None, max_iterations=150)


@pytest.fixture
def build_state():
    """Build a position directly from membership bits.

    ``boards`` maps a sub-board index to ``(x_bits, o_bits)``. ``last_move``
    must already be among those bits; it becomes the history so that the
    forcing board survives ``play``/``unplay`` round trips.
    """
    def _build(boards, turn=X, last_move=None):
        state = GameState()
        for board, (x_bits, o_bits) in boards.items():
            state.boards[board] = [x_bits, o_bits]
        state.turn = turn
        if last_move is not None:
            state.history.append(last_move)
            state.forcing_board = last_move % 9
        return state

    return _build


@pytest.fixture
def winning_state(build_state):
    """X to move in sub-board 8; cell 2 there completes the 0-4-8 meta diagonal.

    O's last move was cell 8 of sub-board 1, which sends X to sub-board 8.
    """
    return build_state(
        {
            0: (0b000000111, 0b000011000),
            4: (0b000000111, 0b011000000),
            8: (0b000000011, 0b000110000),
            1: (0b000000000, 0b100000111),
        },
        turn=X,
        last_move=17,
    )
