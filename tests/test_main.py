import pytest

import main
from game import O, X, GameState
from mcts import MCTS
from negamax import Negamax
from settings import SearchConfig


def test_cell_at_maps_pixels_to_moves():
    assert main.cell_at((main.LEFT_OFFSET + 1, main.TOP_OFFSET + 1)) == 0
    assert main.cell_at((main.LEFT_OFFSET + 3 * main.CELL_SIZE + 1, main.TOP_OFFSET + 1)) == 9
    last = main.LEFT_OFFSET + main.BOARD_SIZE - 1, main.TOP_OFFSET + main.BOARD_SIZE - 1
    assert main.cell_at(last) == 80


def test_cell_at_ignores_clicks_outside_the_grid():
    assert main.cell_at((0, 0)) is None
    assert main.cell_at((main.LEFT_OFFSET + main.BOARD_SIZE, main.TOP_OFFSET)) is None


def test_make_engine_uses_think_time():
    engine = main.make_engine("mcts")
    assert isinstance(engine, MCTS)
    assert engine.config.time_limit_ms == main.think_time_ms
    assert isinstance(main.make_engine("negamax"), Negamax)


@pytest.fixture
def game(monkeypatch):
    """Point the front end's module state at a fresh game."""
    def _start(mode, human=X, engines=None):
        state = GameState()
        monkeypatch.setattr(main, "game_mode", mode)
        monkeypatch.setattr(main, "human_player", human)
        monkeypatch.setattr(main, "game_state", state)
        monkeypatch.setattr(main, "engines", engines or {})
        monkeypatch.setattr(main, "ai_info", {"thread": None, "job": None})
        return state

    return _start


def test_undo_takes_back_one_ply_between_two_players(game):
    state = game("2p")
    state.play(40)
    state.play(36)

    main.undo_move()
    assert state.history == [40]
    assert state.turn == O
    assert state.forcing_board == 4


def test_undo_against_engine_takes_back_the_reply_too(game, rng):
    engine = MCTS(SearchConfig(time_limit_ms=None, max_iterations=50), rng)
    state = game("mcts", human=X, engines={O: engine})
    state.play(40)
    state.play(engine.search(state))
    assert engine.tree is not None

    main.undo_move()
    assert state == GameState()
    assert state.history == []
    assert engine.tree is None


def test_undo_needs_a_full_move_to_take_back(game):
    state = game("negamax", human=O, engines={X: Negamax()})
    state.play(40)

    main.undo_move()
    assert state.history == [40]


def test_undo_is_unavailable_to_spectators(game):
    state = game("cpu")
    state.play(40)
    state.play(36)

    main.undo_move()
    assert state.history == [40, 36]
