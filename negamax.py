import logging
import math
import time

from settings import NegamaxConfig

logger = logging.getLogger(__name__)

WIN_VALUE = 10000
ALPHA = -2
BETA = 2


class OutOfTime(Exception):
    pass


class Negamax:
    """Iterative-deepening fail-hard negamax over a single GameState.

    The narrow [-2, 2] window matches the win/draw/loss outcome of the game;
    the positional heuristic only separates lines inside that window.
    """

    def __init__(self, config=None):
        self.config = config or NegamaxConfig()
        self.state = None
        self.nodes = 0
        self.depth_reached = 0
        self._deadline = None

    def negamax(self, depth, colour, alpha=ALPHA, beta=BETA):
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise OutOfTime
        state = self.state

        if depth < 1:
            self.nodes += 1
            return colour * (state.evaluate() * WIN_VALUE + state.heuristic_value())

        if state.is_game_over():
            self.nodes += 1
            return colour * state.evaluate() * WIN_VALUE * depth

        for move in state.legal_moves():
            state.play(move)
            self.nodes += 1
            try:
                score = -self.negamax(depth - 1, -colour, -beta, -alpha)
            finally:
                state.unplay()

            if score >= beta:
                return beta
            if score > alpha:
                alpha = score

        return alpha

    def _search_depth(self, depth):
        root = self.state
        best_score = -math.inf
        best_move = None
        for move in root.legal_moves():
            root.play(move)
            try:
                score = -self.negamax(depth, root.turn)
            finally:
                root.unplay()
            if score > best_score:
                best_score = score
                best_move = move
        return best_move, best_score

    def search(self, state):
        if state.is_game_over():
            raise ValueError("cannot search a finished game")

        self.state = state.clone()
        self.nodes = 0
        self.depth_reached = 0
        deadline = time.monotonic() + self.config.time_limit_ms / 1000

        best_move, best_score = None, 0
        for depth in range(self.config.start_depth, self.config.max_depth + 1):
            # the first iteration always completes so there is a move to return
            self._deadline = deadline if best_move is not None else None
            try:
                move, score = self._search_depth(depth)
            except OutOfTime:
                break
            best_move, best_score = move, score
            self.depth_reached = depth
            logger.debug("depth: %d best move: %d score: %d", depth, best_move, best_score)
            if time.monotonic() >= deadline:
                break

        self._deadline = None
        prediction = min(100, max(0, int((1 + best_score) * 50)))
        logger.info(
            "%d nodes processed, depth %d, win prediction %d%%",
            self.nodes, self.depth_reached, prediction,
        )
        return best_move

    def engine_move(self, state):
        move = self.search(state)
        next_state = state.clone()
        next_state.play(move)
        return next_state
