import random

X = 1
O = -1
EMPTY = 0

SYMBOLS = {X: "X", O: "O", EMPTY: "."}

FULL = 0b111111111

WIN_LINES = [
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6)
]
WIN_MASKS = [(1 << a) | (1 << b) | (1 << c) for a, b, c in WIN_LINES]


def line_winner(x_bits, o_bits):
    """Three-in-a-row check over a pair of 9-bit membership sets.

    Used for a single sub-board (cell memberships) and for the meta-board
    (sub-board owners), so both levels share one definition of a win.
    """
    for mask in WIN_MASKS:
        if x_bits & mask == mask:
            return X
        if o_bits & mask == mask:
            return O
    return EMPTY


def move_to_coords(move):
    board, cell = divmod(move, 9)
    row = (board // 3) * 3 + cell // 3
    col = (board % 3) * 3 + cell % 3
    return row, col


def coords_to_move(row, col):
    board = 3 * (row // 3) + (col // 3)
    cell = 3 * (row % 3) + (col % 3)
    return board * 9 + cell


class GameState:
    def __init__(self):
        # boards[b] = [x_bits, o_bits]
        self.boards = [[0, 0] for _ in range(9)]
        self.forcing_board = -1
        self.turn = X
        self.history = []

    def clone(self):
        clone_state = GameState.__new__(GameState)
        clone_state.boards = [list(pair) for pair in self.boards]
        clone_state.forcing_board = self.forcing_board
        clone_state.turn = self.turn
        clone_state.history = list(self.history)
        return clone_state

    def __eq__(self, other):
        if not isinstance(other, GameState):
            return NotImplemented
        return (
            self.boards == other.boards
            and self.turn == other.turn
            and self.forcing_board == other.forcing_board
        )

    __hash__ = None

    def play(self, move):
        board, cell = divmod(move, 9)
        side = 0 if self.turn == X else 1
        self.boards[board][side] |= 1 << cell
        self.history.append(move)
        self.turn = -self.turn
        self.forcing_board = cell

    def unplay(self):
        if not self.history:
            raise IndexError("unplay() called with an empty move history")
        board, cell = divmod(self.history.pop(), 9)
        self.turn = -self.turn
        side = 0 if self.turn == X else 1
        self.boards[board][side] &= ~(1 << cell)
        self.forcing_board = self.history[-1] % 9 if self.history else -1

    def cell(self, board, cell):
        x_bits, o_bits = self.boards[board]
        if x_bits >> cell & 1:
            return X
        if o_bits >> cell & 1:
            return O
        return EMPTY

    def board_result(self, board):
        return line_winner(*self.boards[board])

    def board_full(self, board):
        x_bits, o_bits = self.boards[board]
        return x_bits | o_bits == FULL

    def board_decided(self, board):
        return self.board_result(board) != EMPTY or self.board_full(board)

    def meta_bits(self):
        x_bits = o_bits = 0
        for board in range(9):
            result = self.board_result(board)
            if result == X:
                x_bits |= 1 << board
            elif result == O:
                o_bits |= 1 << board
        return x_bits, o_bits

    def evaluate(self):
        return line_winner(*self.meta_bits())

    def all_decided(self):
        return all(self.board_decided(b) for b in range(9))

    def legal_moves(self):
        if self.evaluate() != EMPTY:
            return []
        if self.forcing_board != -1 and not self.board_decided(self.forcing_board):
            boards_to_consider = [self.forcing_board]
        else:
            boards_to_consider = [b for b in range(9) if not self.board_decided(b)]

        moves = []
        for b in boards_to_consider:
            occupied = self.boards[b][0] | self.boards[b][1]
            for c in range(9):
                if not occupied >> c & 1:
                    moves.append(b * 9 + c)
        return moves

    def is_game_over(self):
        return self.evaluate() != EMPTY or self.all_decided() or not self.legal_moves()

    def random_play(self, rng=random):
        self.play(rng.choice(self.legal_moves()))

    def heuristic_value(self):
        """Sub-boards owned by X minus those owned by O, centre counting double."""
        score = 0
        for board in range(9):
            weight = 2 if board == 4 else 1
            score += weight * self.board_result(board)
        return score

    def __str__(self):
        lines = []
        separator = " |-------+-------+-------|"
        for row in range(9):
            if row % 3 == 0:
                lines.append(separator)
            line = " |"
            for col in range(9):
                board, cell = divmod(coords_to_move(row, col), 9)
                line += " " + SYMBOLS[self.cell(board, cell)]
                if col % 3 == 2:
                    line += " |"
            lines.append(line)
        lines.append(separator)
        return "\n".join(lines)
