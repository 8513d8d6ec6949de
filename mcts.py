import logging
import math
import random
import time

from game import EMPTY, move_to_coords
from settings import SearchConfig

logger = logging.getLogger(__name__)


def uct_value(total_visits, win_score, visits, exploration):
    """UCT priority of a child; unvisited children always come first."""
    if visits == 0:
        return math.inf
    return win_score / visits + exploration * math.sqrt(math.log(total_visits) / visits)


class TreeNode:
    __slots__ = ("state", "player", "move", "parent", "children", "visits", "win_score", "forced_loss")

    def __init__(self, state, player, parent=None, move=None):
        self.state = state
        # the player whose move produced this position
        self.player = player
        self.move = move
        self.parent = parent
        self.children = []
        self.visits = 0
        self.win_score = 0
        # set when the opponent can win immediately from this position
        self.forced_loss = False

    def expand(self):
        """Create one child per legal move, in legal-move order."""
        if self.children:
            raise RuntimeError("node is already expanded")
        for move in self.state.legal_moves():
            child_state = self.state.clone()
            child_state.play(move)
            self.children.append(TreeNode(child_state, -self.player, parent=self, move=move))

    def uct(self, exploration):
        if self.forced_loss and self.visits:
            return -math.inf
        return uct_value(self.parent.visits, self.win_score, self.visits, exploration)

    def uct_select_child(self, exploration):
        return max(self.children, key=lambda c: c.uct(exploration))

    def best_child(self):
        return max(self.children, key=lambda c: c.visits)

    def update(self, winner, reward):
        self.visits += 1
        if winner == self.player:
            self.win_score += reward

    def detach(self):
        self.parent = None

    def release(self):
        """Tear down this node and its whole subtree, children first."""
        order = []
        stack = [self]
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(node.children)
        for node in reversed(order):
            node.children = []
            node.parent = None

    def subtree_size(self):
        count = 0
        stack = [self]
        while stack:
            node = stack.pop()
            count += 1
            stack.extend(node.children)
        return count

    def __repr__(self):
        return f"TreeNode(move={self.move}, player={self.player}, visits={self.visits}, win_score={self.win_score})"


def prune(parent, keep):
    """Promote ``keep`` (a child of ``parent``) to a root and free its siblings."""
    for child in parent.children:
        if child is not keep:
            child.release()
    parent.children = []
    parent.parent = None
    keep.detach()
    return keep


class MCTS:
    def __init__(self, config=None, rng=None):
        self.config = config or SearchConfig()
        self.rng = rng or random.Random()
        # root retained from the previous search, mirrors the committed position
        self.tree = None
        self.iterations = 0
        self.playouts = 0
        self.reused_visits = 0
        self.root_visits = 0
        self.last_stats = []

    def reset(self):
        if self.tree is not None:
            self.tree.release()
        self.tree = None

    def _root_for(self, state):
        retained, self.tree = self.tree, None
        root = None
        if retained is not None:
            if retained.state == state:
                root = retained
            else:
                match = next((c for c in retained.children if c.state == state), None)
                if match is not None:
                    root = prune(retained, match)
                else:
                    retained.release()

        if root is None:
            logger.debug("starting a fresh tree")
            root = TreeNode(state.clone(), -state.turn)
        else:
            logger.debug("reusing retained subtree: %d nodes, %d visits", root.subtree_size(), root.visits)
        return root

    def select(self, root):
        node = root
        exploration = self.config.exploration_constant
        while node.children:
            node = node.uct_select_child(exploration)
        return node

    def simulate(self, node):
        self.playouts += 1
        result = node.state.evaluate()
        if result != EMPTY:
            # the mover already won: whoever let them in is in a lost line
            if node.parent is not None and result == node.player:
                node.parent.forced_loss = True
            return result

        state = node.state.clone()
        while not state.is_game_over():
            state.random_play(self.rng)
        return state.evaluate()

    def backpropagate(self, node, winner):
        reward = self.config.win_score
        while node is not None:
            node.update(winner, reward)
            node = node.parent

    def run_iteration(self, root):
        promising_node = self.select(root)
        if not promising_node.state.is_game_over():
            promising_node.expand()

        node_to_explore = promising_node
        if promising_node.children:
            node_to_explore = self.rng.choice(promising_node.children)

        winner = self.simulate(node_to_explore)
        self.backpropagate(node_to_explore, winner)

    def search(self, state):
        """Grow the tree from ``state`` until the budget runs out and commit a move."""
        if state.is_game_over():
            raise ValueError("cannot search a finished game")

        root = self._root_for(state)
        self.reused_visits = root.visits
        self.iterations = 0
        self.playouts = 0

        deadline = None
        if self.config.time_limit_ms is not None:
            deadline = time.monotonic() + self.config.time_limit_ms / 1000
        max_iterations = self.config.max_iterations

        while True:
            self.run_iteration(root)
            self.iterations += 1
            if max_iterations is not None and self.iterations >= max_iterations:
                break
            if deadline is not None and time.monotonic() >= deadline:
                break

        best = root.best_child()
        self.root_visits = root.visits
        self.last_stats = [(c.move, c.visits, c.win_score) for c in root.children]
        row, col = move_to_coords(best.move)
        logger.info(
            "%d iterations, %d playouts, move %d (row %d, col %d), win prediction %d%%",
            self.iterations, self.playouts, best.move, row, col,
            int(best.win_score / best.visits * 100 / self.config.win_score),
        )

        if self.config.retain_tree:
            self.tree = prune(root, best)
        else:
            root.release()
        return best.move

    def engine_move(self, state):
        """Search ``state`` and return the position after the committed move."""
        move = self.search(state)
        next_state = state.clone()
        next_state.play(move)
        return next_state

    def child_stats(self):
        """(move, visits, win_score) for each root child of the last search."""
        return list(self.last_stats)
