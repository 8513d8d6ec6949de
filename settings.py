"""Search configuration for the MCTS and negamax engines."""

import os
from dataclasses import dataclass, fields
from typing import Optional

ENV_PREFIX = "UTTT_"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _parse_bool(value):
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(value)


def _parse_optional_int(value):
    if value.strip().lower() in ("", "none"):
        return None
    return int(value)


@dataclass(frozen=True)
class SearchConfig:
    """Configuration for the MCTS engine.

    Attributes:
        time_limit_ms: Wall-clock budget per move. ``None`` leaves only the
            iteration cap.
        exploration: Base UCT exploration constant.
        exploration_factor: Game-specific scale applied to ``exploration``;
            playouts are rewarded ``win_score`` points so the exploration term
            is scaled to match.
        win_score: Reward added to every node credited with the playout winner.
        retain_tree: Reuse the subtree matching the next position across moves.
        max_iterations: Optional cap on select/expand/simulate/backpropagate
            iterations per search.
    """

    time_limit_ms: Optional[int] = 1000
    exploration: float = 1.41
    exploration_factor: float = 10.0
    win_score: int = 10
    retain_tree: bool = True
    max_iterations: Optional[int] = None

    def __post_init__(self):
        if self.time_limit_ms is None and self.max_iterations is None:
            raise ValueError("either time_limit_ms or max_iterations must be set")
        if self.time_limit_ms is not None and self.time_limit_ms < 0:
            raise ValueError(f"time_limit_ms must be >= 0, got {self.time_limit_ms}")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.exploration < 0 or self.exploration_factor < 0:
            raise ValueError("exploration constants must be non-negative")
        if self.win_score <= 0:
            raise ValueError(f"win_score must be positive, got {self.win_score}")

    @property
    def exploration_constant(self):
        return self.exploration * self.exploration_factor

    @classmethod
    def from_env(cls, environ=None, **overrides):
        """Build a config from ``UTTT_*`` environment variables.

        Keyword overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        parsers = {
            "time_limit_ms": _parse_optional_int,
            "exploration": float,
            "exploration_factor": float,
            "win_score": int,
            "retain_tree": _parse_bool,
            "max_iterations": _parse_optional_int,
        }
        values = {}
        for field in fields(cls):
            name = ENV_PREFIX + field.name.upper()
            if name not in environ:
                continue
            try:
                values[field.name] = parsers[field.name](environ[name])
            except ValueError:
                raise ValueError(f"invalid value for {name}: {environ[name]!r}") from None
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class NegamaxConfig:
    time_limit_ms: int = 1000
    start_depth: int = 1
    max_depth: int = 22

    def __post_init__(self):
        if self.time_limit_ms < 0:
            raise ValueError(f"time_limit_ms must be >= 0, got {self.time_limit_ms}")
        if not 1 <= self.start_depth <= self.max_depth:
            raise ValueError("depths must satisfy 1 <= start_depth <= max_depth")
