"""
Run Configuration
=================

Describes one optimization run: which assets, how returns are computed,
which constraints apply, and how the search is run. Configurations are
usually read from a YAML file:

    assets: [AAPL, MSFT, JNJ, XOM, KO]
    periodicity: monthly
    return_type: log
    constraints:
      weight_sum: [0.99, 1.01]
      long_only: true
      box: [0.1, 0.3]
      asset_bounds:
        AAPL: [0.0, 0.25]
    objective: stddev
    trials: 1000
    seed: 42
    workers: 1
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from portfolio_search.core.constraints import ConstraintSet, ConstraintSetBuilder
from portfolio_search.core.errors import InvalidArgumentError
from portfolio_search.core.loader import PERIODS_PER_YEAR
from portfolio_search.core.objective import ObjectiveSpec, get_objective
from portfolio_search.core.optimizer import DEFAULT_MAX_ATTEMPTS
from portfolio_search.core.returns import RETURN_METHODS

Bounds = Tuple[float, float]


@dataclass
class RunConfig:
    """Settings for one optimization run."""

    assets: List[str] = field(default_factory=list)
    periodicity: str = 'daily'
    return_type: str = 'log'
    weight_sum: Optional[Bounds] = (1.0, 1.0)
    long_only: bool = True
    box: Optional[Bounds] = None
    asset_bounds: Dict[str, Bounds] = field(default_factory=dict)
    objective: str = 'stddev'
    trials: int = 1000
    seed: int = 0
    workers: int = 1
    max_seconds: Optional[float] = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self):
        self.assets = [str(a) for a in self.assets]
        self.periodicity = str(self.periodicity).lower()
        self.return_type = str(self.return_type).lower()
        self.weight_sum = _as_bounds('weight_sum', self.weight_sum)
        self.box = _as_bounds('box', self.box)
        self.asset_bounds = {
            str(a): _as_bounds(f'asset_bounds.{a}', b) for a, b in (self.asset_bounds or {}).items()
        }
        self.validate()

    def validate(self):
        """
        Check every setting is in its allowed domain.

        Raises:
            InvalidArgumentError: On the first invalid setting
        """
        if len(set(self.assets)) != len(self.assets):
            raise InvalidArgumentError(f"Duplicate assets in config: {self.assets}")
        if self.periodicity not in PERIODS_PER_YEAR:
            raise InvalidArgumentError(
                f"Unknown periodicity '{self.periodicity}'. Use one of {list(PERIODS_PER_YEAR)}"
            )
        if self.return_type not in RETURN_METHODS:
            raise InvalidArgumentError(
                f"Unknown return_type '{self.return_type}'. Use one of {list(RETURN_METHODS)}"
            )
        get_objective(ObjectiveSpec(self.objective))
        for name in ('trials', 'workers', 'max_attempts'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidArgumentError(f"{name} must be a positive integer, got {value!r}")
        if isinstance(self.seed, bool) or not isinstance(self.seed, int) or self.seed < 0:
            raise InvalidArgumentError(f"seed must be a non-negative integer, got {self.seed!r}")
        if self.max_seconds is not None and not self.max_seconds > 0:
            raise InvalidArgumentError(f"max_seconds must be positive, got {self.max_seconds!r}")
        if self.assets:
            unknown = [a for a in self.asset_bounds if a not in self.assets]
            if unknown:
                raise InvalidArgumentError(f"asset_bounds name unknown assets: {unknown}")

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self.periodicity]

    def build_constraints(self, assets: Optional[List[str]] = None) -> ConstraintSet:
        """
        Build the validated ConstraintSet described by this configuration.

        Args:
            assets: Asset list to use (default: ``self.assets``)

        Returns:
            ConstraintSet

        Raises:
            InvalidArgumentError: If no assets are known
            InfeasibleConstraintSetError: If the constraints contradict each other
        """
        assets = list(assets) if assets is not None else self.assets
        if not assets:
            raise InvalidArgumentError("No assets configured")

        builder = ConstraintSetBuilder(assets)
        if self.weight_sum is not None:
            builder.weight_sum(*self.weight_sum)
        if self.long_only:
            builder.long_only()
        if self.box is not None:
            builder.box(*self.box)
        if self.asset_bounds:
            builder.box_bounds(self.asset_bounds)
        return builder.build()

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RunConfig':
        """
        Build a RunConfig from a plain mapping (e.g. parsed YAML).

        Constraint settings may sit at the top level or under a
        ``constraints`` key.

        Raises:
            InvalidArgumentError: On unknown keys or invalid values
        """
        data = dict(data or {})
        constraints = data.pop('constraints', None) or {}
        if not isinstance(constraints, Mapping):
            raise InvalidArgumentError("'constraints' must be a mapping")
        data.update(constraints)

        if 'bounds' in data:
            data['asset_bounds'] = data.pop('bounds')

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidArgumentError(f"Unknown configuration key(s): {unknown}")
        return cls(**data)


def load_config(path: Union[str, Path]) -> RunConfig:
    """
    Load a RunConfig from a YAML file.

    Raises:
        InvalidArgumentError: If the file is missing, not valid YAML, or holds
            invalid settings
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise InvalidArgumentError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise InvalidArgumentError(f"Config file {path} must hold a mapping")
    return RunConfig.from_dict(data)


def _as_bounds(name: str, value) -> Optional[Bounds]:
    if value is None:
        return None
    try:
        lo, hi = value
        return float(lo), float(hi)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{name} must be a [min, max] pair, got {value!r}") from e
