"""
Pipeline Configuration

Options recognized by the teammate network pipeline, with validation and the
mapping from command-line arguments.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import argparse

EDGE_WEIGHT_MODES = ("sum", "drop")


def seasons_between(first_year: int, last_year: int) -> List[str]:
    """
    Expand end-year notation into NBA season ids.

    A season is named by the calendar year it ends in, so
    ``seasons_between(2022, 2024)`` gives ``['2021-22', '2022-23', '2023-24']``.
    """
    if last_year < first_year:
        raise ValueError(f"last_year ({last_year}) is before first_year ({first_year})")
    return [f"{year - 1}-{str(year)[-2:]}" for year in range(first_year, last_year + 1)]


@dataclass(frozen=True)
class PipelineConfig:
    """Options for one pipeline run."""
    top_k_vertices: Optional[int] = 100
    min_shared_teams: int = 1
    season_range: Optional[Tuple[str, ...]] = None
    draft_year_filter: Optional[int] = None
    rounding_precision: int = 2
    edge_weight_mode: str = "sum"
    resolution: float = 1.0
    notable_z: float = 1.96

    def __post_init__(self):
        if self.top_k_vertices is not None and self.top_k_vertices < 0:
            raise ValueError(f"top_k_vertices must be non-negative, got {self.top_k_vertices}")
        if self.top_k_vertices == 0:
            # 0 means "no cap"
            object.__setattr__(self, 'top_k_vertices', None)
        if self.min_shared_teams < 1:
            raise ValueError(f"min_shared_teams must be at least 1, got {self.min_shared_teams}")
        if self.rounding_precision < 0:
            raise ValueError(f"rounding_precision must be non-negative, got {self.rounding_precision}")
        if self.edge_weight_mode not in EDGE_WEIGHT_MODES:
            raise ValueError(
                f"edge_weight_mode must be one of {EDGE_WEIGHT_MODES}, got {self.edge_weight_mode!r}"
            )
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        if self.notable_z < 0:
            raise ValueError(f"notable_z must be non-negative, got {self.notable_z}")
        if self.season_range is not None:
            object.__setattr__(self, 'season_range', tuple(str(s) for s in self.season_range))

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "PipelineConfig":
        """Build a config from parsed command-line arguments."""
        season_range = None
        if getattr(args, 'seasons', None):
            first, last = args.seasons
            season_range = tuple(seasons_between(first, last))

        return cls(
            top_k_vertices=args.top_k,
            min_shared_teams=args.min_shared_teams,
            season_range=season_range,
            draft_year_filter=args.draft_year,
            rounding_precision=args.precision,
            edge_weight_mode=args.weight_mode,
        )
