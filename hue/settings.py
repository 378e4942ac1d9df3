import os
from dataclasses import dataclass, replace
from typing import Dict, Optional

from hue.errors import InvalidParameter
from hue.kmeans import DEFAULT_ATTEMPTS, DEFAULT_ITERATIONS, DEFAULT_K
from hue.reporter import WEIGHTINGS
from hue.sampler import DEFAULT_SAMPLE_SIZE

SEED_ENV = "HUEGEN_SEED"
JOBS_ENV = "HUEGEN_JOBS"


@dataclass(frozen=True)
class ClusterSettings:
    num_colors: int = DEFAULT_K
    attempts: int = DEFAULT_ATTEMPTS
    iterations: int = DEFAULT_ITERATIONS
    sample_size: int = DEFAULT_SAMPLE_SIZE
    weighting: str = "equal"
    seed: Optional[int] = None
    tol: Optional[float] = None
    n_jobs: int = 1


# Preset complexity levels; explicitly given options take precedence.
PRESETS: Dict[str, Dict[str, int]] = {
    "quick": {"attempts": 2, "iterations": 20, "sample_size": 32},
    "standard": {"attempts": DEFAULT_ATTEMPTS, "iterations": DEFAULT_ITERATIONS, "sample_size": DEFAULT_SAMPLE_SIZE},
    "thorough": {"attempts": 10, "iterations": 100, "sample_size": 100},
}


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidParameter(f"{name} must be an integer, got {raw!r}") from e


def resolve_settings(preset: Optional[str] = None, **overrides) -> ClusterSettings:
    """
    Build settings from defaults, then a named preset, then the environment
    (HUEGEN_SEED, HUEGEN_JOBS), then explicit overrides. None-valued
    overrides are ignored so unset CLI options fall through.
    """
    settings = ClusterSettings()
    if preset is not None:
        if preset not in PRESETS:
            raise InvalidParameter(f"unknown preset {preset!r}, expected one of {', '.join(PRESETS)}")
        settings = replace(settings, **PRESETS[preset])

    env_seed = _env_int(SEED_ENV)
    if env_seed is not None:
        settings = replace(settings, seed=env_seed)
    env_jobs = _env_int(JOBS_ENV)
    if env_jobs is not None:
        settings = replace(settings, n_jobs=env_jobs)

    given = {key: value for key, value in overrides.items() if value is not None}
    settings = replace(settings, **given)
    if settings.weighting not in WEIGHTINGS:
        raise InvalidParameter(f"unknown weighting {settings.weighting!r}, expected one of {', '.join(WEIGHTINGS)}")
    return settings
