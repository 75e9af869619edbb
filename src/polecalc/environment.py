"""Shared parameter state for the self-consistent calculation.

The :class:`Environment` holds program parameters, fixed physical constants,
the self-consistently determined scalars (``d1``, ``mu``, ``f0``) and one
cached derived quantity, ``epsilon_min``, the minimum of the holon
dispersion over the Brillouin zone. Every assignment to a field it depends on
(``d1``, ``t0``, ``x`` or ``grid_length``) marks the cache dirty and the next
read recomputes it. Read ``epsilon_min`` from the solver thread before starting a
reduction pass; evaluators running on worker threads must only read values
captured beforehand.

Persistence is a flat JSON record. Decoding is explicit per field, coercing
JSON numbers by each field's declared width and signedness. Unknown keys are
rejected; missing keys fall back to the dataclass defaults (with a warning).
"""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from . import physics, zerotemp
from .errors import ConfigurationError
from .numerics import convergence_tolerance

logger = logging.getLogger(__name__)

# fields read by physics.epsilon_min
_EPSILON_MIN_DEPS = frozenset({"d1", "t0", "x", "grid_length"})


@dataclass
class Environment:
    """All the data needed to evaluate functions in the cuprate system."""
    # Program parameters
    grid_length: int = 64  # points per side in the Brillouin zone
    im_gc0_bins: int = 1024  # bins for the imaginary part of the electron Green's function
    re_gc0_points: int = 1024  # points on each side of the 1/x singularity in ReGc0
    re_gc0_dw: float = 1e-4  # distance from the singularity when calculating ReGc0
    num_procs: int = 1  # worker threads for grid reductions
    use_numba: bool = False
    tolerance_scale: float = 2.0**20  # residual tolerance in units of machine epsilon
    max_cycles: int = 200  # cascade passes per frontier before giving up

    # Initial values of the self-consistent parameters
    init_d1: float = 0.1
    init_mu: float = 0.1
    init_f0: float = 0.1

    # Constant physical parameters
    alpha: int = -1  # -1 (d-wave) or +1 (s-wave)
    t: float = 1.0  # hopping energy of the physical electron
    t0: float = 1.0  # overall energy scale
    tz: float = 0.1  # z-direction hopping energy
    thp: float = 0.1  # diagonal (next-nearest-neighbor) hopping energy
    x: float = 0.1  # doping
    delta_s: float = 0.1  # spin gap
    cs: float = 1.0  # coefficient for k deviation in omega_q

    # Self-consistently determined parameters
    d1: float = 0.0  # diagonal hopping generated by the two-hole process
    mu: float = 0.0  # holon chemical potential
    f0: float = 0.0  # superconducting order parameter

    # Cache for epsilon_min; dirty whenever one of _EPSILON_MIN_DEPS changes
    _epsilon_min: float = field(default=math.nan, init=False, repr=False, compare=False)
    _epsilon_min_dirty: bool = field(default=True, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)
        if name in _EPSILON_MIN_DEPS:
            object.__setattr__(self, "_epsilon_min_dirty", True)

    @property
    def th(self) -> float:
        """One-holon hopping energy."""
        return self.t0 * (1 - self.x)

    @property
    def lambda_(self) -> float:
        """Spinon chemical potential."""
        return math.sqrt(self.delta_s**2 + self.cs**2)

    @property
    def tolerance(self) -> float:
        return convergence_tolerance(self.tolerance_scale)

    @property
    def epsilon_min(self) -> float:
        """Minimum of the holon dispersion; recomputed if a dependency changed since the last read."""
        if self._epsilon_min_dirty:
            object.__setattr__(self, "_epsilon_min", physics.epsilon_min(self))
            object.__setattr__(self, "_epsilon_min_dirty", False)
        return self._epsilon_min

    def validate(self) -> None:
        """Check the program parameters that the grid engine depends on."""
        if self.grid_length < 2:
            raise ConfigurationError(f"grid_length must be at least 2, got {self.grid_length}")
        if self.num_procs < 1:
            raise ConfigurationError(f"num_procs must be at least 1, got {self.num_procs}")
        if self.alpha not in (-1, 1):
            raise ConfigurationError(f"alpha must be -1 or +1, got {self.alpha}")

    def initialize(self) -> None:
        """Set self-consistent parameters to their initial values."""
        # hard-coded defaults
        if self.num_procs <= 0:
            self.num_procs = 1
        self.validate()
        self.d1 = self.init_d1
        self.mu = self.init_mu
        self.f0 = self.init_f0

    def zero_temp_errors(self) -> str:
        return (
            f"errors - d1: {zerotemp.d1_abs_error(self):f}; "
            f"mu: {zerotemp.mu_abs_error(self):f}; "
            f"f0: {zerotemp.f0_abs_error(self):f}"
        )

    # -- persistence --

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in _FIELD_DECODERS}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def __str__(self) -> str:
        return self.to_json()

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> Environment:
        """Build an Environment from a decoded JSON object.

        Self-consistent parameters are taken from the record as-is, not from
        the ``init_*`` fields.
        """
        if not isinstance(record, dict):
            raise ConfigurationError(f"Environment record must be an object, got {type(record).__name__}")
        unknown = sorted(set(record) - set(_FIELD_DECODERS))
        if unknown:
            raise ConfigurationError(f"Unknown Environment fields: {unknown}")
        missing = [name for name in _FIELD_DECODERS if name not in record]
        if missing:
            logger.warning("Environment record missing %s; using defaults", missing)

        kwargs = {name: decode(name, record[name]) for name, decode in _FIELD_DECODERS.items() if name in record}
        return cls(**kwargs)

    @classmethod
    def from_json(cls, json_data: str | bytes) -> Environment:
        try:
            record = json.loads(json_data)
        except json.JSONDecodeError as err:
            raise ConfigurationError(f"Malformed Environment JSON: {err}") from err
        return cls.from_dict(record)

    from_string = from_json

    @classmethod
    def from_file(cls, file_path: Path | str) -> Environment:
        return cls.from_json(Path(file_path).read_text())

    def write_to_file(self, file_path: Path | str) -> Path:
        """Write the Environment as JSON, replacing ``file_path`` atomically."""
        file_path = Path(file_path)
        fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write(self.to_json())
            os.chmod(tmp_name, 0o666 & ~_current_umask())
            os.replace(tmp_name, file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return file_path


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# -- field decoders --

def _number(name: str, value: Any) -> float | int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"Field '{name}' must be a number, got {value!r}")
    return value


def _integer(bits: int, signed: bool) -> Callable[[str, Any], int]:
    low, high = (-(2 ** (bits - 1)), 2 ** (bits - 1) - 1) if signed else (0, 2**bits - 1)

    def decode(name: str, value: Any) -> int:
        value = _number(name, value)
        if isinstance(value, float) and not value.is_integer():
            raise ConfigurationError(f"Field '{name}' must be an integer, got {value!r}")
        value = int(value)
        if not low <= value <= high:
            raise ConfigurationError(f"Field '{name}' = {value} out of range [{low}, {high}]")
        return value

    return decode


def _float64(name: str, value: Any) -> float:
    return float(_number(name, value))


def _boolean(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"Field '{name}' must be true or false, got {value!r}")
    return value


_uint = _integer(64, signed=False)
_uint16 = _integer(16, signed=False)
_uint32 = _integer(32, signed=False)
_int8 = _integer(8, signed=True)

_FIELD_DECODERS: dict[str, Callable[[str, Any], Any]] = {
    "grid_length": _uint32,
    "im_gc0_bins": _uint,
    "re_gc0_points": _uint,
    "re_gc0_dw": _float64,
    "num_procs": _uint16,
    "use_numba": _boolean,
    "tolerance_scale": _float64,
    "max_cycles": _uint,
    "init_d1": _float64,
    "init_mu": _float64,
    "init_f0": _float64,
    "alpha": _int8,
    "t": _float64,
    "t0": _float64,
    "tz": _float64,
    "thp": _float64,
    "x": _float64,
    "delta_s": _float64,
    "cs": _float64,
    "d1": _float64,
    "mu": _float64,
    "f0": _float64,
}
