#########################################################################################
##
##                                 PARAMETER CODEC
##                                   (codec.py)
##
##      Maps the optimizer's flat parameter vector to named biological parameter
##      blocks and back. The block order below is fixed; bounds, decoding and
##      encoding all walk it the same way.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Sequence

import numpy as np

from ..errors import ConfigurationError
from ..forms import make_forms


__all__ = [
    "BLOCK_ORDER",
    "ParameterBlock",
    "DecodedParameters",
    "ParameterLayout",
    "ParameterBounds",
    "block_shape",
    "decode",
    "encode",
]


BLOCK_ORDER = (
    "growth_rate",
    "carrying_capacity",
    "catchability",
    "competition_alpha",
    "competition_beta_species",
    "competition_beta_guilds",
    "predation",
    "handling",
    "exponent",
)

_VECTOR_BLOCKS = frozenset({"growth_rate", "carrying_capacity", "catchability", "exponent"})


def block_shape(name: str, config) -> tuple[int, ...]:
    """Shape of parameter block *name* for the unit and guild counts of *config*."""
    n = config.num_units
    if name in _VECTOR_BLOCKS:
        return (n,)
    if name == "competition_beta_guilds":
        return (n, config.num_guilds)
    if name in BLOCK_ORDER:
        return (n, n)
    raise ConfigurationError(f"Unknown parameter block '{name}'")


# DECODED PARAMETERS ====================================================================

@dataclass
class DecodedParameters:
    """Structured biological parameters; blocks of inactive forms are ``None``."""

    growth_rate: np.ndarray | None = None
    carrying_capacity: np.ndarray | None = None
    catchability: np.ndarray | None = None
    competition_alpha: np.ndarray | None = None
    competition_beta_species: np.ndarray | None = None
    competition_beta_guilds: np.ndarray | None = None
    predation: np.ndarray | None = None
    handling: np.ndarray | None = None
    exponent: np.ndarray | None = None


    def present(self) -> dict[str, np.ndarray]:
        """Present blocks keyed by name, in layout order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


# LAYOUT ================================================================================

@dataclass(frozen=True)
class ParameterBlock:
    name: str
    shape: tuple[int, ...]

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))


class ParameterLayout:
    """Ordered sequence of present parameter blocks.

    Parameters
    ----------
    blocks : sequence of ParameterBlock
        Present blocks. They are sorted into :data:`BLOCK_ORDER`.

    Example
    -------
    .. code-block:: python

        layout = ParameterLayout.from_config(config)
        params = layout.decode(x)
        assert np.array_equal(layout.encode(params), x)
    """

    def __init__(self, blocks: Sequence[ParameterBlock]):
        names = [b.name for b in blocks]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate parameter blocks in {names}")
        unknown = [n for n in names if n not in BLOCK_ORDER]
        if unknown:
            raise ConfigurationError(f"Unknown parameter blocks {unknown}")

        self.blocks = tuple(sorted(blocks, key=lambda b: BLOCK_ORDER.index(b.name)))


    @classmethod
    def from_config(cls, config, forms=None) -> "ParameterLayout":
        """Layout implied by the active functional forms of *config*."""
        forms = forms if forms is not None else make_forms(config)
        return cls([ParameterBlock(name, block_shape(name, config)) for name in forms.blocks])


    @property
    def size(self) -> int:
        """Total number of scalar parameters."""
        return sum(b.size for b in self.blocks)


    @property
    def names(self) -> tuple[str, ...]:
        return tuple(b.name for b in self.blocks)


    def __iter__(self):
        return iter(self.blocks)


    def __len__(self) -> int:
        return len(self.blocks)


    def __repr__(self) -> str:
        inner = ", ".join(f"{b.name}{list(b.shape)}" for b in self.blocks)
        return f"ParameterLayout({inner}; size={self.size})"


    def decode(self, x) -> DecodedParameters:
        """Split flat vector *x* into blocks, strictly left to right.

        Values are passed through unchanged; bound membership is the
        optimizer's concern.

        Raises
        ------
        ConfigurationError
            If ``len(x)`` differs from :attr:`size`.
        """
        x_arr = np.asarray(x, dtype=float).reshape(-1)
        if x_arr.size != self.size:
            raise ConfigurationError(
                f"Parameter vector has {x_arr.size} values, layout expects {self.size}"
            )

        out = DecodedParameters()
        offset = 0
        for block in self.blocks:
            chunk = x_arr[offset:offset + block.size]
            setattr(out, block.name, chunk.reshape(block.shape).copy())
            offset += block.size
        return out


    def encode(self, params: DecodedParameters) -> np.ndarray:
        """Flatten *params* back into a vector in layout order."""
        parts = []
        for block in self.blocks:
            value = getattr(params, block.name)
            if value is None:
                raise ConfigurationError(f"Missing parameter block '{block.name}'")
            value = np.asarray(value, dtype=float)
            if value.shape != block.shape:
                raise ConfigurationError(
                    f"Block '{block.name}' has shape {value.shape}, expected {block.shape}"
                )
            parts.append(value.reshape(-1))
        return np.concatenate(parts) if parts else np.array([], dtype=float)


def decode(x, config) -> DecodedParameters:
    """Decode *x* with the layout implied by *config*."""
    return ParameterLayout.from_config(config).decode(x)


def encode(params: DecodedParameters, config) -> np.ndarray:
    """Encode *params* with the layout implied by *config*."""
    return ParameterLayout.from_config(config).encode(params)


# BOUNDS ================================================================================

class ParameterBounds:
    """Lower / upper pair per scalar parameter, in layout order.

    Forms append their blocks through :meth:`add_block`. A pair with
    ``lower == upper`` fixes the parameter at that value.
    """

    def __init__(self, lower: Sequence[float] = (), upper: Sequence[float] = ()):
        self._lower: list[float] = [float(v) for v in lower]
        self._upper: list[float] = [float(v) for v in upper]
        if len(self._lower) != len(self._upper):
            raise ConfigurationError("lower and upper bounds differ in length")
        self._names: list[str] = [""] * len(self._lower)
        self._check(0)


    @classmethod
    def from_config(cls, config, forms=None) -> "ParameterBounds":
        """Collect bounds from every active form of *config*."""
        forms = forms if forms is not None else make_forms(config)
        bounds = cls()
        forms.load_parameter_ranges(bounds, config)
        return bounds


    def append(self, lower: float, upper: float, name: str = "") -> None:
        self._lower.append(float(lower))
        self._upper.append(float(upper))
        self._names.append(name)
        self._check(len(self._lower) - 1)


    def add_block(self, name: str, config) -> None:
        """Append the ranges of block *name*, flattened row-major."""
        shape = block_shape(name, config)
        lower, upper = config.range_for(name, shape)
        for idx, (lo, hi) in enumerate(zip(lower.reshape(-1), upper.reshape(-1))):
            self.append(lo, hi, name=f"{name}[{idx}]")


    def _check(self, start: int) -> None:
        for i in range(start, len(self._lower)):
            lo, hi = self._lower[i], self._upper[i]
            if np.isnan(lo) or np.isnan(hi) or lo > hi:
                label = self._names[i] or str(i)
                raise ConfigurationError(
                    f"Parameter {label}: lower bound {lo} > upper bound {hi}"
                )


    @property
    def lower(self) -> np.ndarray:
        return np.array(self._lower, dtype=float)


    @property
    def upper(self) -> np.ndarray:
        return np.array(self._upper, dtype=float)


    @property
    def names(self) -> list[str]:
        return list(self._names)


    @property
    def fixed(self) -> np.ndarray:
        """Boolean mask of parameters pinned by equal bounds."""
        return self.lower == self.upper


    def __len__(self) -> int:
        return len(self._lower)


    def starting_point(self) -> np.ndarray:
        """Midpoint of each pair, or the shared bound exactly when fixed."""
        lower, upper = self.lower, self.upper
        return np.where(lower == upper, lower, lower + (upper - lower) / 2.0)
