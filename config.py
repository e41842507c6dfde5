from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import (
    Any,
    List,
    Optional,
    Sequence,
    Set,
    Union,
)

"""
 * Parameters for the pool network.
 *
 * Every member is optional. Members left as None are derived from the total
 * number of nodes in the network when the parameters are resolved.
"""


class ConfigurationError(ValueError):
    """Raised when regions, layers or network parameters are malformed."""


@dataclass
class LayerConfig:

    id: str
    """
    * Member "id" must be unique among all layers of the network.
    """
    row: int
    """
    * Member "row" is the number of nodes in each row of the layer.
    """
    square: int
    """
    * Member "square" is the number of nodes in one side of an inhibition area.
    """
    layers: List['LayerConfig'] = field(default_factory=list)
    """
    * Member "layers" are nested layers. They receive the temporally averaged
    * output of this layer as their input.
    """


@dataclass
class RegionConfig:

    size: int
    """
    * Member "size" is the number of nodes created for every layer in the region.
    """
    layers: List[LayerConfig] = field(default_factory=list)
    """
    * Member "layers" are the top layers of the region. They share the
    * temporally averaged region input.
    """


@dataclass
class NetworkParameters:

    temporal_length: Optional[int] = None
    """
    * Member "temporal_length" is how many timesteps of input are averaged.
    """
    initial_link_permanence: Optional[int] = None
    """
    * Member "initial_link_permanence" is the permanence of a newly created link.
    """
    maximum_link_permanence: Optional[int] = None
    """
    * Member "maximum_link_permanence" is the permanence above which a link
    * can no longer decay.
    """
    minimum_links_in_pool: Optional[int] = None
    """
    * Member "minimum_links_in_pool" is how many predicting links activate a
    * pool. Should be as low as possible while maintaining pool uniqueness.
    """
    maximum_links_in_pool: Optional[int] = None
    """
    * Member "maximum_links_in_pool" is how many source nodes are sampled when a
    * new pool is created.
    """
    pool_weight_change_rate: Optional[int] = None
    initial_pool_weight: Optional[int] = None
    minimum_pool_weight: Optional[int] = None
    maximum_pool_weight: Optional[int] = None
    exponential_growth: Optional[float] = None
    """
    * Member "exponential_growth" multiplies link permanence on every reward.
    """
    input_multiplier: Optional[int] = None
    """
    * Member "input_multiplier" is how many times the driver input is stronger
    * than pool input.
    """

    def resolve(self, size: int) -> 'NetworkParameters':
        """Return a copy with every missing member derived from ``size``."""
        args = copy.deepcopy(self)

        if args.temporal_length is None:
            args.temporal_length = 10
        if args.initial_link_permanence is None:
            args.initial_link_permanence = int(size ** (1 / 4))
        if args.maximum_link_permanence is None:
            args.maximum_link_permanence = int(size * size)
        if args.minimum_links_in_pool is None:
            args.minimum_links_in_pool = int(size ** (1 / 8))
        if args.maximum_links_in_pool is None:
            args.maximum_links_in_pool = args.minimum_links_in_pool * 5
        if args.pool_weight_change_rate is None:
            args.pool_weight_change_rate = 1
        if args.minimum_pool_weight is None:
            args.minimum_pool_weight = -1
        if args.maximum_pool_weight is None:
            args.maximum_pool_weight = 20
        if args.initial_pool_weight is None:
            args.initial_pool_weight = args.maximum_pool_weight
        if args.exponential_growth is None:
            args.exponential_growth = 2.0
        if args.input_multiplier is None:
            args.input_multiplier = 1000
        args.input_multiplier = abs(args.input_multiplier)

        args.check()
        return args

    def check(self) -> None:
        """Validate resolved parameters."""
        for name in (
            "temporal_length",
            "initial_link_permanence",
            "maximum_link_permanence",
            "minimum_links_in_pool",
            "maximum_links_in_pool",
            "pool_weight_change_rate",
        ):
            value = getattr(self, name)
            if not _is_int(value) or value <= 0:
                raise ConfigurationError(f'"{name}" must be a positive integer, got {value!r}.')

        for name in ("initial_pool_weight", "minimum_pool_weight", "maximum_pool_weight"):
            if not _is_int(getattr(self, name)):
                raise ConfigurationError(f'"{name}" must be an integer.')

        if self.minimum_links_in_pool > self.maximum_links_in_pool:
            raise ConfigurationError(
                '"minimum_links_in_pool" cannot be larger than "maximum_links_in_pool".'
            )
        if self.initial_link_permanence > self.maximum_link_permanence:
            raise ConfigurationError(
                '"initial_link_permanence" cannot be larger than "maximum_link_permanence".'
            )
        if not self.minimum_pool_weight <= self.initial_pool_weight <= self.maximum_pool_weight:
            raise ConfigurationError(
                "Pool weights must satisfy minimum <= initial <= maximum, got "
                f"{self.minimum_pool_weight} <= {self.initial_pool_weight} <= {self.maximum_pool_weight}."
            )
        if not isinstance(self.exponential_growth, (int, float)) or self.exponential_growth <= 1:
            raise ConfigurationError('"exponential_growth" must be a number larger than 1.')
        if not isinstance(self.input_multiplier, (int, float)) or self.input_multiplier == 0:
            raise ConfigurationError('"input_multiplier" must be a non-zero number.')


RegionInput = Union[RegionConfig, dict]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_layer(layer: Union[LayerConfig, dict]) -> LayerConfig:
    """Convert a nested layer description into a ``LayerConfig``."""
    if isinstance(layer, LayerConfig):
        children = [parse_layer(child) for child in layer.layers]
        return LayerConfig(id=layer.id, row=layer.row, square=layer.square, layers=children)

    if not isinstance(layer, dict):
        raise ConfigurationError(f"Unsupported layer description: {layer!r}.")
    if not layer.get("id"):
        raise ConfigurationError('Layer "id" is not defined.')
    inhibition = layer.get("inhibition")
    if not isinstance(inhibition, dict):
        raise ConfigurationError(f'Layer "{layer["id"]}" has no "inhibition" defined.')
    children = [parse_layer(child) for child in layer.get("layers") or []]
    return LayerConfig(
        id=layer["id"],
        row=inhibition.get("row"),
        square=inhibition.get("square"),
        layers=children,
    )


def parse_regions(regions: Optional[Sequence[RegionInput]]) -> List[RegionConfig]:
    """Convert and validate the region structure of a network.

    Raises:
        ConfigurationError: If regions are missing, a region size is not a
            positive integer, or a layer id is missing or duplicated.
    """
    if not regions:
        raise ConfigurationError('"regions" are not defined.')

    parsed: List[RegionConfig] = []
    for region in regions:
        if isinstance(region, RegionConfig):
            size, layers = region.size, region.layers
        elif isinstance(region, dict):
            size, layers = region.get("size"), region.get("layers") or []
        else:
            raise ConfigurationError(f"Unsupported region description: {region!r}.")

        if not _is_int(size) or size <= 0:
            raise ConfigurationError('Region "size" must be a positive integer.')
        if not layers:
            raise ConfigurationError("Every region needs at least one layer.")
        parsed.append(RegionConfig(size=size, layers=[parse_layer(layer) for layer in layers]))

    seen: Set[str] = set()
    for region in parsed:
        _check_unique_ids(region.layers, seen)
    return parsed


def _check_unique_ids(layers: List[LayerConfig], seen: Set[str]) -> None:
    for layer in layers:
        if not layer.id:
            raise ConfigurationError('Layer "id" is not defined.')
        if layer.id in seen:
            raise ConfigurationError(f'Layer id "{layer.id}" is not unique.')
        seen.add(layer.id)
        _check_unique_ids(layer.layers, seen)
