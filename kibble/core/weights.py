# kibble/core/weights.py
"""
Package-size (weight variant) configuration for the catalog.

Each product references one config by key (Product.weight_config). A config
lists the package sizes in grams that can be ordered, each with a price
multiplier applied to the product's base price.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class WeightOption:
    value: int  # grams
    label: str
    price_multiplier: float


@dataclass(frozen=True)
class WeightConfig:
    category: str  # cat | dog | fish
    type: str  # dry | wet
    weights: tuple[WeightOption, ...]


def format_weight_label(grams: int) -> str:
    """
    1500 -> "1.5 кг", 400 -> "400 г"
    """
    if grams >= 1000:
        kg = grams / 1000
        return f"{kg:g} кг"
    return f"{grams} г"


def _option(value: int, multiplier: float) -> WeightOption:
    return WeightOption(value, format_weight_label(value), multiplier)


_SMALL_FISH = (_option(20, 1), _option(50, 1.1), _option(100, 1.2))

WEIGHT_CONFIGS: dict[str, WeightConfig] = {
    "catDry": WeightConfig(
        "cat",
        "dry",
        (
            _option(400, 1),
            _option(1500, 1.2),
            _option(2000, 1.3),
            _option(4000, 1.4),
            _option(10000, 1.5),
        ),
    ),
    "catWet": WeightConfig(
        "cat", "wet", (_option(85, 1), _option(100, 1.1), _option(400, 1.2))
    ),
    "dogDry": WeightConfig(
        "dog",
        "dry",
        (
            _option(500, 1),
            _option(1000, 1.2),
            _option(2000, 1.3),
            _option(3000, 1.4),
            _option(4000, 1.5),
            _option(7500, 1.6),
            _option(10000, 1.7),
            _option(15000, 1.8),
            _option(20000, 1.9),
        ),
    ),
    "dogWet": WeightConfig("dog", "wet", (_option(400, 1), _option(800, 1.2))),
    "fishDry": WeightConfig(
        "fish",
        "dry",
        (
            *_SMALL_FISH,
            _option(250, 1.3),
            _option(500, 1.4),
            _option(1000, 1.5),
        ),
    ),
    "fishWet": WeightConfig("fish", "wet", (*_SMALL_FISH, _option(250, 1.3))),
    "fishFlakes": WeightConfig("fish", "dry", _SMALL_FISH),
    "fishGranules": WeightConfig("fish", "dry", (*_SMALL_FISH, _option(250, 1.3))),
    "fishSticks": WeightConfig("fish", "dry", _SMALL_FISH),
    "fishChips": WeightConfig("fish", "dry", _SMALL_FISH),
    "fishTablets": WeightConfig("fish", "dry", _SMALL_FISH),
}


def get_weight_option(config_key: str, grams: int) -> WeightOption | None:
    """Return the option for `grams` in the given config, or None."""
    config = WEIGHT_CONFIGS.get(config_key)
    if config is None:
        return None
    for option in config.weights:
        if option.value == grams:
            return option
    return None


def price_for_weight(base_price: float, option: WeightOption) -> float:
    return round(base_price * option.price_multiplier, 2)
