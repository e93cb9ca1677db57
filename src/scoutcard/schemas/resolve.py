"""Turn the three configuration layers into one InternalConfig.

``resolve_config()`` is the only place layers are combined. Later layers win:

1. ParamConfig - expert defaults, complete
2. UserConfig - the user's CONFIG file
3. CLIConfig - command-line flags

Threshold lists are the one exception to plain replacement: a user entry
replaces the default for its category and leaves the others in place.
"""

import logging
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from scoutcard.analysis.classifier import validate_thresholds
from scoutcard.analysis.models import Category
from scoutcard.schemas.cli import CLIConfig
from scoutcard.schemas.internal import InternalConfig
from scoutcard.schemas.param import ParamConfig
from scoutcard.schemas.user import UserConfig

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Merge ``overrides`` into a copy of ``base``, left to right.

    Nested dicts merge key by key; anything else is replaced outright.

    Examples
    --------
    >>> deep_merge({"a": 1, "b": {"c": 2}}, {"b": {"d": 4}})
    {'a': 1, 'b': {'c': 2, 'd': 4}}
    """
    merged = dict(base)
    for override in overrides:
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = deep_merge(current, value)
            else:
                merged[key] = value
    return merged


def merge_thresholds(defaults: list[Any], overrides: list[Any]) -> list[dict]:
    """Replace default thresholds per category with validated overrides.

    Raises
    ------
    InvalidThresholdConfig
        If an override is malformed, misordered, or repeats a category.
    """
    by_category = {cfg.category: cfg for cfg in validate_thresholds(defaults)}
    for cfg in validate_thresholds(overrides):
        by_category[cfg.category] = cfg

    order = list(Category)
    return [
        by_category[category].model_dump()
        for category in sorted(by_category, key=order.index)
    ]


def _as_model(value: Union[None, dict, ModelT], model: Type[ModelT]) -> ModelT:
    # None and {} both mean "no overrides at this layer"
    if isinstance(value, model):
        return value
    return model.model_validate(value or {})


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Build the frozen runtime configuration.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert defaults. Required.
    user_cfg : dict or UserConfig, optional
        Values from the user's CONFIG file.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides.

    Returns
    -------
    InternalConfig

    Raises
    ------
    ValidationError
        If any layer, or the merged result, fails Pydantic validation.
    InvalidThresholdConfig
        If user thresholds are malformed, misordered, or duplicated.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), {"PASSES": 5, "WEEK_START": "Sun"})
    >>> config.aggregator.passes_per_category, config.trends.week_start
    (5, 'sunday')
    """
    param = _as_model(param_cfg, ParamConfig)
    user = _as_model(user_cfg, UserConfig)
    cli = _as_model(cli_cfg, CLIConfig)

    user_overrides = user.to_internal_overrides()
    threshold_overrides = user_overrides.pop("alerts", {}).get("default_thresholds") or []

    merged = deep_merge(param.model_dump(), user_overrides, cli.to_internal_overrides())
    merged["alerts"]["default_thresholds"] = merge_thresholds(
        merged["alerts"]["default_thresholds"], threshold_overrides
    )
    if threshold_overrides:
        logger.debug("Applied %d threshold override(s)", len(threshold_overrides))

    # Overrides get the same range and ordering checks as the defaults
    checked = ParamConfig.model_validate(merged)
    return InternalConfig.model_validate(checked.model_dump())
