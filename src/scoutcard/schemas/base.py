"""Shared Pydantic base for the configuration layers."""

from pydantic import BaseModel, ConfigDict


class ScoutBaseModel(BaseModel):
    """Common model settings for ParamConfig, UserConfig, CLIConfig and InternalConfig.

    Unknown keys are rejected, so a misspelled option fails loudly instead of
    being ignored. Enum fields hold their string values.
    """

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )
