"""Configuration layers and their resolution.

``resolve_config`` combines ``ParamConfig`` (defaults), ``UserConfig`` (the
CONFIG file) and ``CLIConfig`` (flags) into one frozen ``InternalConfig``.
Runtime code only ever sees the InternalConfig.
"""

from scoutcard.schemas.cli import CLIConfig
from scoutcard.schemas.internal import InternalConfig
from scoutcard.schemas.param import ParamConfig
from scoutcard.schemas.resolve import resolve_config
from scoutcard.schemas.user import UserConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
