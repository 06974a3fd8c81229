from typing import Annotated

from annotated_types import Ge
from pydantic import PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WORKGRAPH_")

    serialization_secret: str = "supersecretsecret"
    """Secret used for signing records written by a supporting store."""

    poll_interval: Annotated[float, Ge(0)] = 0.1
    """Delay in seconds between two poll cycles."""

    batch_size: PositiveInt = 10
    """Max number of units executed concurrently within a poll cycle."""

    skipped_unblocks_steps: bool = False
    """Treat skipped units as done when gating later steps of a workflow."""

    aggregate_on_completion: bool = True
    """Build the final report as soon as a workflow reaches a terminal status."""
