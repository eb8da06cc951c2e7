"""
Reader Options

Validated configuration for a single QueueReader instance.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from queue_reader.config import Settings
from queue_reader.message_queue.base import MAX_RECEIVE_MESSAGES
from queue_reader.utils.observability import ReaderLogger


class ReaderOptions(BaseModel):
    """
    Options for QueueReader.

    Attributes:
        receive_wait_seconds: Long-poll duration per receive (None = queue default)
        initial_idle_delay_seconds: First sleep after an empty receive
        maximum_idle_delay_seconds: Ceiling for the doubling idle delay
        max_messages: Messages requested per receive
        logger: Leveled logger; defaults to loguru bound to the queue URL
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    receive_wait_seconds: Optional[int] = Field(default=None, ge=0, le=20)
    initial_idle_delay_seconds: float = Field(default=5.0, ge=0)
    maximum_idle_delay_seconds: float = Field(default=300.0, ge=0)
    max_messages: int = Field(default=MAX_RECEIVE_MESSAGES, ge=1, le=MAX_RECEIVE_MESSAGES)
    logger: Optional[ReaderLogger] = None

    @model_validator(mode="after")
    def _check_idle_delays(self) -> "ReaderOptions":
        if self.maximum_idle_delay_seconds < self.initial_idle_delay_seconds:
            raise ValueError(
                "maximum_idle_delay_seconds must be >= initial_idle_delay_seconds"
            )
        return self

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "ReaderOptions":
        """Build options from environment settings, with explicit overrides on top."""
        values = {
            "receive_wait_seconds": settings.receive_wait_seconds,
            "initial_idle_delay_seconds": settings.initial_idle_delay_seconds,
            "maximum_idle_delay_seconds": settings.maximum_idle_delay_seconds,
        }
        values.update(overrides)
        return cls(**values)
