"""Data structures for translation requests and run progress."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.utils import MathUtils


class Credentials(BaseModel):
    """User-supplied access to the translation backend."""

    api_key: Optional[str] = Field(default=None, description="User's own API key")
    custom_host: Optional[str] = Field(
        default=None, description="Custom upstream host used by the backend"
    )


class TranslationOptions(BaseModel):
    """Per-request options that don't identify the user."""

    prompt_template: Optional[str] = Field(default=None)
    use_google: bool = Field(
        default=False, description="Use the alternate (non-primary) provider"
    )


class TranslateRequest(BaseModel):
    """JSON body posted to the translation backend for one batch."""

    model_config = ConfigDict(populate_by_name=True)

    target_lang: str = Field(alias="targetLang", min_length=1)
    sentences: List[str]
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    prompt_template: Optional[str] = Field(default=None, alias="promptTemplate")
    base_host: Optional[str] = Field(default=None, alias="baseHost")

    def to_payload(self) -> dict:
        """Wire representation; unset optional fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RunState(str, Enum):
    """States of one whole-document translation run."""

    IDLE = "idle"
    RUNNING = "running"
    RETRYING = "retrying"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATES = frozenset({RunState.ABORTED, RunState.CANCELLED, RunState.COMPLETED})


class TranslateFileStatus(BaseModel):
    """Progress of a whole-document translation run."""

    is_translating: bool = False
    trans_count: int = Field(default=0, ge=0)
    total_batches: int = Field(default=0, ge=0)
    state: RunState = RunState.IDLE

    @property
    def progress_percentage(self) -> float:
        return MathUtils.calculate_percentage(self.trans_count, self.total_batches)

    def describe(self) -> str:
        """Progress label, e.g. ``3/12``."""
        return f"{self.trans_count}/{self.total_batches}"
