"""Correction request/response models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# field -> (names we accept, names models tend to use instead)
_LLM_FIELD_NAMES: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "suggestion": (("suggestion",), ("correction", "suggested", "replacement")),
    "startIndex": (("startIndex", "start_index"), ("start",)),
    "endIndex": (("endIndex", "end_index"), ("end",)),
}


class Correction(BaseModel):
    """A suggested edit against a specific text snapshot.

    ``start_index``/``end_index`` are half-open character offsets into the
    snapshot the correction was computed against.
    """

    model_config = ConfigDict(populate_by_name=True)

    original: str
    suggestion: str
    start_index: int = Field(alias="startIndex")
    end_index: int = Field(alias="endIndex")
    explanation: str | None = None

    @model_validator(mode="before")
    @classmethod
    def remap_llm_fields(cls, data: dict) -> dict:
        """Handle LLM responses that use different field names."""
        if isinstance(data, dict):
            data = dict(data)
            for target, (accepted, alternates) in _LLM_FIELD_NAMES.items():
                if any(name in data for name in accepted):
                    continue
                for name in alternates:
                    if name in data:
                        data[target] = data.pop(name)
                        break
        return data

    @property
    def key(self) -> tuple[int, int]:
        """Logical identity of a correction within a set."""
        return (self.start_index, self.end_index)

    def shifted(self, delta: int) -> "Correction":
        """Return a copy moved by *delta* characters."""
        return self.model_copy(
            update={
                "start_index": self.start_index + delta,
                "end_index": self.end_index + delta,
            }
        )


class ProviderErrorInfo(BaseModel):
    """Transient provider failure reported alongside a degraded result."""

    code: str
    message: str
    retryable: bool = True


class CorrectionResult(BaseModel):
    """Everything the provider knows about one text snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    original_text: str = Field(alias="originalText")
    corrected_text: str = Field(alias="correctedText")
    corrections: list[Correction] = []
    source: Literal["provider", "fallback", "none"] = "provider"
    error: ProviderErrorInfo | None = None

    @classmethod
    def unchanged(cls, text: str, source: str = "none") -> "CorrectionResult":
        """A result proposing no edits."""
        return cls(original_text=text, corrected_text=text, corrections=[], source=source)


class Segment(BaseModel):
    """One display run of a rendered text."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["plain", "highlighted"]
    content: str
    correction: Correction | None = None

    @property
    def start_index(self) -> int | None:
        return self.correction.start_index if self.correction else None

    @property
    def end_index(self) -> int | None:
        return self.correction.end_index if self.correction else None


class ApplyResult(BaseModel):
    """Outcome of applying one or all corrections."""

    model_config = ConfigDict(populate_by_name=True)

    new_text: str = Field(alias="newText")
    remaining: list[Correction] = []


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CheckRequest(BaseModel):
    """Request for corrections of a text snapshot."""

    text: str


class RenderRequest(BaseModel):
    """Request to split text into plain/highlighted segments."""

    text: str
    corrections: list[Correction] = []


class ApplyRequest(BaseModel):
    """Request to apply a single correction."""

    text: str
    chosen: Correction
    pending: list[Correction] = []


class ApplyAllRequest(BaseModel):
    """Request to substitute the provider's fully corrected text."""

    model_config = ConfigDict(populate_by_name=True)

    corrected_text: str = Field(alias="correctedText")
    pending: list[Correction] = []
