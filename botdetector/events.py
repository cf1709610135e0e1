from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional

EventKind = Literal["pointermove", "click", "keydown", "keyup", "scroll", "focusin", "focusout"]

# DOM names some clients send instead of the canonical kinds
KIND_ALIASES = {
    "mousemove": "pointermove",
    "focus": "focusin",
    "blur": "focusout",
    "wheel": "scroll",
}

# which physical source a kind comes from; ordering is enforced per source
SOURCE_DEVICE = {
    "pointermove": "pointer",
    "click": "pointer",
    "scroll": "pointer",
    "keydown": "keyboard",
    "keyup": "keyboard",
    "focusin": "focus",
    "focusout": "focus",
}

EDITABLE_TAGS = ("INPUT", "TEXTAREA")


def is_editable_target(tag: Optional[str], content_editable: bool = False) -> bool:
    """True for elements that accept typed text (inputs, textareas, contenteditable)."""
    if content_editable:
        return True
    return (tag or "").upper() in EDITABLE_TAGS


class RawEvent(BaseModel):
    # one input-device event, as produced by the page
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: EventKind = Field(..., description="event type e.g. pointermove/keydown/scroll")
    timestamp: float = Field(..., description="monotonic milliseconds", allow_inf_nan=False)
    x: Optional[float] = None
    y: Optional[float] = None
    code: Optional[str] = Field(None, description="physical key code e.g. KeyA")
    key: Optional[str] = Field(None, description="logical key e.g. a/Backspace")
    scroll_offset: Optional[float] = Field(None, alias="scrollOffset")
    target_is_editable: Optional[bool] = Field(None, alias="targetIsEditable")
    target_tag: Optional[str] = Field(None, alias="targetTag")
    content_editable: bool = Field(False, alias="contentEditable")

    @property
    def device(self) -> str:
        return SOURCE_DEVICE[self.kind]

    @property
    def editable(self) -> bool:
        if self.target_is_editable is not None:
            return self.target_is_editable
        return is_editable_target(self.target_tag, self.content_editable)
