from __future__ import annotations
import io
from typing import Dict, List

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import FeatureValidationError

ANONYMOUS_USER = "anonymous-user"


class FeatureVector(BaseModel):
    """Finished behavioural features of one session.

    Field names follow Python style; the wire (JSON/CSV) names are the
    camelCase aliases the collection backend stores.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str = Field(ANONYMOUS_USER, alias="userId")
    avg_cursor_speed: float = Field(0.0, alias="avgCursorSpeed", ge=0, allow_inf_nan=False)
    cursor_acceleration: float = Field(0.0, alias="cursorAcceleration", ge=-50000, le=50000, allow_inf_nan=False)
    path_deviation: float = Field(0.0, alias="pathDeviation", ge=0, allow_inf_nan=False)
    idle_time: float = Field(0.0, alias="idleTime", ge=0, allow_inf_nan=False, description="seconds")
    jitter: int = Field(0, alias="jitter", ge=0)
    click_pattern: int = Field(0, alias="clickPattern", ge=0)
    typing_speed: float = Field(0.0, alias="typingSpeed", ge=0, allow_inf_nan=False, description="chars/min")
    key_press_duration: float = Field(0.0, alias="keyPressDuration", ge=0, allow_inf_nan=False, description="ms")
    key_transition_time: float = Field(0.0, alias="keyTransitionTime", ge=0, allow_inf_nan=False, description="ms")
    key_transition_std_dev: float = Field(0.0, alias="keyTransitionStdDev", ge=0, allow_inf_nan=False)
    typing_accuracy: float = Field(100.0, alias="typingAccuracy", ge=0, le=100, allow_inf_nan=False)
    error_rate: float = Field(0.0, alias="errorRate", ge=0, le=100, allow_inf_nan=False)
    session_duration: float = Field(0.0, alias="sessionDuration", ge=0, allow_inf_nan=False, description="seconds")
    average_dwell_time: float = Field(0.0, alias="averageDwellTime", ge=0, allow_inf_nan=False, description="ms")
    scroll_behavior: float = Field(0.0, alias="scrollBehavior", ge=0, allow_inf_nan=False, description="px")
    interaction_complexity: float = Field(0.0, alias="interactionComplexity", ge=0, allow_inf_nan=False)

    @classmethod
    def wire_names(cls) -> List[str]:
        return [f.alias or name for name, f in cls.model_fields.items()]

    @classmethod
    def checked(cls, values: Dict) -> "FeatureVector":
        """Validate wire-named ``values`` and build the vector.

        Raises FeatureValidationError naming every field out of range.
        """
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            fields = []
            for err in e.errors():
                name = str(err["loc"][0]) if err["loc"] else "?"
                if name not in fields:
                    fields.append(name)
            raise FeatureValidationError(fields, {k: values.get(k) for k in fields}) from e

    def to_wire(self) -> Dict:
        return self.model_dump(by_alias=True)


def _cell(v) -> str:
    if isinstance(v, float):
        return f"{v:.2f}"
    return str(v)


def serialize(vector: FeatureVector) -> str:
    """Two-line comma-separated table: header of wire names, then the values.

    Values are not escaped; a comma inside ``userId`` breaks the row.
    """
    row = vector.to_wire()
    headers = ",".join(row.keys())
    values = ",".join(_cell(v) for v in row.values())
    return f"{headers}\n{values}"


def parse(text: str) -> FeatureVector:
    """Read a table produced by ``serialize`` back into a FeatureVector."""
    df = pd.read_csv(io.StringIO(text), dtype={"userId": str}, keep_default_na=False)
    if len(df) != 1:
        raise ValueError(f"expected exactly one data row, got {len(df)}")
    row = {k: (v.item() if hasattr(v, "item") else v) for k, v in df.iloc[0].to_dict().items()}
    return FeatureVector.checked(row)
