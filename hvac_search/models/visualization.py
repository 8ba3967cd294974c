"""Chart descriptor models, independent of any charting library."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ChartType = Literal["bar", "pie", "line", "map"]


class ChartPoint(BaseModel):
    """One (label, value) pair."""

    label: str
    value: float = Field(ge=0.0, description="Non-negative series value")


class ChartDescriptor(BaseModel):
    """Chart-ready series with a rendering hint."""

    model_config = ConfigDict(populate_by_name=True)

    type: ChartType
    title: str
    data: list[ChartPoint]
    x_axis: str | None = Field(default=None, alias="xAxis")
    y_axis: str | None = Field(default=None, alias="yAxis")


class Visualization(BaseModel):
    """Set of charts attached to a search response."""

    charts: list[ChartDescriptor] = Field(default_factory=list)
