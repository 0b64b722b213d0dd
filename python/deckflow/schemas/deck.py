"""DeckJSON v1 Pydantic schemas.

The tool-output contract the deck assistant asks the model to emit. Field
names on the wire are camelCase (createdAt, chartType, ...); models accept
either the wire alias or the Python name and serialize back by alias.

Unknown keys are ignored, so a patch carrying extra fields still validates.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# Closed set of slide layouts
SLIDE_LAYOUTS = Literal[
    "title",
    "title-bullets",
    "two-column",
    "kpi-cards",
    "chart",
    "image",
    "quote",
    "grid-cards",
]

KPI_INTENTS = Literal["good", "bad", "neutral"]

CHART_TYPES = Literal["bar", "line", "pie"]


class DeckModel(BaseModel):
    """Base for DeckJSON models: alias-aware, extra keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Rect(DeckModel):
    x: float
    y: float
    w: float
    h: float


class DataSeries(DeckModel):
    name: str
    values: list[float]


# =============================================================================
# Blocks (discriminated on "kind")
# =============================================================================


class TextBlock(DeckModel):
    kind: Literal["text"]
    html: str
    frame: Rect


class BulletBlock(DeckModel):
    kind: Literal["bullet"]
    items: list[str]
    frame: Rect


class KpiBlock(DeckModel):
    kind: Literal["kpi"]
    label: str
    value: str
    delta: str | None = None
    intent: KPI_INTENTS | None = None
    frame: Rect


class QuoteBlock(DeckModel):
    kind: Literal["quote"]
    text: str
    by: str | None = None
    frame: Rect


class ImageBlock(DeckModel):
    kind: Literal["image"]
    data_url: str | None = Field(default=None, alias="dataUrl")
    url: str | None = None
    caption: str | None = None
    frame: Rect


class ChartBlock(DeckModel):
    kind: Literal["chart"]
    chart_type: CHART_TYPES = Field(alias="chartType")
    dataset: list[DataSeries]
    x_labels: list[str] | None = Field(default=None, alias="xLabels")
    y_label: str | None = Field(default=None, alias="yLabel")
    frame: Rect


Block = Annotated[
    TextBlock | BulletBlock | KpiBlock | QuoteBlock | ImageBlock | ChartBlock,
    Field(discriminator="kind"),
]


# =============================================================================
# Slides and decks
# =============================================================================


class Slide(DeckModel):
    """One slide. Slide ids are the merge key for patches."""

    id: str
    layout: SLIDE_LAYOUTS
    title: str | None = None
    notes: str | None = None
    blocks: list[Block]


class DeckMeta(DeckModel):
    source: str | None = None
    disclaimer: str | None = None


class Deck(DeckModel):
    """A complete deck, or a patch when ``patch`` is true.

    A patch carries only the slides it adds or replaces.
    """

    id: str
    title: str
    theme: str
    created_at: str = Field(alias="createdAt")
    slides: list[Slide]
    meta: DeckMeta | None = None
    patch: bool | None = None

    def to_json(self) -> str:
        """Serialize with wire field names, omitting unset optionals."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
