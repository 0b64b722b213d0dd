"""Pydantic schemas for deckflow."""

from deckflow.schemas.deck import (
    Block,
    BulletBlock,
    ChartBlock,
    DataSeries,
    Deck,
    DeckMeta,
    ImageBlock,
    KpiBlock,
    QuoteBlock,
    Rect,
    Slide,
    TextBlock,
)

__all__ = [
    "Block",
    "BulletBlock",
    "ChartBlock",
    "DataSeries",
    "Deck",
    "DeckMeta",
    "ImageBlock",
    "KpiBlock",
    "QuoteBlock",
    "Rect",
    "Slide",
    "TextBlock",
]
