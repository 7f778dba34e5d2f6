"""
Response interpreter for askInventory answers.

The server answers every search with free text plus a `source` tag naming
the subsystem that produced it. `render` turns that into a display model;
it performs no I/O.
"""
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

SOURCE_INVENTORY = 'inventory'
SOURCE_TRUCKS = 'trucks'
SOURCE_KNOWLEDGE = 'knowledge'
SOURCE_AI = 'ai'

SOURCE_LABELS = {
    SOURCE_INVENTORY: 'Inventory Database',
    SOURCE_TRUCKS: 'Fleet Database',
    SOURCE_KNOWLEDGE: 'Knowledge Base',
    SOURCE_AI: 'AI Assistant',
}
DEFAULT_SOURCE_LABEL = 'System'

NO_RESULTS_MESSAGE = 'No results found. Please try a different search.'

QUANTITY_MARKER = 'Quantity:'
LOW_STOCK_GLYPH = '⚠'

# Bullet glyphs the server prefixes items with: •, ⚠, ✓, ✗ (emoji variants
# carry a trailing U+FE0F). The bullet may follow list numbering.
ITEM_FIELDS = r'(?P<name>.+?):\s*Quantity:\s*(?P<quantity>\d+)\s*(?P<unit>\w+)'
BULLET_ITEM_PATTERN = re.compile(r'[•⚠✓✗]\ufe0f?\s*' + ITEM_FIELDS)
ITEM_PATTERN = re.compile(r'^\s*' + ITEM_FIELDS)
LOCATION_PATTERN = re.compile(r'Location:\s*(?P<location>.*?)\s*(?=•|Notes:|$)')
NOTES_PATTERN = re.compile(r'Notes:\s*(?P<notes>.+)')


@dataclass(frozen=True)
class InventoryLine:
    item_name: str
    quantity: int
    unit: str
    location: Optional[str] = None
    notes: Optional[str] = None
    low_stock: bool = False


@dataclass(frozen=True)
class NoResults:
    kind: ClassVar[str] = 'no_results'
    message: str = NO_RESULTS_MESSAGE


@dataclass(frozen=True)
class InventoryDisplay:
    kind: ClassVar[str] = 'inventory'
    entries: Tuple[InventoryLine, ...]
    source_label: str = SOURCE_LABELS[SOURCE_INVENTORY]
    title: str = 'Inventory Results'


@dataclass(frozen=True)
class PreformattedDisplay:
    """Text shown verbatim, line breaks preserved"""
    kind: ClassVar[str] = 'preformatted'
    text: str
    source_label: str
    title: Optional[str] = None


@dataclass(frozen=True)
class TextDisplay:
    """Free-flowing prose answer"""
    kind: ClassVar[str] = 'text'
    text: str
    source_label: str


def parse_inventory_line(line: str) -> Optional[InventoryLine]:
    """
    Parse one answer line into an InventoryLine.

    Returns None when the line does not follow the item grammar, e.g.
    "• Flour: Quantity: 10 kg Location: Pantry Notes: bulk bag".
    """
    if QUANTITY_MARKER not in line:
        return None
    match = BULLET_ITEM_PATTERN.search(line) or ITEM_PATTERN.match(line)
    if not match:
        return None

    location = None
    location_match = LOCATION_PATTERN.search(line)
    if location_match and location_match.group('location'):
        location = location_match.group('location')

    notes = None
    notes_match = NOTES_PATTERN.search(line)
    if notes_match and notes_match.group('notes').strip():
        notes = notes_match.group('notes').strip()

    return InventoryLine(
        item_name=match.group('name').strip(),
        quantity=int(match.group('quantity')),
        unit=match.group('unit'),
        location=location,
        notes=notes,
        low_stock=LOW_STOCK_GLYPH in line,
    )


def parse_inventory_answer(answer: str) -> Tuple[InventoryLine, ...]:
    entries = []
    for line in answer.split('\n'):
        if not line.strip():
            continue
        entry = parse_inventory_line(line)
        if entry is not None:
            entries.append(entry)
    return tuple(entries)


def source_label(source) -> str:
    if not isinstance(source, str):
        return DEFAULT_SOURCE_LABEL
    return SOURCE_LABELS.get(source, DEFAULT_SOURCE_LABEL)


def render(response):
    """
    Build the display model for an askInventory response.

    Args:
        response: Mapping with `answer` and `source`, or None

    Returns:
        NoResults, InventoryDisplay, PreformattedDisplay or TextDisplay
    """
    if not isinstance(response, Mapping) or not response.get('answer'):
        return NoResults()

    answer = str(response['answer'])
    source = response.get('source')

    if source == SOURCE_INVENTORY:
        entries = parse_inventory_answer(answer)
        if not entries:
            # Answer in a different format, show it as-is
            return PreformattedDisplay(text=answer, source_label=source_label(source))
        return InventoryDisplay(entries=entries)

    if source == SOURCE_TRUCKS:
        return PreformattedDisplay(
            text=answer,
            source_label=source_label(source),
            title='Fleet Information',
        )

    return TextDisplay(text=answer, source_label=source_label(source))
