"""
Raw profile parser.

Turns the dataset's raw profile text into history and exposure items:

    ## History
    A book viewed 3 days ago
    Title: Some Book (['Fantasy', 'Comics'])
    Description: ...
    Author: ...
    Published at 2002 - Opera Graphica - 52 pages
    Rating: 4.1          <- global rating
    My Behavior: ...
    Rating: 5            <- the user's rating

    # Exposure List
    [A] Title: Other Book (['Fantasy'])
    Author: ...
    Published at ...
    Rating: 3.9
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

GENRE_LIST = re.compile(r"\[([^\]]+)\]")
TITLE_GENRES = re.compile(r"\((\[.+\])\)\s*$")
PUBLISHED = re.compile(r"Published at\s*(.+?)\s*-\s*(.+?)\s*-\s*(.+?)\s*pages", re.IGNORECASE)
EXPOSURE_START = re.compile(r"^\[([A-Z])\]")
HISTORY_SECTION = re.compile(r"## History\n([\s\S]*?)(?=# Exposure List|$)")
EXPOSURE_SECTION = re.compile(r"# Exposure List\n([\s\S]*?)$")


@dataclass
class ParsedHistoryItem:
    title: str = ""
    genres: List[str] = field(default_factory=list)
    description: str = ""
    author: str = ""
    published_at: str = ""
    pages: str = ""
    global_rating: str = ""
    my_behavior: str = ""
    my_rating: str = ""
    viewed_ago: str = ""


@dataclass
class ParsedExposureItem:
    label: str = ""
    title: str = ""
    genres: List[str] = field(default_factory=list)
    author: str = ""
    published_at: str = ""
    pages: str = ""
    rating: str = ""


@dataclass
class ParsedProfile:
    history: List[ParsedHistoryItem] = field(default_factory=list)
    exposure_list: List[ParsedExposureItem] = field(default_factory=list)


def parse_genres(genre_str: str) -> List[str]:
    """"(['genre1', 'genre2'])" -> ['genre1', 'genre2']"""
    match = GENRE_LIST.search(genre_str)
    if not match:
        return []
    genres = [g.strip().replace("'", "").replace('"', "") for g in match.group(1).split(",")]
    return [g for g in genres if g]


def _split_title(title_part: str) -> tuple:
    match = TITLE_GENRES.search(title_part)
    if match:
        return title_part[: match.start()].strip(), parse_genres(match.group(1))
    return title_part.strip(), []


def _parse_published(line: str) -> tuple:
    """(published_at, pages) from 'Published at 2002 - Venue - 52 pages'."""
    match = PUBLISHED.search(line)
    if match:
        return f"{match.group(1).strip()} - {match.group(2).strip()}", match.group(3).strip()
    return line[len("Published at"):].strip(), ""


def _lines(block: str) -> List[str]:
    return [line.strip() for line in block.split("\n") if line.strip()]


def parse_history_item(block: str) -> Optional[ParsedHistoryItem]:
    lines = _lines(block)
    if not lines:
        return None

    item = ParsedHistoryItem()
    for line in lines:
        if line.startswith("A book viewed"):
            item.viewed_ago = line[len("A book viewed"):].strip()
        elif line.startswith("Title:"):
            item.title, item.genres = _split_title(line[len("Title:"):])
        elif line.startswith("Description:"):
            item.description = line[len("Description:"):].strip()
        elif line.startswith("Author:"):
            item.author = line[len("Author:"):].strip()
        elif line.startswith("Published at"):
            item.published_at, item.pages = _parse_published(line)
        elif line.startswith("Rating:"):
            # first Rating line is the global rating, the second the user's own
            if not item.global_rating:
                item.global_rating = line[len("Rating:"):].strip()
            else:
                item.my_rating = line[len("Rating:"):].strip()
        elif line.startswith("My Behavior:"):
            item.my_behavior = line[len("My Behavior:"):].strip()

    return item if item.title else None


def parse_exposure_item(block: str) -> Optional[ParsedExposureItem]:
    lines = _lines(block)
    if not lines:
        return None

    item = ParsedExposureItem()
    for line in lines:
        match = EXPOSURE_START.match(line)
        if match:
            item.label = match.group(1)
            rest = line[match.end():].strip()
            if rest.startswith("Title:"):
                item.title, item.genres = _split_title(rest[len("Title:"):])
        elif line.startswith("Author:"):
            item.author = line[len("Author:"):].strip()
        elif line.startswith("Published at"):
            item.published_at, item.pages = _parse_published(line)
        elif line.startswith("Rating:"):
            item.rating = line[len("Rating:"):].strip()

    return item if item.title else None


def parse_user_profile(raw_text: str) -> ParsedProfile:
    """Parse a complete raw profile into history and exposure items."""
    result = ParsedProfile()

    history_match = HISTORY_SECTION.search(raw_text)
    if history_match:
        for block in re.split(r"\n(?=A book viewed)", history_match.group(1)):
            item = parse_history_item(block)
            if item:
                result.history.append(item)

    exposure_match = EXPOSURE_SECTION.search(raw_text)
    if exposure_match:
        for block in re.split(r"\n(?=\[[A-Z]\])", exposure_match.group(1)):
            item = parse_exposure_item(block)
            if item:
                result.exposure_list.append(item)

    return result
