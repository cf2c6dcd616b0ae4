"""
Cloud storage folder path planning.

Computes where a snapshot lands in the user's storage from their folder
organization preference. Pure: no I/O, same inputs give the same path.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import urlsplit

from .models import FolderStructure

DEFAULT_ROOT_FOLDER = "ArticleVault"
UNTAGGED_FOLDER = "untagged"
MAX_FOLDER_NAME_LENGTH = 100

_INVALID_FOLDER_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
_TRAILING_DOTS = re.compile(r"\.+$")
_PLACEHOLDER = re.compile(r"\{(year|month|day|domain|title|tag)\}")


@dataclass
class FolderPathContext:
    """Article metadata the planner needs."""
    title: str
    url: str
    created_at: datetime
    tags: list[str] = field(default_factory=list)


def sanitize_folder_name(name: str) -> str:
    """Make a single path fragment safe for every provider."""
    name = _INVALID_FOLDER_CHARS.sub("", name)
    name = _WHITESPACE.sub("-", name)
    name = _TRAILING_DOTS.sub("", name)
    return name[:MAX_FOLDER_NAME_LENGTH].lower()


def extract_domain(url: str) -> str:
    """Registrable domain: drops www. and collapses subdomains to the last two labels."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return "unknown"
    if not hostname:
        return "unknown"

    domain = re.sub(r"^www\.", "", hostname)
    parts = domain.split(".")
    if len(parts) > 2:
        return ".".join(parts[-2:])
    return domain


def format_date_folder(moment: datetime, date_format: str) -> str:
    year = f"{moment.year:04d}"
    month = f"{moment.month:02d}"
    day = f"{moment.day:02d}"

    if date_format == "YYYY-MM":
        return f"{year}-{month}"
    if date_format == "YYYY-MM-DD":
        return f"{year}-{month}-{day}"
    return f"{year}/{month}"


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def render_custom_template(template: str, values: dict[str, str]) -> str:
    """Substitute {year} {month} {day} {domain} {title} {tag} placeholders."""
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], template)


def plan_folder_path(
    context: FolderPathContext,
    structure: FolderStructure | None = None,
    root: str = DEFAULT_ROOT_FOLDER,
) -> str:
    """
    Compute the destination folder for an article's snapshot.

    Args:
        context: Title, URL, creation time and tags of the article
        structure: The user's folder organization preference; None means flat
        root: Top-level folder every path starts with

    Returns:
        A slash-separated path such as "ArticleVault/2024-03"
    """
    if structure is None or structure.organization_strategy == "flat":
        return root

    strategy = structure.organization_strategy
    created = _as_utc(context.created_at)

    if strategy == "date":
        return f"{root}/{format_date_folder(created, structure.date_format)}"

    if strategy == "domain":
        return f"{root}/{extract_domain(context.url)}"

    if strategy == "tags":
        if not context.tags:
            return f"{root}/{UNTAGGED_FOLDER}"
        path = f"{root}/{sanitize_folder_name(context.tags[0])}"
        if structure.separate_by_tag and len(context.tags) > 1:
            nested = "/".join(sanitize_folder_name(tag) for tag in context.tags[1:])
            path = f"{path}/{nested}"
        return path

    if strategy == "custom":
        if not structure.custom_path:
            return root
        values = {
            "year": f"{created.year:04d}",
            "month": f"{created.month:02d}",
            "day": f"{created.day:02d}",
            "domain": extract_domain(context.url),
            "title": sanitize_folder_name(context.title),
            "tag": sanitize_folder_name(context.tags[0]) if context.tags else UNTAGGED_FOLDER,
        }
        return f"{root}/{render_custom_template(structure.custom_path, values)}"

    return root
