"""
Console and JSON output for session aggregates.

Functions:
    - color_txt: Colorizes a string.
    - print_report: Prints per-round and overall statistics as a table.
    - save_report_to_json: Writes an aggregate to a JSON file.
"""

import json
import logging
from pathlib import Path

from colored import attr, bg, fg
from halo import Halo

from affect.report.aggregator import RoundReport, SessionAggregate
from affect.taxonomy import CANONICAL_CATEGORIES
from affect.utils import get_logger

logger: logging.Logger = get_logger(__name__)

_TIER_COLORS: dict[str, str] = {
    "Excellent": "green",
    "Good": "blue",
    "Fair": "yellow",
    "NeedsImprovement": "red",
}


def color_txt(string: str, fg_color: str, bg_color: str, padding: int = 0) -> str:
    """
    Colorizes a string.

    Arguments:
        string (str): String to be colorized.
        fg_color (str): Foreground color.
        bg_color (str): Background color.
        padding (int): Width to left-justify the string to.

    Returns:
        str: Colorized string.
    """
    if padding:
        string = string.ljust(padding)
    return f"{fg(fg_color)}{bg(bg_color)}{string}{attr('reset')}"


def _report_row(name: str, report: RoundReport, name_width: int) -> str:
    cells = [name.ljust(name_width), str(report.question_count).rjust(3)]
    cells.extend(
        f"{report.category_averages[category] * 100:5.1f}%".rjust(len(category))
        for category in CANONICAL_CATEGORIES
    )
    cells.append(report.dominant_category.ljust(10))
    tier = report.performance_tier.value
    cells.append(f"{fg(_TIER_COLORS.get(tier, 'white'))}{tier}{attr('reset')}")
    return " ".join(cells)


def print_report(aggregate: SessionAggregate) -> None:
    """
    Prints per-round and overall statistics as an ASCII table.

    Arguments:
        aggregate (SessionAggregate): Session statistics to print.
    """
    logger.info(msg=f"Printing report for {len(aggregate.rounds)} rounds.")
    name_width: int = max([len("Overall"), *(len(name) for name in aggregate.rounds)])

    header = ["Round".ljust(name_width), "  Q", *CANONICAL_CATEGORIES, "Dominant".ljust(10), "Tier"]
    print(color_txt(" ".join(header), "black", "green"))
    for name, report in aggregate.rounds.items():
        print(_report_row(name, report, name_width))
    print(color_txt(_report_row("Overall", aggregate.overall, name_width), "white", "blue"))


def save_report_to_json(aggregate: SessionAggregate, file_name: str | Path) -> Path:
    """
    Saves a session aggregate to a JSON file.

    Arguments:
        aggregate (SessionAggregate): Session statistics to save.
        file_name (str | Path): Destination path; parent folders are created.

    Returns:
        Path: The path of the written file.
    """
    path = Path(file_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    with Halo(text=f"Saving report to {path}", spinner="dots", text_color="green"):
        with open(path, mode="w", encoding="utf-8") as file:
            json.dump(aggregate.to_dict(), file, indent=2)
    logger.info(msg=f"Report successfully saved to {path}")
    return path
