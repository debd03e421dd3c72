"""Table of playlist entries that were not queued."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core import QueueStatus

if TYPE_CHECKING:
    from ..core import QueueResult

TABLE_WIDTH = 80
LOCATOR_WIDTH = 45
MESSAGE_WIDTH = 22


def _clip(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def print_failure_table(failed_results: list[QueueResult]) -> None:
    """
    Print one row per playlist entry that has no source.

    Args:
        failed_results: QueueResult objects with FAILED or SKIPPED status

    """
    if not failed_results:
        return

    skipped = sum(1 for result in failed_results if result.status is QueueStatus.SKIPPED)
    print("\n" + "=" * TABLE_WIDTH)
    print(f"{'NOT QUEUED':^{TABLE_WIDTH}}")
    print("=" * TABLE_WIDTH)
    print(f"Total not queued: {len(failed_results)} entries ({skipped} without a URL)\n")

    print(f"{'ENTRY':<{LOCATOR_WIDTH}} | {'STATUS':<7} | {'REASON':<{MESSAGE_WIDTH}}")
    print("-" * TABLE_WIDTH)
    for result in failed_results:
        locator = _clip(result.locator or "(no url)", LOCATOR_WIDTH)
        message = _clip(result.message or "Unknown error", MESSAGE_WIDTH)
        print(f"{locator:<{LOCATOR_WIDTH}} | {result.status.value:<7} | {message:<{MESSAGE_WIDTH}}")

    print("\nPrivate, removed or region-locked videos cannot be queued\n")
