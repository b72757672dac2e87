"""Pretty formatting utilities for CLI output."""

import sys
from typing import IO, List, Optional

from ..stack.log import StackLog

CURRENT_MARKER = "◉"
OTHER_MARKER = "◯"


def format_stack_log(stack_log: StackLog) -> str:
    """Draw one stack, tip at the top and base at the bottom."""
    lines: List[str] = [""]
    for index, row in enumerate(stack_log.rows):
        marker = CURRENT_MARKER if row.is_current else OTHER_MARKER
        lines.append(f"    {marker}  {row.branch}")
        lines.append(f"    │  {row.rebase_text} | {row.pr_text}")
        if index < len(stack_log.rows) - 1:
            lines.append("    │")
    lines.append("  ╭─╯")
    lines.append(f"   ~ {stack_log.base_branch}")
    lines.append("")
    return "\n".join(lines)


def print_stack_logs(stack_logs: List[StackLog], file: Optional[IO[str]] = None) -> None:
    """Print every stack to file (default stdout)."""
    if file is None:
        file = sys.stdout
    for stack_log in stack_logs:
        print(format_stack_log(stack_log), file=file)
