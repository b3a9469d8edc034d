"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    print_client_info,
    print_final_results,
    print_header,
    print_server_selection,
    print_speed_result,
)
from .output import create_result_json, format_text_result

__all__ = [
    "ProgressDisplay",
    "console",
    "create_result_json",
    "format_text_result",
    "print_client_info",
    "print_final_results",
    "print_header",
    "print_server_selection",
    "print_speed_result",
]
