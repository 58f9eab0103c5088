"""
Search Reporter

This module turns a finished search into readable text: the configuration it
ran with, how and why it stopped, and the per-iteration history.
"""

import datetime
from pathlib import Path
from typing import Any, List, Optional

import numpy as np


class SearchReporter:
    """
    Generates text reports for a search result.
    """

    def __init__(self, result, config=None):
        """
        Args:
            result: SearchResult returned by a selection algorithm
            config: SearchConfig the search ran with (optional)
        """
        self.result = result
        self.config = config

    def format_summary(self) -> str:
        """Configuration table followed by the outcome of the search."""
        result = self.result
        lines = ["=" * 70, f"{result.algorithm.value.upper().replace('_', ' ')} REPORT", "=" * 70]

        if self.config is not None:
            lines.append("\nCONFIGURATION")
            lines.append("-" * 50)
            for label, value in self.config.to_rows():
                lines.append(f"{label:<35} {value}")

        lines.append("\nOUTCOME")
        lines.append("-" * 50)
        lines.append(f"{'Stopping reason':<35} "
                     f"{result.stopping_reason.value if result.stopping_reason else 'n/a'}")
        lines.append(f"{'Iterations':<35} {result.iterations_number}")
        lines.append(f"{'Elapsed time (s)':<35} {result.elapsed_time:.3f}")
        lines.append(f"{'Final training error':<35} {result.final_training_error:.6g}")
        lines.append(f"{'Final selection error':<35} {result.final_selection_error:.6g}")

        if result.final_temperature is not None:
            lines.append(f"{'Optimal order':<35} {result.optimal_configuration}")
            lines.append(f"{'Final temperature':<35} {result.final_temperature:.6g}")
        else:
            mask = result.optimal_configuration or ()
            lines.append(f"{'Inputs kept':<35} {sum(mask)} of {len(mask)}")
            lines.append(f"{'Optimal inputs':<35} {', '.join(result.optimal_input_names)}")

        selection_errors = np.asarray(result.history.selection_errors, dtype=float)
        if selection_errors.size > 0:
            lines.append(f"{'Selection error range':<35} "
                         f"{selection_errors.min():.6g} - {selection_errors.max():.6g}")

        return "\n".join(lines)

    def format_history_table(self, max_rows: Optional[int] = 20) -> str:
        """
        Per-iteration table of the search history.

        Args:
            max_rows: Show at most this many rows (the most recent ones); None shows all
        """
        records = list(self.result.history)
        lines = ["\nSEARCH HISTORY", "-" * 70,
                 f"{'Iteration':<10} {'Configuration':<30} {'Training':<14} {'Selection':<14}",
                 "-" * 70]

        if max_rows is not None and len(records) > max_rows:
            lines.append(f"... {len(records) - max_rows} earlier iterations omitted")
            records = records[-max_rows:]

        for record in records:
            lines.append(f"{record.iteration:<10} {self._format_configuration(record.configuration):<30} "
                         f"{self._format_error(record.training_error):<14} "
                         f"{self._format_error(record.selection_error):<14}")

        return "\n".join(lines)

    def generate_report(self, max_rows: Optional[int] = 20) -> str:
        """Complete report: summary and history table."""
        return "\n".join([
            self.format_summary(),
            self.format_history_table(max_rows),
            f"\nGenerated: {datetime.datetime.now().isoformat()}",
        ])

    def save_report_to_file(self, filepath, max_rows: Optional[int] = None) -> str:
        """
        Save a complete report to a text file.

        Args:
            filepath: Path to save the report
            max_rows: History rows to include; None includes every iteration

        Returns:
            Path to saved file
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            f.write(self.generate_report(max_rows))

        return str(filepath)

    @staticmethod
    def _format_configuration(configuration: Any) -> str:
        if configuration is None:
            return "-"
        if isinstance(configuration, (tuple, list)):
            return "".join("1" if keep else "0" for keep in configuration)
        return str(configuration)

    @staticmethod
    def _format_error(error: Optional[float]) -> str:
        return "-" if error is None else f"{error:.6g}"


def summarize_results(results: List[Any]) -> str:
    """One line per result, for logging several searches at once."""
    lines = []
    for result in results:
        reason = result.stopping_reason.value if result.stopping_reason else "n/a"
        lines.append(f"{result.algorithm.value}: selection error {result.final_selection_error:.6g} "
                     f"after {result.iterations_number} iterations ({reason})")
    return "\n".join(lines)
