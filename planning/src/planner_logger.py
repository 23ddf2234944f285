"""
Planner Logger Module

Routes the planner and IK solver module loggers to the console and an
optional file, and turns per-attempt diagnostics of a planning call into
readable reports.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

# planning.src.ik_planner, kinematics.src.inverse_kinematic and siblings
PLANNER_LOGGER_NAMES = ("planning", "kinematics")

# 12:00:00.123 DEBUG   planning.src.ik_planner: Waypoint 0 tight attempt 0: info 1
LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s'
DATE_FORMAT = '%H:%M:%S'


class PlannerLogger:
    """Handler setup and diagnostic reports for sequential IK planning"""

    def __init__(self, log_file: Optional[str] = None, level=logging.INFO,
                 logger_names: Sequence[str] = PLANNER_LOGGER_NAMES):
        """
        Args:
            log_file: Path of an additional log file (optional)
            level: Level applied to the handlers and the routed loggers
            logger_names: Logger hierarchies to route; the first one carries reports
        """
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        self.handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            self.handlers.append(logging.FileHandler(log_file))
        for handler in self.handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)

        self.loggers = [logging.getLogger(name) for name in logger_names]
        self._previous_levels = [routed.level for routed in self.loggers]
        for routed in self.loggers:
            routed.setLevel(level)
            for handler in self.handlers:
                routed.addHandler(handler)

        self.logger = self.loggers[0]

    def log_attempts(self, attempts) -> Dict[int, Dict[str, object]]:
        """
        Report the ``last_attempts`` records of a planning call.

        Every attempt is written at DEBUG with its tolerances and violated
        constraints; one INFO line per waypoint tells which tier solved it,
        and a WARNING marks a waypoint that exhausted every tier.

        Returns:
            Per-waypoint summary: {index: {'tier': str or None, 'attempts': int}}
        """
        summary: Dict[int, Dict[str, object]] = {}
        for record in attempts:
            entry = summary.setdefault(record.waypoint_index, {'tier': None, 'attempts': 0})
            entry['attempts'] += 1
            if record.success:
                entry['tier'] = record.tier

            self.logger.debug(
                f"waypoint {record.waypoint_index} {record.tier}[{record.attempt}] "
                f"pos_tol={np.round(record.pos_tol, 4)} rot_tol={record.rot_tol:.4f} "
                f"info={record.info}"
                + (f" violated={list(record.infeasible_constraints)}" if record.infeasible_constraints else ""))

        for index, entry in sorted(summary.items()):
            if entry['tier'] is None:
                self.logger.warning(f"waypoint {index}: no tier succeeded in {entry['attempts']} attempts")
            else:
                self.logger.info(f"waypoint {index}: solved by {entry['tier']} after {entry['attempts']} attempts")
        return summary

    def log_results(self, ik_res):
        """One INFO line per result entry: time tag, tier and configuration."""
        for entry in ik_res:
            self.logger.info(f"t={entry.time:.1f} tier={entry.tier:<14} "
                             f"q={np.round(entry.configuration, 3)}")

    def write(self, message, level="info"):
        """
        Write a log message on the report logger

        Args:
            message: Message to log
            level: Log level (info, warning, error, debug)
        """
        levels = {"debug": logging.DEBUG, "warning": logging.WARNING, "error": logging.ERROR}
        self.logger.log(levels.get(level.lower(), logging.INFO), message)

    def close(self):
        """Detach the handlers, restore logger levels and close the handlers"""
        for routed, previous_level in zip(self.loggers, self._previous_levels):
            for handler in self.handlers:
                routed.removeHandler(handler)
            if self.handlers:
                routed.setLevel(previous_level)
        for handler in self.handlers:
            handler.flush()
            handler.close()
        self.handlers = []
