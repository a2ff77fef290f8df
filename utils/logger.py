"""
Logger utility for the Railway Deadlock Manager.

Provides action-by-action logging with verbosity levels.
"""

from typing import List, Optional
from datetime import datetime


class SimulatorLogger:
    """
    Logger for ledger actions and decisions.

    Format: "Action X: Train requests [..] - GRANTED/DENIED (reason)"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose output
            log_file: Optional file path for logging
        """
        self.verbose = verbose
        self.log_file = log_file
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Railway Deadlock Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)

        print(formatted)

        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] {message}"
        else:
            return message

    def log_action(self, index: int, message: str) -> None:
        """Log a message for the action at position `index`."""
        self.log(f"Action {index}: {message}")

    def log_request(
        self,
        index: int,
        train: str,
        request: List[int],
        granted: bool,
        reason: str
    ) -> None:
        """
        Log a track request.

        Args:
            index: Action position in the run
            train: Train name
            request: Units requested per track section
            granted: Whether request was granted
            reason: Reason for decision
        """
        status = "GRANTED" if granted else "DENIED"
        self.log_action(index, f"{train} requests {list(request)} - {status} ({reason})")

    def log_detection(self, index: int, cycle: Optional[List[str]], is_safe: bool) -> None:
        """
        Log the outcome of a detection pass.

        Args:
            index: Action position in the run
            cycle: Train names on the detected cycle, or None
            is_safe: Banker's verdict for the same ledger
        """
        if cycle:
            self.log_action(index, f"DEADLOCK DETECTED - Cycle: {' -> '.join(cycle)}")
        else:
            self.log_action(index, "No deadlock detected by wait-for graph")

        verdict = "a SAFE" if is_safe else "an UNSAFE"
        self.log(f"  System is in {verdict} state (Banker's check)")

    def log_recovery(self, index: int, message: str) -> None:
        """Log a recovery action (termination or preemption)."""
        self.log_action(index, f"RECOVERY - {message}")

    def log_checkpoint(self, index: int, message: str, success: bool) -> None:
        """Log a checkpoint save or restore."""
        self.log(f"Action {index}: {message}", "info" if success else "warning")

    def log_system_state(self, index: int, state_str: str) -> None:
        """
        Log ledger snapshot.

        Args:
            index: Action position in the run
            state_str: Formatted allocation state
        """
        if self.verbose:
            self.log_action(index, f"Allocation State:\n{state_str}")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
