"""Execution of package state command plans."""

from typing import Any, Callable, Dict, List, Optional

from tqdm import tqdm

from ..packages.transitions import PackageCommand
from ..util.logging import get_logger
from .device import ADBDevice, ADBError

logger = get_logger(__name__)

# Package manager commands often exit 0 and report errors on stdout
FAILURE_MARKERS = ("Failure", "Failed", "Error")


def split_sequences(commands: List[PackageCommand]) -> List[List[PackageCommand]]:
    """Split a flat plan into per-package, per-user sequences.

    A sequence starts at each state-defining command.
    """
    sequences: List[List[PackageCommand]] = []
    for command in commands:
        if command.state_defining or not sequences:
            sequences.append([command])
        else:
            sequences[-1].append(command)
    return sequences


class CommandExecutor:
    """Runs command plans on a device.

    Sequences run in order. Only the first command of a sequence decides
    whether the state change happened; cleanup failures are logged and
    ignored. A failed sequence never stops the following ones.
    """

    def __init__(self, device: ADBDevice):
        self.device = device

    def _execute(self, command: PackageCommand) -> Optional[str]:
        """Run one command; return an error message or None on success."""
        try:
            output = self.device.shell(command.shell)
        except ADBError as e:
            return str(e)

        for line in output.split("\n"):
            line = line.strip()
            if line.startswith(FAILURE_MARKERS) or "Exception:" in line:
                return output
        return None

    def run_sequence(self, sequence: List[PackageCommand]) -> bool:
        """Run one sequence; returns whether its state-defining command succeeded."""
        head, cleanup = sequence[0], sequence[1:]

        error = self._execute(head)
        if error is not None:
            logger.error(f"{head.shell} failed: {error}")
            return False

        logger.debug(f"{head.shell}: ok")
        for command in cleanup:
            error = self._execute(command)
            if error is not None:
                logger.warning(f"Cleanup {command.shell} failed: {error}")

        return True

    def run(
        self,
        commands: List[PackageCommand],
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
        show_progress: bool = True,
    ) -> Dict[str, Any]:
        """Execute a command plan.

        Returns:
            Totals with the state-defining commands that failed
        """
        sequences = split_sequences(commands)
        total = len(sequences)
        success_count = 0
        failed: List[str] = []

        with tqdm(total=total, desc="Applying", unit="pkg", disable=not show_progress) as pbar:
            for i, sequence in enumerate(sequences):
                head = sequence[0]
                if progress_callback:
                    progress_callback(i + 1, total, head.package)

                pbar.set_postfix_str(head.package)

                if self.run_sequence(sequence):
                    success_count += 1
                else:
                    failed.append(head.shell)

                pbar.update(1)

        logger.info(f"Applied {success_count}/{total} state changes")

        return {
            "total": total,
            "success_count": success_count,
            "failed_count": len(failed),
            "failed": failed,
        }
