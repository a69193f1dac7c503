import logging
from datetime import datetime
from pathlib import Path
from typing import Final, List, Optional, Tuple, Union

from rich.console import Console
from rich.logging import RichHandler

console: Final[Console] = Console()

time_format: Final[str] = "%Y-%m-%d %H:%M:%S"

log: Final[logging.Logger] = logging.getLogger("chip8vm")


class Chip8FileHandler(logging.Handler):
    def __init__(self, file_name: Union[str, Path]):
        super().__init__()
        self._file_name = Path(file_name)
        self._log_hold: List[Tuple[logging.LogRecord, Exception]] = []

    def _write_log_entry(self, log_entry: str) -> None:
        with open(self._file_name, "a", encoding="utf-8") as f:
            f.write(log_entry + "\n")

    def emit(self, record: logging.LogRecord) -> None:
        log_entry = self.format(record)

        self.acquire()
        try:
            if self._log_hold:
                still_failed = []
                for old_record, _ in self._log_hold:
                    try:
                        self._write_log_entry(self.format(old_record))
                    except OSError as e:
                        still_failed.append((old_record, e))
                self._log_hold = still_failed  # keep only the ones still failing

            try:
                self._write_log_entry(log_entry)
            except OSError as e:
                self._log_hold.append((record, e))

        finally:
            self.release()


def get_time() -> str:
    return datetime.now().strftime("%Y-%m-%d_%H-%M-%S")


def setup_logging(debug_mode: bool = False, log_dir: Optional[Path] = Path("log")) -> logging.Logger:
    """
    Install the console (rich) and file handlers on the chip8vm logger.

    Passing ``log_dir=None`` skips the file handler.
    """
    level = logging.DEBUG if debug_mode else logging.INFO

    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        rich_tracebacks=True,
        show_path=True,
        enable_link_path=True,
        tracebacks_show_locals=debug_mode,
        show_level=False,
        console=console,
    )
    rich_handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt=time_format))
    log.addHandler(rich_handler)

    if log_dir is not None:
        log_root = Path(log_dir).resolve()
        log_root.mkdir(parents=True, exist_ok=True)
        file_handler = Chip8FileHandler(log_root / f"chip8vm_{get_time()}.log")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt=time_format)
        )
        log.addHandler(file_handler)

    log.setLevel(level)
    log.propagate = False
    return log
