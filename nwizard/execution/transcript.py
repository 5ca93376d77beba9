"""Session transcript: every finished command appended to the menu's logfile."""

from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from nwizard.logging import LoggerFactory, logger

RULE = "=" * 80


def _is_transcript_record(record) -> bool:
    return record["extra"].get("transcript", False)


class SessionTranscript:
    """Writes a plain-text transcript through a dedicated loguru sink."""

    def __init__(self, log_file_path: Path) -> None:
        self.log_file_path = Path(log_file_path).expanduser()
        self.commands_logged = 0
        self.session_start_time = time.time()
        self._sink_id: Optional[int] = None
        self._log = logger.bind(transcript=True)

    def start(self) -> None:
        """Attach the sink and write the session header.

        Raises:
            OSError: the transcript file cannot be created.
        """
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_file_path, "a", encoding="utf-8"):
            pass
        self._sink_id = logger.add(
            self.log_file_path,
            level="INFO",
            filter=_is_transcript_record,
            format="{message}",
            enqueue=False,
            encoding="utf-8",
        )
        started = datetime.fromtimestamp(self.session_start_time).isoformat(timespec="seconds")
        self._write(f"\n{RULE}\nSESSION STARTED: {started}\n{RULE}")
        LoggerFactory.for_session().info(f"Transcript enabled: {self.log_file_path}")

    @property
    def active(self) -> bool:
        return self._sink_id is not None

    def log_command(
        self,
        command: str,
        item_name: str,
        output: str,
        error_output: str,
        exit_code: int,
    ) -> None:
        if not self.active:
            return
        lines = [
            "",
            RULE,
            f"COMMAND: {item_name}",
            f"EXECUTED: {command}",
            f"TIMESTAMP: {datetime.now().isoformat(timespec='seconds')}",
            f"EXIT CODE: {exit_code}",
            RULE,
            "",
        ]
        if output:
            lines.extend(["STDOUT:", output.rstrip("\n"), ""])
        if error_output:
            lines.extend(["STDERR:", error_output.rstrip("\n"), ""])
        self._write("\n".join(lines))
        self.commands_logged += 1

    def close(self) -> None:
        if not self.active:
            return
        duration = int(time.time() - self.session_start_time)
        self._write(
            f"\n{RULE}\nSESSION ENDED: {self.commands_logged} command(s), "
            f"{duration}s\n{RULE}"
        )
        logger.remove(self._sink_id)
        self._sink_id = None

    def _write(self, text: str) -> None:
        # Braces in command output must not be treated as format fields.
        self._log.opt(raw=True).info(text + "\n")
