from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Optional

from nwizard.execution.process_runner import ProcessRunner
from nwizard.execution.transcript import SessionTranscript
from nwizard.menu.model import MenuConfig
from nwizard.menu.navigator import MenuNavigator
from nwizard.privilege.sudo import CredentialSupervisor
from nwizard.storage.selections import SelectionStore


@dataclass
class SessionContext:
    config: MenuConfig
    navigator: MenuNavigator
    runner: ProcessRunner
    supervisor: CredentialSupervisor
    store: SelectionStore
    transcript: Optional[SessionTranscript] = None
    restore_terminal: Optional[Callable[[], None]] = None
    exit_signal: Optional[int] = None
    notices: Deque[str] = field(default_factory=lambda: deque(maxlen=100))

    def add_notice(self, message: str) -> None:
        if message:
            self.notices.append(message)

    @property
    def last_notice(self) -> Optional[str]:
        return self.notices[-1] if self.notices else None
