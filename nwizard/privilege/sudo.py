"""Elevated-privilege session kept alive for the whole interactive session.

The user authenticates once with ``sudo -v`` before the UI takes over the
terminal. A daemon thread then re-validates the cached credential with
``sudo -n -v`` (never prompts) before the platform timeout expires.

The shutdown flag is a plain attribute so it can be set from a signal
handler without taking a lock; the renewal thread polls it between short
sleeps.
"""

from __future__ import annotations

import math
import re
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from nwizard.config.settings import (
    DEFAULT_RENEWAL_PERIOD,
    MIN_RENEWAL_PERIOD,
    RENEWAL_CHECK_INTERVAL,
    RENEWAL_FRACTION,
    RENEWAL_SLEEP_STEP,
)
from nwizard.exceptions import AuthenticationError
from nwizard.logging import LoggerFactory

log = LoggerFactory.for_sudo()

SUDO_VALIDATE = ["sudo", "-v"]
SUDO_RENEW = ["sudo", "-n", "-v"]
# sudo only prints its defaults (including the timestamp timeout) to root.
SUDO_DEFAULTS = ["sudo", "-n", "sudo", "-V"]
TIMEOUT_PATTERN = re.compile(r"Authentication timestamp timeout:\s*(-?\d+(?:\.\d+)?)\s*minutes")


@dataclass
class CredentialSession:
    authenticated: bool = False
    last_renewed: Optional[float] = None
    renewal_period: Optional[float] = None
    shutdown_requested: bool = False


def parse_timestamp_timeout(text: str) -> Optional[float]:
    """Credential cache timeout in seconds from ``sudo -V`` output.

    Returns None when absent, zero (no caching) or negative (never expires).
    """
    match = TIMEOUT_PATTERN.search(text or "")
    if not match:
        return None
    minutes = float(match.group(1))
    if minutes <= 0:
        return None
    return minutes * 60.0


class CredentialSupervisor:
    def __init__(
        self,
        renewal_period: Optional[float] = None,
        *,
        enabled: bool = True,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        sleep_step: float = RENEWAL_SLEEP_STEP,
        check_interval: float = RENEWAL_CHECK_INTERVAL,
    ) -> None:
        self.enabled = enabled
        self.session = CredentialSession(renewal_period=renewal_period)
        self._run = run
        self._clock = clock
        self._sleep = sleep
        self._sleep_step = sleep_step
        self._check_interval = check_interval
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._started = False

    # -- shutdown coordination ------------------------------------------------

    def request_shutdown(self) -> None:
        """Idempotent and safe to call from a signal handler."""
        self.session.shutdown_requested = True

    def should_shutdown(self) -> bool:
        return self.session.shutdown_requested

    # -- authentication -------------------------------------------------------

    def _sudo(self, argv, *, interactive: bool = False) -> Optional[subprocess.CompletedProcess]:
        kwargs = {"text": True}
        if not interactive:
            kwargs.update(stdin=subprocess.DEVNULL, capture_output=True)
        try:
            return self._run(argv, **kwargs)
        except (OSError, subprocess.SubprocessError) as error:
            log.warning(f"Could not run {' '.join(argv)}: {error}")
            return None

    def authenticate_initial(self) -> bool:
        """Prompt for the password on the normal terminal; False aborts startup."""
        if not self.enabled:
            return True
        print("nwizard requires sudo access for system commands.")
        try:
            result = self._sudo(SUDO_VALIDATE, interactive=True)
        except KeyboardInterrupt:
            result = None
        if result is None or result.returncode != 0:
            log.error("Initial sudo authentication failed")
            print("Sudo authentication failed. Exiting.")
            return False
        self._mark_renewed()
        log.info("Sudo authenticated")
        print("Sudo authenticated successfully! Starting...")
        return True

    def ensure_authenticated(self) -> None:
        """Authenticate or abort startup.

        Raises:
            AuthenticationError: the user could not be authenticated.
        """
        if not self.authenticate_initial():
            raise AuthenticationError("sudo -v was refused or cancelled")

    def renew(self) -> bool:
        """Silently re-validate the cached credential."""
        result = self._sudo(SUDO_RENEW)
        if result is None or result.returncode != 0:
            detail = (result.stderr or "").strip() if result is not None else ""
            log.warning(f"Sudo renewal failed, retrying next check: {detail or 'no detail'}")
            with self._lock:
                self.session.authenticated = False
            return False
        self._mark_renewed()
        log.debug("Sudo credential renewed")
        return True

    def _mark_renewed(self) -> None:
        with self._lock:
            self.session.authenticated = True
            self.session.last_renewed = self._clock()

    @property
    def authenticated(self) -> bool:
        with self._lock:
            return self.session.authenticated

    # -- renewal period -------------------------------------------------------

    def auto_detect_renewal_period(self) -> float:
        """Use the configured period, else a fraction of the platform timeout."""
        if self.session.renewal_period is not None:
            return self.session.renewal_period
        period = DEFAULT_RENEWAL_PERIOD
        result = self._sudo(SUDO_DEFAULTS)
        timeout = None
        if result is not None and result.returncode == 0:
            timeout = parse_timestamp_timeout(result.stdout)
        if timeout is not None:
            period = max(timeout * RENEWAL_FRACTION, MIN_RENEWAL_PERIOD)
            log.debug(f"sudo timeout {timeout:.0f}s, renewing every {period:.0f}s")
        else:
            log.debug(f"sudo timeout not detected, renewing every {period:.0f}s")
        self.session.renewal_period = period
        return period

    def _renewal_due(self) -> bool:
        with self._lock:
            last = self.session.last_renewed
            authenticated = self.session.authenticated
        if not authenticated or last is None:
            return True
        return self._clock() - last >= self.session.renewal_period

    # -- background loop ------------------------------------------------------

    def start_background_renewal(self) -> Optional[threading.Thread]:
        """Start the single renewal thread of this process.

        Raises:
            RuntimeError: renewal was already started once.
        """
        if not self.enabled:
            return None
        if self._started:
            raise RuntimeError("Background renewal already started")
        self._started = True
        if self.session.renewal_period is None:
            self.auto_detect_renewal_period()
        self._thread = threading.Thread(
            target=self._renewal_loop, name="sudo-renewal", daemon=True
        )
        self._thread.start()
        log.debug("Background sudo renewal started")
        return self._thread

    def _renewal_loop(self) -> None:
        interval = min(self._check_interval, self.session.renewal_period)
        steps = max(1, math.ceil(interval / self._sleep_step))
        while not self.should_shutdown():
            if self._renewal_due():
                try:
                    self.renew()
                except Exception:
                    log.exception("Unexpected error during sudo renewal")
            for _ in range(steps):
                if self.should_shutdown():
                    break
                self._sleep(self._sleep_step)
        log.debug("Background sudo renewal stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
