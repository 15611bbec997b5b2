"""
Deadswitch Session Controller

View state machine:

    UNAUTHENTICATED --login--> PROTOCOL_SETUP   (no critical condition)
    UNAUTHENTICATED --login--> CRITICAL_ALERT   (critical condition holds)
    any authenticated --logout--> UNAUTHENTICATED
    PROTOCOL_SETUP --auto--> CRITICAL_ALERT     (rising edge of the critical condition)

    close:  PROTOCOL_SETUP -> MONITOR
            MONITOR        -> CRITICAL_ALERT if critical else PROTOCOL_SETUP
            CRITICAL_ALERT -> MONITOR

The critical condition is "own will expired OR any pending claim expired".
The automatic jump is guarded by a one-shot edge detector (previous
condition vs. current condition), so it fires once per false->true edge
and never drags the user back after they leave the alert view.

Transitions do not perform I/O. Each Transition lists the refresh effects
the caller must run (monitor data on entering MONITOR, claims on entering
CRITICAL_ALERT).
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from deadswitch.core.types import View, InheritanceClaim
from deadswitch.errors import AccessDenied, InvalidParameterError
from deadswitch.liveness.clock import LivenessVerdict

logger = logging.getLogger(__name__)


class Trigger(Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    NAVIGATE = "navigate"
    CLOSE = "close"
    AUTO_ALERT = "auto_alert"


class Effect(Enum):
    REFRESH_MONITOR = "refresh_monitor"     # address, balance, will status
    REFRESH_CLAIMS = "refresh_claims"


ENTRY_EFFECTS = {
    View.MONITOR: (Effect.REFRESH_MONITOR,),
    View.CRITICAL_ALERT: (Effect.REFRESH_CLAIMS,),
}


@dataclass(frozen=True, slots=True)
class Transition:
    source: View
    target: View
    trigger: Trigger
    effects: Tuple[Effect, ...] = ()


@dataclass(frozen=True, slots=True)
class Notice:
    """Non-fatal, user-visible message (e.g. a rejected navigation)."""
    message: str
    code: Optional[int] = None


TransitionListener = Callable[[Transition], None]
NoticeListener = Callable[[Notice], None]


class SessionController:
    """Single-window-focus view state machine."""

    def __init__(self):
        self.view: View = View.UNAUTHENTICATED
        self.history: List[Transition] = []
        self.notices: List[Notice] = []

        # Inputs of the critical condition
        self.will_expired = False
        self.claims_expired = False

        # Edge detector memory: condition value at the previous observation
        self._previous_critical = False

        self._transition_listeners: List[TransitionListener] = []
        self._notice_listeners: List[NoticeListener] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def authenticated(self) -> bool:
        return self.view.authenticated

    @property
    def critical(self) -> bool:
        return self.will_expired or self.claims_expired

    def on_transition(self, listener: TransitionListener) -> None:
        self._transition_listeners.append(listener)

    def on_notice(self, listener: NoticeListener) -> None:
        self._notice_listeners.append(listener)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self) -> Optional[Transition]:
        """Enter the session after successful authentication."""
        if self.authenticated:
            logger.debug("login ignored: already authenticated")
            return None

        # The condition is consumed here so the same edge cannot fire again
        self._previous_critical = self.critical
        target = View.CRITICAL_ALERT if self.critical else View.PROTOCOL_SETUP
        return self._transition(target, Trigger.LOGIN)

    def logout(self) -> Optional[Transition]:
        if not self.authenticated:
            return None
        self.will_expired = False
        self.claims_expired = False
        self._previous_critical = False
        return self._transition(View.UNAUTHENTICATED, Trigger.LOGOUT)

    # ------------------------------------------------------------------
    # Manual navigation
    # ------------------------------------------------------------------

    def navigate(self, target: View) -> Optional[Transition]:
        """
        Move to target on user request.

        Rejected with an access-denied notice while unauthenticated; the
        view does not change.
        """
        if target is View.UNAUTHENTICATED:
            raise InvalidParameterError("target", "use logout() to leave the session")
        if not self._check_access(f"cannot open {target.value} without authentication"):
            return None
        if target is self.view:
            return None
        return self._transition(target, Trigger.NAVIGATE)

    def close(self) -> Optional[Transition]:
        """Close the active view and focus its fallback; never leaves zero views open."""
        if not self._check_access("no view to close without authentication"):
            return None

        if self.view is View.PROTOCOL_SETUP:
            target = View.MONITOR
        elif self.view is View.MONITOR:
            target = View.CRITICAL_ALERT if self.critical else View.PROTOCOL_SETUP
        else:
            target = View.MONITOR
        return self._transition(target, Trigger.CLOSE)

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def observe_verdict(self, verdict: LivenessVerdict) -> Optional[Transition]:
        """Feed a liveness verdict. NO_PROTOCOL never counts as expired."""
        self.will_expired = verdict.is_expired
        return self._detect_edge()

    def observe_claims(self, claims: Sequence[InheritanceClaim]) -> Optional[Transition]:
        """Feed the latest fetched pending claims."""
        self.claims_expired = any(claim.is_expired for claim in claims)
        return self._detect_edge()

    def _detect_edge(self) -> Optional[Transition]:
        current = self.critical
        rising = current and not self._previous_critical
        self._previous_critical = current

        if rising and self.view is View.PROTOCOL_SETUP:
            logger.info("Critical condition raised while on protocol setup")
            return self._transition(View.CRITICAL_ALERT, Trigger.AUTO_ALERT)
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_access(self, reason: str) -> bool:
        if self.authenticated:
            return True

        denied = AccessDenied(reason)
        notice = Notice(message=denied.message, code=denied.code.value)
        self.notices.append(notice)
        logger.info(f"Rejected: {denied.message}")
        for listener in list(self._notice_listeners):
            listener(notice)
        return False

    def _transition(self, target: View, trigger: Trigger) -> Transition:
        transition = Transition(
            source=self.view,
            target=target,
            trigger=trigger,
            effects=ENTRY_EFFECTS.get(target, ()),
        )
        self.view = target
        self.history.append(transition)
        logger.info(f"View {transition.source.value} -> {target.value} ({trigger.value})")

        for listener in list(self._transition_listeners):
            listener(transition)
        return transition
