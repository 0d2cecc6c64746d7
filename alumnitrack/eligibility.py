"""
Survey eligibility prober

Decides, when a command starts, whether to offer the signed-in student or
alumnus one survey they have not been offered yet. Checks are throttled
through the prompt history so frequent commands do not hit the API each
time, and failures never reach the caller.
"""

import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from alumnitrack.auth import SessionInfo
from alumnitrack.storage import PromptHistory
from alumnitrack.survey_schema import SurveyStub

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_MINUTES = 60


def parse_eligibility(data: Any) -> List[SurveyStub]:
    """Survey stubs from an eligibility response; malformed items are skipped"""
    if not isinstance(data, list):
        return []
    stubs = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            stubs.append(SurveyStub.from_dict(item))
        except ValueError:
            logger.debug("Skipping eligibility record without id: %r", item)
    return stubs


class EligibilityProber:
    """
    Usage:
        prober = EligibilityProber(api.eligible_surveys, auth.session_info, history)
        stub = await prober.probe(on_found=controller_opener)
    """

    def __init__(
        self,
        fetch_eligible: Callable[[], Awaitable[Any]],
        get_session: Callable[[], SessionInfo],
        history: PromptHistory,
        throttle_minutes: float = DEFAULT_THROTTLE_MINUTES,
        clock: Callable[[], float] = time.time
    ):
        self.fetch_eligible = fetch_eligible
        self.get_session = get_session
        self.history = history
        self.throttle_minutes = throttle_minutes
        self.clock = clock
        self._in_flight = False

    @property
    def throttle_window_ms(self) -> float:
        return self.throttle_minutes * 60_000

    def _now_ms(self) -> float:
        return self.clock() * 1000

    def is_throttled(self) -> bool:
        return self._now_ms() - self.history.get_last_checked() < self.throttle_window_ms

    async def probe(
        self,
        on_found: Optional[Callable[[SurveyStub], Any]] = None
    ) -> Optional[SurveyStub]:
        """Return the survey to offer now, or None"""
        session = self.get_session()
        if not session.is_authenticated or not session.is_student_or_alumni():
            return None

        if self._in_flight or self.is_throttled():
            return None

        self._in_flight = True
        try:
            try:
                data = await self.fetch_eligible()
            finally:
                self.history.set_last_checked(self._now_ms())
            candidates = parse_eligibility(data)

            prompted = set(self.history.prompted_ids())
            selected = next((stub for stub in candidates if stub.id not in prompted), None)
            if selected is None:
                return None

            self.history.mark_prompted(selected.id)
        except Exception as e:
            logger.warning("survey check failed: %s", e)
            return None
        finally:
            self._in_flight = False

        logger.info("Offering survey %s", selected.id)

        if on_found is not None:
            on_found(selected)
        return selected
