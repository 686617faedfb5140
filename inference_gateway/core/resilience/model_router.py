"""
Model Router

Picks the downstream target for each attempt of an invocation.

Rules:
- PRIMARY by default.
- If the previous attempt failed with DownstreamOverloaded, downgrade to
  FALLBACK for the rest of the invocation. Never switch back.
- At most one downgrade per invocation.

The downgrade flag lives in a RoutingSession created per invocation by
`ModelRouter.for_invocation()`, so concurrent invocations never see each
other's routing decisions.
"""

from inference_gateway.core.config.constants import METRIC_FALLBACK_SWITCH, Stage, TargetRole
from inference_gateway.core.config.settings import Settings
from inference_gateway.core.exceptions import DownstreamOverloaded
from inference_gateway.core.interfaces.metrics import MetricsSink
from inference_gateway.core.logging import get_logger, log_stage
from inference_gateway.core.models import Target

logger = get_logger(__name__)


class RoutingSession:
    """Routing state of one invocation."""

    def __init__(self, router: "ModelRouter"):
        self._router = router
        self._downgraded = False

    @property
    def downgraded(self) -> bool:
        return self._downgraded

    def select(self, attempt_number: int, prior_outcome: BaseException | None = None) -> Target:
        """
        Target for `attempt_number`.

        Args:
            attempt_number: 1-based attempt number
            prior_outcome: Error of the previous attempt, None on the first
                attempt or after a success
        """
        if self._downgraded:
            return self._router.fallback

        if (
            self._router.fallback_enabled
            and attempt_number > 1
            and isinstance(prior_outcome, DownstreamOverloaded)
        ):
            self._downgraded = True
            self._router.record_switch(attempt_number)
            return self._router.fallback

        return self._router.primary


class ModelRouter:
    """
    Holds the PRIMARY and FALLBACK targets and hands out routing sessions.

    Usage:
        router = ModelRouter.from_settings(settings)
        session = router.for_invocation()
        target = session.select(attempt_number, prior_error)
    """

    def __init__(
        self,
        primary: Target,
        fallback: Target,
        fallback_enabled: bool = True,
        metrics: MetricsSink | None = None,
    ):
        if primary.role != TargetRole.PRIMARY or fallback.role != TargetRole.FALLBACK:
            raise ValueError("primary and fallback targets must carry matching roles")
        self.primary = primary
        self.fallback = fallback
        self.fallback_enabled = fallback_enabled
        self._metrics = metrics

    @classmethod
    def from_settings(cls, settings: Settings, metrics: MetricsSink | None = None) -> "ModelRouter":
        routing = settings.routing
        return cls(
            primary=Target(name="primary", role=TargetRole.PRIMARY, model=routing.PRIMARY_MODEL),
            fallback=Target(name="fallback", role=TargetRole.FALLBACK, model=routing.FALLBACK_MODEL),
            fallback_enabled=routing.FALLBACK_ENABLED,
            metrics=metrics,
        )

    def for_invocation(self) -> RoutingSession:
        return RoutingSession(self)

    def targets(self) -> tuple[Target, Target]:
        return self.primary, self.fallback

    def record_switch(self, attempt_number: int) -> None:
        log_stage(
            logger,
            Stage.TARGET_SELECTION,
            "Downstream overloaded, switching to fallback",
            level="warning",
            attempt=attempt_number,
            primary=self.primary.model,
            fallback=self.fallback.model,
        )
        if self._metrics is not None:
            self._metrics.increment(
                METRIC_FALLBACK_SWITCH,
                tags={"from": self.primary.name, "to": self.fallback.name},
            )
