from datetime import datetime
from typing import Optional

from .models import AlertGateState, GateConfig, GateDecision, GatePhase, RiskAssessment


class AlertGate:
    """
    Hysteresis/cooldown state machine deciding whether an assessment becomes a user alert.

    Guards against alert storms from rapid re-polling (cooldown), false positives from a
    single noisy high reading (consecutive confirmation), while still alerting during a
    sustained emergency. The transition itself is the pure `evaluate`; this class only
    holds the current state for one device.
    """

    def __init__(self, config: Optional[GateConfig] = None):
        self._state = AlertGateState(config=config or GateConfig())

    @property
    def state(self) -> AlertGateState:
        return self._state

    def decide(self, assessment: RiskAssessment, now: datetime) -> GateDecision:
        """Evaluate one assessment and commit the resulting state."""
        decision = self.evaluate(self._state, assessment, now)
        self._state = decision.state
        return decision

    def reconfigure(self, config: GateConfig) -> None:
        """Swap thresholds without touching counters or the cooldown clock."""
        self._state = self._state.model_copy(update={"config": config})

    def reset(self) -> None:
        self._state = AlertGateState(config=self._state.config)

    # -------------------------------------------------------------------------
    # Transition function
    # -------------------------------------------------------------------------
    @classmethod
    def evaluate(cls, state: AlertGateState, assessment: RiskAssessment, now: datetime) -> GateDecision:
        """
        Deterministic transition given (state, assessment, now). Never raises.

        Rules, first match wins:
        1. Below threshold      → counter reset, idle.
        2. Inside cooldown      → suppressed, counter untouched, alerting.
        3. High/critical        → counter += 1; approve once it reaches the required count.
        4. At/above threshold   → approve immediately (no corroboration needed).
        """
        config = state.config
        level = assessment.risk_level

        # 1. Below threshold
        if not level.at_least(config.risk_threshold):
            return cls._decision(
                state, False, "below threshold",
                consecutive_high_risk=0, phase=GatePhase.IDLE,
            )

        # 2. Cooldown is a hard floor regardless of level
        if cls._in_cooldown(state, now):
            return cls._decision(state, False, "cooldown active", phase=GatePhase.ALERTING)

        # 3. High band requires consecutive confirmation
        if level.is_high_band:
            count = state.consecutive_high_risk + 1
            if count < config.required_consecutive_high_risk:
                return cls._decision(
                    state, False,
                    f"awaiting confirmation ({count}/{config.required_consecutive_high_risk})",
                    consecutive_high_risk=count, phase=GatePhase.ESCALATING,
                )
            return cls._decision(
                state, True, f"{level.value} risk confirmed",
                consecutive_high_risk=0, last_notification_time=now, phase=GatePhase.ALERTING,
            )

        # 4. At/above threshold but below the high band
        return cls._decision(
            state, True, f"{level.value} risk",
            last_notification_time=now, phase=GatePhase.ALERTING,
        )

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------
    @staticmethod
    def _in_cooldown(state: AlertGateState, now: datetime) -> bool:
        if state.last_notification_time is None:
            return False
        elapsed = (now - state.last_notification_time).total_seconds()
        return elapsed < state.config.cooldown_seconds

    @staticmethod
    def _decision(state: AlertGateState, approved: bool, reason: str, **changes) -> GateDecision:
        return GateDecision(approved=approved, state=state.model_copy(update=changes), reason=reason)
