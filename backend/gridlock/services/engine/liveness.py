from dataclasses import dataclass
from typing import Any, Dict, Optional

from .rules import DEFAULT_RULES, FINISHED, PLAYING, Rules, opponent_role
from .state import MatchState


@dataclass
class LivenessReport:
    degraded: bool = False
    claim: Optional[Dict[str, Any]] = None
    silence_ms: Optional[int] = None


def heartbeat_update(role: str, now: Any) -> Dict[str, Any]:
    return {f'{role}.last_seen': now}


def check_opponent(
    match: MatchState,
    role: str,
    self_id: str,
    now: int,
    rules: Rules = DEFAULT_RULES,
) -> LivenessReport:
    """Inspect the opponent's last heartbeat.

    Past the warning threshold the connection is flagged as degraded; past the
    timeout this side claims the match. Both clients run the same check, so
    near-simultaneous claims are possible and are settled by the store.
    """
    if match.status != PLAYING or match.winner:
        return LivenessReport()
    last_seen = match.player(opponent_role(role)).last_seen
    if not last_seen:
        return LivenessReport()

    silence = now - int(last_seen)
    report = LivenessReport(degraded=silence > rules.liveness_warning_ms, silence_ms=silence)
    if silence > rules.liveness_timeout_ms:
        report.claim = {'status': FINISHED, 'winner': self_id}
    return report
