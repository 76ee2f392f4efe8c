"""
Candidate Scorer

Ranks staff members for a task from four weighted sub-scores:
- Skill match (fraction of required skills held)
- Availability (rostered at the task's date/time and spare capacity)
- Workload (fewer active tasks scores higher)
- Location (work zone vs. task location)

Everything here is pure: the assignment service builds the candidate views
from current database state and hands them in.
"""

from dataclasses import dataclass, field
from datetime import time
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from accounts.models import role_level

DEFAULT_WEIGHTS = {
    'skill': 0.4,
    'availability': 0.3,
    'workload': 0.2,
    'location': 0.1,
}

NEUTRAL_AVAILABILITY_SCORE = 60.0
NEUTRAL_LOCATION_SCORE = 50.0
SAME_ZONE_LOCATION_SCORE = 70.0

ZONE_SEPARATORS = (':', '/')


@dataclass(frozen=True)
class AvailabilityWindow:
    """Roster entry for the candidate on the task's local date"""
    is_available: bool = True
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    max_concurrent_tasks: int = 3

    def covers(self, at_time: Optional[time]) -> bool:
        """Whether the shift window (if any) includes the given local time."""
        if at_time is None:
            return True
        if self.shift_start and self.shift_end and self.shift_end < self.shift_start:
            # Overnight shift, e.g. 22:00-06:00
            return at_time >= self.shift_start or at_time <= self.shift_end
        if self.shift_start and at_time < self.shift_start:
            return False
        if self.shift_end and at_time > self.shift_end:
            return False
        return True


@dataclass(frozen=True)
class TaskRequirements:
    restaurant_id: str
    required_skills: Tuple[str, ...] = ()
    location: Optional[str] = None
    minimum_role: str = 'STAFF'
    local_time: Optional[time] = None


@dataclass(frozen=True)
class StaffCandidate:
    staff_id: str
    name: str
    role: str
    restaurant_id: Optional[str]
    is_active: bool = True
    skills: FrozenSet[str] = field(default_factory=frozenset)
    workload: int = 0
    location: Optional[str] = None
    availability: Optional[AvailabilityWindow] = None


def _normalize(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(str(v).strip().lower() for v in values if v and str(v).strip())


def confidence_tier(score: float) -> str:
    if score >= 80:
        return 'high'
    if score >= 60:
        return 'medium'
    return 'low'


def is_eligible(requirements: TaskRequirements, candidate: StaffCandidate) -> bool:
    """Hard filter applied before scoring: active, same restaurant, minimum role."""
    if not candidate.is_active:
        return False
    if str(candidate.restaurant_id) != str(requirements.restaurant_id):
        return False
    return role_level(candidate.role) >= role_level(requirements.minimum_role or 'STAFF')


def is_available(requirements: TaskRequirements, candidate: StaffCandidate) -> bool:
    window = candidate.availability
    if window is None:
        return True
    return window.is_available and window.covers(requirements.local_time)


def skill_score(requirements: TaskRequirements, candidate: StaffCandidate) -> float:
    required = _normalize(requirements.required_skills)
    if not required:
        return 100.0
    matched = required & _normalize(candidate.skills)
    return 100.0 * len(matched) / len(required)


def availability_score(candidate: StaffCandidate) -> float:
    window = candidate.availability
    if window is None:
        return NEUTRAL_AVAILABILITY_SCORE
    capacity = max(window.max_concurrent_tasks, 1)
    load = candidate.workload / capacity
    if load < 0.8:
        return 100.0
    if load < 1.0:
        return 60.0
    return 0.0


def workload_score(workload: int) -> float:
    if workload <= 0:
        return 100.0
    if workload <= 2:
        return 80.0
    if workload <= 4:
        return 60.0
    return 30.0


def _zone(location: str) -> str:
    for separator in ZONE_SEPARATORS:
        if separator in location:
            return location.split(separator, 1)[0].strip()
    return location


def location_score(task_location: Optional[str], staff_location: Optional[str]) -> float:
    task_location = (task_location or '').strip().lower()
    staff_location = (staff_location or '').strip().lower()
    if not task_location or not staff_location:
        return NEUTRAL_LOCATION_SCORE
    if task_location == staff_location:
        return 100.0
    if _zone(task_location) == _zone(staff_location):
        return SAME_ZONE_LOCATION_SCORE
    return 0.0


def _reasons(requirements: TaskRequirements, candidate: StaffCandidate, subscores: Dict[str, float]) -> List[str]:
    reasons = []
    if requirements.required_skills:
        matched = _normalize(requirements.required_skills) & _normalize(candidate.skills)
        reasons.append(f"Has {len(matched)} of {len(requirements.required_skills)} required skills")
    if candidate.availability is None:
        reasons.append("No roster entry for the task date")
    elif subscores['availability'] == 100.0:
        reasons.append("Available with spare capacity")
    elif subscores['availability'] == 0.0:
        reasons.append("At maximum concurrent tasks")
    if candidate.workload == 0:
        reasons.append("No active tasks")
    else:
        reasons.append(f"{candidate.workload} active task(s)")
    if subscores['location'] == 100.0:
        reasons.append("Works in the task location")
    elif subscores['location'] == SAME_ZONE_LOCATION_SCORE:
        reasons.append("Works in the same zone")
    return reasons


def score_candidate(requirements: TaskRequirements, candidate: StaffCandidate,
                    weights: Optional[Dict[str, float]] = None) -> Optional[Dict]:
    """
    Score one candidate, or return None when the candidate is excluded
    (ineligible, unavailable, or holding none of the required skills).
    """
    if not is_eligible(requirements, candidate) or not is_available(requirements, candidate):
        return None

    weights = weights or DEFAULT_WEIGHTS
    subscores = {
        'skill': skill_score(requirements, candidate),
        'availability': availability_score(candidate),
        'workload': workload_score(candidate.workload),
        'location': location_score(requirements.location, candidate.location),
    }
    if requirements.required_skills and subscores['skill'] == 0:
        return None

    total = sum(subscores[key] * weights.get(key, 0) for key in subscores)
    score = round(min(max(total, 0.0), 100.0), 2)

    return {
        'staff_id': str(candidate.staff_id),
        'name': candidate.name,
        'role': candidate.role,
        'score': score,
        'subscores': {key: round(value, 2) for key, value in subscores.items()},
        'confidence': confidence_tier(score),
        'workload': candidate.workload,
        'reasons': _reasons(requirements, candidate, subscores),
    }


def rank_candidates(requirements: TaskRequirements, candidates: Iterable[StaffCandidate],
                    limit: Optional[int] = None, weights: Optional[Dict[str, float]] = None) -> List[Dict]:
    """
    Ranked candidates, best first. Ties go to the lower workload, then to the
    lower staff id. An empty pool gives an empty list.
    """
    ranked = []
    for candidate in candidates:
        scored = score_candidate(requirements, candidate, weights)
        if scored is not None:
            ranked.append(scored)

    ranked.sort(key=lambda c: (-c['score'], c['workload'], c['staff_id']))
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
