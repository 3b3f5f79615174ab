from .enums import EmergencyStatus, ShiftStatus, SkillLevel, TimeOffStatus, UserRole
from .user import User
from .store import Store
from .user_store import UserStore
from .shift_pattern import ShiftPattern
from .time_slot import TimeSlot
from .shift import Shift
from .time_off_request import TimeOffRequest
from .emergency_request import EmergencyRequest
from .emergency_volunteer import EmergencyVolunteer
from .login_id_sequence import LoginIdSequence
from .rate_limit_hit import RateLimitHit

__all__ = [
    "UserRole",
    "SkillLevel",
    "ShiftStatus",
    "TimeOffStatus",
    "EmergencyStatus",
    "User",
    "Store",
    "UserStore",
    "ShiftPattern",
    "TimeSlot",
    "Shift",
    "TimeOffRequest",
    "EmergencyRequest",
    "EmergencyVolunteer",
    "LoginIdSequence",
    "RateLimitHit",
]
