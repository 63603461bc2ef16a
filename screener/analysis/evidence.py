"""Classification outcomes and the evidence detectors produce.

Every detector in this package reduces its input to a ClassificationEvidence:
a scored opinion with an optional category or reason and the terms that
produced it. The orchestrator turns the winning evidence into a Decision.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Classification(Enum):
    """Final classification of a screened call."""
    ROBOT = "robot"
    SPAM = "spam"
    EMERGENCY = "emergency"
    LEGITIMATE = "legitimate"
    UNCERTAIN = "uncertain"  # Always alerts the user

    @property
    def should_alert_user(self) -> bool:
        return self in (Classification.LEGITIMATE, Classification.EMERGENCY, Classification.UNCERTAIN)

    @property
    def should_hang_up(self) -> bool:
        return self in (Classification.SPAM, Classification.ROBOT)


class SpamCategory(Enum):
    """Kinds of unwanted calls."""
    ROBOT = "robot"
    TELEMARKETING = "telemarketing"
    SURVEYS = "surveys"
    SCAM = "scam"
    RELIGIOUS = "religious"
    POLITICAL = "political"
    FINANCIAL = "financial"
    INSURANCE = "insurance"
    ENERGY = "energy"
    TELECOM = "telecom"
    UNKNOWN_SPAM = "unknown spam"

    @property
    def display_name(self) -> str:
        return _SPAM_DISPLAY[self][0]

    @property
    def description(self) -> str:
        return _SPAM_DISPLAY[self][1]


_SPAM_DISPLAY = {
    SpamCategory.ROBOT: ("Robot/autodialer", "Automated dialing system"),
    SpamCategory.TELEMARKETING: ("Telemarketing/sales", "Sales call trying to sell you something"),
    SpamCategory.SURVEYS: ("Surveys", "Telephone survey"),
    SpamCategory.SCAM: ("Scam/fake prize", "Possible scam attempt"),
    SpamCategory.RELIGIOUS: ("Religious outreach", "Religious propaganda"),
    SpamCategory.POLITICAL: ("Political campaign", "Political propaganda"),
    SpamCategory.FINANCIAL: ("Financial services", "Offer of financial products"),
    SpamCategory.INSURANCE: ("Insurance", "Insurance offer"),
    SpamCategory.ENERGY: ("Energy companies", "Electricity or gas supplier"),
    SpamCategory.TELECOM: ("Telecom operators", "Phone or internet operator"),
    SpamCategory.UNKNOWN_SPAM: ("Unidentified spam", "Unwanted call"),
}


class LegitimacyReason(Enum):
    """Why a call was let through to the user."""
    SAID_USER_NAME = "said user name"
    SAID_FAMILY_NAME = "said family name"
    WORK_RELATED = "work related"
    EMERGENCY_KEYWORDS = "emergency keywords"
    OFFICIAL_ENTITY = "official entity"
    MEDICAL = "medical"
    SCHOOL = "school"
    DELIVERY = "delivery"
    HUMAN_CONVERSATION = "human conversation"

    @property
    def display_name(self) -> str:
        return {
            LegitimacyReason.SAID_USER_NAME: "Mentioned your name",
            LegitimacyReason.SAID_FAMILY_NAME: "Mentioned a family member",
            LegitimacyReason.WORK_RELATED: "Work related",
            LegitimacyReason.EMERGENCY_KEYWORDS: "Emergency keywords",
            LegitimacyReason.OFFICIAL_ENTITY: "Official entity",
            LegitimacyReason.MEDICAL: "Medical/hospital",
            LegitimacyReason.SCHOOL: "School",
            LegitimacyReason.DELIVERY: "Delivery/parcel",
            LegitimacyReason.HUMAN_CONVERSATION: "Normal human conversation",
        }[self]


class EmergencyType(Enum):
    """Emergency kinds, most severe first."""
    MEDICAL = "medical"
    DANGER = "danger"
    FAMILY = "family"
    WORK = "work"

    @property
    def description(self) -> str:
        return {
            EmergencyType.MEDICAL: "Medical emergency detected",
            EmergencyType.DANGER: "Dangerous situation",
            EmergencyType.FAMILY: "Call from a family member",
            EmergencyType.WORK: "Urgent work matter",
        }[self]


Reason = Union[LegitimacyReason, EmergencyType]


@dataclass(frozen=True)
class ClassificationEvidence:
    """A classifier's scored opinion about a transcript or audio chunk."""
    positive: bool
    confidence: float  # 0.0 to 1.0
    category: Optional[SpamCategory] = None
    reason: Optional[Reason] = None
    matched_terms: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "confidence", min(max(float(self.confidence), 0.0), 1.0))
        object.__setattr__(self, "matched_terms", tuple(self.matched_terms))

    @classmethod
    def none(cls) -> "ClassificationEvidence":
        """Evidence of nothing."""
        return cls(positive=False, confidence=0.0)

    @property
    def label(self) -> Optional[str]:
        """Category or reason value, whichever is set."""
        if self.category is not None:
            return self.category.value
        if self.reason is not None:
            return self.reason.value
        return None
