# models/backfill.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.enums import BackfillStatus, OnboardingStep


class BackfillState(BaseModel):
    """Состояние фоновой синхронизации профиля (private metadata)"""

    model_config = ConfigDict(populate_by_name=True)

    status: BackfillStatus = BackfillStatus.IDLE
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    error: Optional[str] = None
    attempts: int = 0


class PrivateMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    rize_user_id: Optional[str] = Field(default=None, alias="rizeUserId")
    rize_backfill: BackfillState = Field(default_factory=BackfillState, alias="rizeBackfill")


# ===== ПРОФИЛЬ RIZE =====

class RizeEducation(BaseModel):
    id: str
    profile_id: str = Field(alias="profileId")
    school: Optional[str] = None
    degree: Optional[str] = None
    field_of_study: Optional[str] = Field(default=None, alias="fieldOfStudy")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    grade: Optional[str] = None
    description: Optional[str] = None


class RizeExperience(BaseModel):
    id: str
    profile_id: str = Field(alias="profileId")
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[str] = Field(default=None, alias="employmentType")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    currently_working: Optional[bool] = Field(default=None, alias="currentlyWorking")
    website: Optional[str] = None
    description: Optional[str] = None


class RizeProfile(BaseModel):
    id: str
    user_id: str = Field(alias="userId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    username: Optional[str] = None
    pronouns: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    education: List[RizeEducation] = []
    experience: List[RizeExperience] = []


class RizeUser(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    letraz_id: Optional[str] = Field(default=None, alias="letrazId")
    profiles: List[RizeProfile] = []

    def to_onboarding_data(self) -> Dict[str, Dict[str, Any]]:
        """Разложить профиль по полезным нагрузкам шагов онбординга"""
        profile = self.profiles[0] if self.profiles else None
        name = (profile.display_name if profile and profile.display_name else self.name) or ""
        first_name, _, last_name = name.strip().partition(" ")

        personal = {
            "first_name": first_name or None,
            "last_name": last_name or None,
            "email": self.email,
            "bio": profile.bio if profile else None,
            "location": profile.location if profile else None,
            "website": profile.website if profile else None,
        }
        data: Dict[str, Dict[str, Any]] = {
            OnboardingStep.PERSONAL_DETAILS.value: {k: v for k, v in personal.items() if v},
        }
        if profile and profile.education:
            data[OnboardingStep.EDUCATION.value] = {
                "entries": [
                    {
                        "institution": edu.school,
                        "degree": edu.degree,
                        "field_of_study": edu.field_of_study,
                        "start_date": edu.start_date,
                        "end_date": edu.end_date,
                        "description": edu.description,
                    }
                    for edu in profile.education
                ]
            }
        if profile and profile.experience:
            data[OnboardingStep.EXPERIENCE.value] = {
                "entries": [
                    {
                        "company": exp.company,
                        "job_title": exp.title,
                        "employment_type": exp.employment_type,
                        "location": exp.location,
                        "start_date": exp.start_date,
                        "end_date": None if exp.currently_working else exp.end_date,
                        "current": bool(exp.currently_working),
                        "description": exp.description,
                    }
                    for exp in profile.experience
                ]
            }
        return data
