"""
Actor identity types.

`Role` is a closed set: every role has exactly one account table, and every
role-keyed policy mapping is checked against it (see `access/policy.py`).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID


class Role(str, enum.Enum):
    PATIENT = "patient"
    MEDICAL_DOCTOR = "medicalDoctor"
    ORGANIZATION_ADMIN = "organizationAdmin"
    RECRUITER = "recruiter"
    APPLICANT = "applicant"
    TECH_REVIEWER = "techReviewer"
    MEMBER = "member"
    SYSTEM_ADMIN = "systemAdmin"

    @classmethod
    def parse(cls, raw: str) -> Role:
        value = (raw or "").strip()
        value = _ROLE_ALIASES.get(value, value)
        return cls(value)


# Token role spellings issued by older login flows.
_ROLE_ALIASES = {
    "hrRecruiter": "recruiter",
    "systemadmin": "systemAdmin",
    "organizationadmin": "organizationAdmin",
    "medicaldoctor": "medicalDoctor",
    "techreviewer": "techReviewer",
}


@dataclass(frozen=True)
class Actor:
    id: UUID
    role: Role


@dataclass(frozen=True)
class AccountSource:
    """Where a role's accounts live and which liveness columns apply."""

    role: Role
    table: str
    retention_field: str = "deleted_at"
    active_field: str | None = None


ACCOUNT_SOURCES: dict[Role, AccountSource] = {
    Role.PATIENT: AccountSource(Role.PATIENT, "healthcare_platform_patients"),
    Role.MEDICAL_DOCTOR: AccountSource(Role.MEDICAL_DOCTOR, "healthcare_platform_medicaldoctors"),
    Role.ORGANIZATION_ADMIN: AccountSource(Role.ORGANIZATION_ADMIN, "healthcare_platform_organizationadmins"),
    Role.RECRUITER: AccountSource(Role.RECRUITER, "ats_recruitment_hrrecruiters", active_field="is_active"),
    Role.APPLICANT: AccountSource(Role.APPLICANT, "ats_recruitment_applicants", active_field="is_active"),
    Role.TECH_REVIEWER: AccountSource(Role.TECH_REVIEWER, "ats_recruitment_techreviewers", active_field="is_active"),
    Role.MEMBER: AccountSource(Role.MEMBER, "storyfield_ai_authenticatedusers"),
    Role.SYSTEM_ADMIN: AccountSource(Role.SYSTEM_ADMIN, "system_admins", active_field="is_active"),
}

if set(ACCOUNT_SOURCES) != set(Role):
    raise RuntimeError("Every role needs an account source.")
