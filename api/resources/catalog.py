"""
Resource types served by the gateway and the rules that govern each one.

Three families share the same machinery:
- healthcare: appointments and what hangs off them, patient records,
  dashboard preferences
- recruiting: job postings, applications, interviews, coding tests
- story authoring: stories, their pages and generated narration
"""

from __future__ import annotations

from access.policy import (
    ALL_ACTIONS,
    READ_ONLY,
    READ_UPDATE,
    Action,
    Denial,
    ParentLink,
    Participation,
    PolicyCatalog,
    Reference,
    ResourcePolicy,
)
from auth.actors import Role

CLINIC_ADMINS = frozenset({Role.SYSTEM_ADMIN, Role.ORGANIZATION_ADMIN})

# healthcare

APPOINTMENTS = ResourcePolicy(
    resource_type="appointments",
    table="healthcare_platform_appointments",
    label="Appointment",
    permissions={
        Role.PATIENT: READ_ONLY,
        Role.MEDICAL_DOCTOR: ALL_ACTIONS,
    },
    owner_fields={
        Role.PATIENT: "patient_id",
        Role.MEDICAL_DOCTOR: "provider_id",
    },
    admin_roles=CLINIC_ADMINS,
    writable_fields=frozenset({"title", "description", "room_id", "start_time", "end_time", "status"}),
    blocked_states={
        "completed": "Cannot modify a completed appointment.",
        "cancelled": "Cannot modify a cancelled appointment.",
    },
    filter_fields=frozenset({"status", "patient_id", "provider_id", "room_id"}),
    range_fields=frozenset({"created_at", "start_time", "end_time"}),
    sort_fields=frozenset({"created_at", "updated_at", "start_time", "status"}),
)

APPOINTMENT_WAITLISTS = ResourcePolicy(
    resource_type="appointment_waitlists",
    table="healthcare_platform_appointment_waitlists",
    label="Waitlist entry",
    permissions={
        Role.PATIENT: frozenset({Action.CREATE, Action.READ, Action.DELETE}),
        Role.MEDICAL_DOCTOR: ALL_ACTIONS,
    },
    owner_fields={Role.PATIENT: "patient_id"},
    parent=ParentLink("appointment_id", "appointments"),
    admin_roles=CLINIC_ADMINS,
    self_attach_roles=frozenset({Role.PATIENT}),
    writable_fields=frozenset({"status", "priority", "notes"}),
    # Waitlist rows carry no retention column; leaving the list removes the row.
    retention_field=None,
    blocked_states={"promoted": "Waitlist entry was already promoted to an appointment."},
    unique_together=(("appointment_id", "patient_id"),),
    filter_fields=frozenset({"status", "patient_id"}),
    sort_fields=frozenset({"created_at", "updated_at", "priority"}),
)

APPOINTMENT_REMINDERS = ResourcePolicy(
    resource_type="appointment_reminders",
    table="healthcare_platform_appointment_reminders",
    label="Appointment reminder",
    permissions={
        Role.PATIENT: READ_ONLY,
        Role.MEDICAL_DOCTOR: ALL_ACTIONS,
    },
    owner_fields={Role.PATIENT: "recipient_id"},
    parent=ParentLink("appointment_id", "appointments"),
    admin_roles=CLINIC_ADMINS,
    writable_fields=frozenset({"channel", "remind_at", "status", "message"}),
    blocked_states={"delivered": "Reminder was already delivered."},
    unique_together=(("appointment_id", "recipient_id", "remind_at"),),
    filter_fields=frozenset({"status", "channel", "recipient_id"}),
    range_fields=frozenset({"created_at", "remind_at"}),
    sort_fields=frozenset({"created_at", "updated_at", "remind_at"}),
)

PATIENT_RECORDS = ResourcePolicy(
    resource_type="patient_records",
    table="healthcare_platform_patient_records",
    label="Patient record",
    permissions={
        Role.PATIENT: READ_ONLY,
        Role.MEDICAL_DOCTOR: READ_UPDATE,
    },
    owner_fields={Role.PATIENT: "patient_id"},
    participation=Participation(
        table="healthcare_platform_record_care_team",
        scope_field="patient_record_id",
        actor_field="medical_doctor_id",
        roles=frozenset({Role.MEDICAL_DOCTOR}),
    ),
    admin_roles=CLINIC_ADMINS,
    writable_fields=frozenset({"summary", "diagnosis", "allergies", "medications", "status"}),
    blocked_states={"compliance_locked": "Record is under compliance lock."},
    filter_fields=frozenset({"status", "patient_id"}),
    audit_reads=True,
)

DASHBOARD_PREFERENCES = ResourcePolicy(
    resource_type="dashboard_preferences",
    table="healthcare_platform_dashboard_preferences",
    label="Dashboard preference",
    permissions={
        Role.PATIENT: ALL_ACTIONS,
        Role.MEDICAL_DOCTOR: ALL_ACTIONS,
        Role.ORGANIZATION_ADMIN: ALL_ACTIONS,
    },
    owner_fields={
        Role.PATIENT: "user_id",
        Role.MEDICAL_DOCTOR: "user_id",
        Role.ORGANIZATION_ADMIN: "user_id",
    },
    denial=Denial.REVEAL,
    forbidden_message="You can only modify your own dashboard preferences.",
    writable_fields=frozenset({"dashboard_id", "layout", "widgets", "theme"}),
    status_field=None,
    unique_together=(("dashboard_id", "user_id"),),
    filter_fields=frozenset({"dashboard_id"}),
)

# recruiting

JOB_POSTING_STATES = ResourcePolicy(
    resource_type="job_posting_states",
    table="ats_recruitment_job_posting_states",
    label="Job posting state",
    permissions={Role.APPLICANT: READ_ONLY},
    # Lookup table maintained by recruiters.
    admin_roles=frozenset({Role.SYSTEM_ADMIN, Role.RECRUITER}),
    shared_read_roles=frozenset({Role.APPLICANT}),
    writable_fields=frozenset({"state_code", "label", "description", "is_active", "sort_order"}),
    status_field=None,
    unique_together=(("state_code",),),
    referenced_by=(Reference("ats_recruitment_job_postings", "job_posting_state_id", "job postings"),),
    filter_fields=frozenset({"state_code", "is_active"}),
    sort_fields=frozenset({"created_at", "updated_at", "sort_order", "state_code"}),
    default_sort="sort_order",
)

JOB_POSTINGS = ResourcePolicy(
    resource_type="job_postings",
    table="ats_recruitment_job_postings",
    label="Job posting",
    permissions={Role.RECRUITER: ALL_ACTIONS},
    owner_fields={Role.RECRUITER: "hr_recruiter_id"},
    writable_fields=frozenset(
        {"title", "description", "location", "job_posting_state_id", "salary_range_min", "salary_range_max", "is_visible"}
    ),
    status_field=None,
    referenced_by=(Reference("ats_recruitment_applications", "job_posting_id", "applications"),),
    filter_fields=frozenset({"job_posting_state_id", "is_visible", "location"}),
    sort_fields=frozenset({"created_at", "updated_at", "title"}),
)

APPLICATIONS = ResourcePolicy(
    resource_type="applications",
    table="ats_recruitment_applications",
    label="Application",
    permissions={
        Role.APPLICANT: frozenset({Action.CREATE, Action.READ, Action.UPDATE}),
        Role.RECRUITER: READ_UPDATE,
    },
    owner_fields={Role.APPLICANT: "applicant_id"},
    parent=ParentLink("job_posting_id", "job_postings"),
    self_attach_roles=frozenset({Role.APPLICANT}),
    writable_fields=frozenset({"cover_letter", "resume_id", "status"}),
    blocked_states={
        "withdrawn": "Cannot modify a withdrawn application.",
        "hired": "Cannot modify a closed application.",
    },
    unique_together=(("job_posting_id", "applicant_id"),),
    filter_fields=frozenset({"status", "applicant_id"}),
    sort_fields=frozenset({"created_at", "updated_at", "status"}),
)

INTERVIEWS = ResourcePolicy(
    resource_type="interviews",
    table="ats_recruitment_interviews",
    label="Interview",
    permissions={
        Role.RECRUITER: ALL_ACTIONS,
        Role.TECH_REVIEWER: READ_ONLY,
        Role.APPLICANT: READ_ONLY,
    },
    parent=ParentLink("application_id", "applications"),
    participation=Participation(
        table="ats_recruitment_interview_participants",
        scope_field="interview_id",
        actor_field="participant_id",
        roles=frozenset({Role.RECRUITER, Role.TECH_REVIEWER, Role.APPLICANT}),
        retention_field=None,
    ),
    writable_fields=frozenset({"title", "stage", "status", "scheduled_at", "notes"}),
    blocked_states={
        "completed": "Cannot modify a completed interview.",
        "cancelled": "Cannot modify a cancelled interview.",
    },
    filter_fields=frozenset({"status", "stage"}),
    range_fields=frozenset({"created_at", "scheduled_at"}),
    sort_fields=frozenset({"created_at", "updated_at", "scheduled_at"}),
)

INTERVIEW_PARTICIPANTS = ResourcePolicy(
    resource_type="interview_participants",
    table="ats_recruitment_interview_participants",
    label="Interview participant",
    permissions={
        Role.RECRUITER: ALL_ACTIONS,
        Role.TECH_REVIEWER: READ_ONLY,
        Role.APPLICANT: READ_ONLY,
    },
    owner_fields={
        Role.TECH_REVIEWER: "participant_id",
        Role.APPLICANT: "participant_id",
    },
    parent=ParentLink("interview_id", "interviews"),
    writable_fields=frozenset({"participant_role", "confirmed_at"}),
    retention_field=None,
    status_field=None,
    unique_together=(("interview_id", "participant_id"),),
    filter_fields=frozenset({"participant_role"}),
    range_fields=frozenset({"created_at", "confirmed_at"}),
)

CODING_TESTS = ResourcePolicy(
    resource_type="coding_tests",
    table="ats_recruitment_coding_tests",
    label="Coding test",
    permissions={
        Role.RECRUITER: ALL_ACTIONS,
        Role.APPLICANT: READ_ONLY,
    },
    owner_fields={
        Role.RECRUITER: "hr_recruiter_id",
        Role.APPLICANT: "applicant_id",
    },
    parent=ParentLink("application_id", "applications"),
    # Owning the posting does not extend to another recruiter's tests.
    owner_only_roles=frozenset({Role.RECRUITER}),
    denial=Denial.REVEAL,
    forbidden_message="You can only access your own coding tests.",
    writable_fields=frozenset({"test_provider", "test_url", "status", "scheduled_at", "expiration_at", "closed_at"}),
    lock_fields={"closed_at": "Cannot update a closed coding test."},
    expires_field="expiration_at",
    filter_fields=frozenset({"status", "test_provider"}),
    range_fields=frozenset({"created_at", "scheduled_at", "expiration_at"}),
    sort_fields=frozenset({"created_at", "updated_at", "scheduled_at", "expiration_at"}),
)

# story authoring

STORIES = ResourcePolicy(
    resource_type="stories",
    table="storyfield_ai_stories",
    label="Story",
    permissions={Role.MEMBER: ALL_ACTIONS},
    owner_fields={Role.MEMBER: "member_id"},
    writable_fields=frozenset({"title", "synopsis", "language", "status"}),
    blocked_states={"archived": "Archived stories are read-only."},
    filter_fields=frozenset({"status", "language"}),
    sort_fields=frozenset({"created_at", "updated_at", "title"}),
)

STORY_PAGES = ResourcePolicy(
    resource_type="story_pages",
    table="storyfield_ai_story_pages",
    label="Story page",
    permissions={Role.MEMBER: ALL_ACTIONS},
    parent=ParentLink("story_id", "stories"),
    writable_fields=frozenset({"page_number", "text", "image_url"}),
    status_field=None,
    unique_together=(("story_id", "page_number"),),
    sort_fields=frozenset({"created_at", "updated_at", "page_number"}),
    default_sort="page_number",
)

TTS_RESULTS = ResourcePolicy(
    resource_type="tts_results",
    table="storyfield_ai_tts_results",
    label="TTS result",
    permissions={Role.MEMBER: ALL_ACTIONS},
    parent=ParentLink("story_page_id", "story_pages"),
    writable_fields=frozenset({"voice", "audio_url", "duration_ms", "status"}),
    blocked_states={"processing": "TTS result is still being generated."},
    filter_fields=frozenset({"status", "voice"}),
)


CATALOG = PolicyCatalog(
    [
        APPOINTMENTS,
        APPOINTMENT_WAITLISTS,
        APPOINTMENT_REMINDERS,
        PATIENT_RECORDS,
        DASHBOARD_PREFERENCES,
        JOB_POSTING_STATES,
        JOB_POSTINGS,
        APPLICATIONS,
        INTERVIEWS,
        INTERVIEW_PARTICIPANTS,
        CODING_TESTS,
        STORIES,
        STORY_PAGES,
        TTS_RESULTS,
    ]
)
