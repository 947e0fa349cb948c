from typing import Any, List, Optional, Sequence


class APIError(Exception):
    def __init__(self, code: str, message: str, http_status: int = 400, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details


class BadRequestError(APIError):
    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(code, message, 400, details)


class NotFoundError(APIError):
    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(code, message, 404, details)


class ConflictError(APIError):
    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(code, message, 409, details)


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Unauthorized", code: str = "UNAUTHORIZED", details: Any = None):
        super().__init__(code, message, 401, details)


class ForbiddenError(APIError):
    def __init__(self, message: str = "Access denied", code: str = "FORBIDDEN", details: Any = None):
        super().__init__(code, message, 403, details)


class RoleRequiredError(ForbiddenError):
    def __init__(self, roles: Sequence[str]):
        super().__init__(f"Access denied. Required roles: {', '.join(roles)}")


# Domain-specific
class DoctorNotFoundError(NotFoundError):
    def __init__(self, doctor_id: str):
        super().__init__("DOCTOR_NOT_FOUND", "Doctor not found", {"doctorId": doctor_id})


class PatientNotFoundError(NotFoundError):
    def __init__(self, patient_id: str):
        super().__init__("PATIENT_NOT_FOUND", "Patient not found", {"patientId": patient_id})


class UserNotFoundError(NotFoundError):
    def __init__(self, uid: str):
        super().__init__("USER_NOT_FOUND", "User not found", {"uid": uid})


class AppointmentNotFoundError(NotFoundError):
    def __init__(self, appointment_id: str):
        super().__init__(
            "APPOINTMENT_NOT_FOUND", "Appointment not found", {"appointmentId": appointment_id}
        )


class CompanyNotFoundError(NotFoundError):
    def __init__(self, company_id: str):
        super().__init__("COMPANY_NOT_FOUND", "Company not found", {"companyId": company_id})


class TimeConflictError(ConflictError):
    def __init__(self, conflicts: Optional[List[str]] = None):
        super().__init__(
            "TIME_CONFLICT",
            "The doctor already has an appointment in this time range",
            {"conflictingAppointmentIds": conflicts or []},
        )


class PrescriptionNotFoundError(NotFoundError):
    def __init__(self, prescription_id: str):
        super().__init__(
            "PRESCRIPTION_NOT_FOUND", "Prescription not found", {"prescriptionId": prescription_id}
        )


class MedicalRecordNotFoundError(NotFoundError):
    def __init__(self, record_id: str):
        super().__init__("MEDICAL_RECORD_NOT_FOUND", "Medical record not found", {"recordId": record_id})


class JobListingNotFoundError(NotFoundError):
    def __init__(self, job_id: str):
        super().__init__("JOB_LISTING_NOT_FOUND", "Job listing not found", {"jobListingId": job_id})


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str):
        super().__init__(
            "CONVERSATION_NOT_FOUND", "Conversation not found", {"conversationId": conversation_id}
        )


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: str):
        super().__init__(
            "NOTIFICATION_NOT_FOUND", "Notification not found", {"notificationId": notification_id}
        )
