from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, Column, Date, Index, Integer, Numeric, String, Text, UniqueConstraint, text

from db import Base


CREDIT = Numeric(10, 2, asdecimal=True)

ACTIVE_CONTRACT_WHERE = "status = 'Active'"
PENDING_CHANGE_WHERE = "status = 'pending'"


class Role(Base):
    __tablename__ = "roles"

    roleCode = Column(String, primary_key=True)
    roleName = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="ACTIVE")
    createdAt = Column(Text, nullable=False, default="")
    createdBy = Column(String, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("permType", "permKey", name="uq_permissions_type_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    permType = Column(String, nullable=False)
    permKey = Column(String, nullable=False)
    rolesCsv = Column(Text, nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=True)
    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class Session(Base):
    __tablename__ = "sessions"

    sessionId = Column(String, primary_key=True)
    tokenHash = Column(String, nullable=False, unique=True, index=True)
    tokenPrefix = Column(String, nullable=False, default="", index=True)
    userId = Column(String, nullable=False, default="", index=True)
    email = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default="", index=True)
    authVersion = Column(Integer, nullable=False, default=0)
    issuedAt = Column(Text, nullable=False, default="")
    expiresAt = Column(Text, nullable=False, default="")
    lastSeenAt = Column(Text, nullable=False, default="")
    revokedAt = Column(Text, nullable=False, default="")
    revokedBy = Column(String, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_log"

    logId = Column(String, primary_key=True)
    entityType = Column(String, nullable=False, default="", index=True)
    entityId = Column(String, nullable=False, default="", index=True)
    action = Column(String, nullable=False, default="", index=True)
    fromState = Column(String, nullable=False, default="")
    toState = Column(String, nullable=False, default="")
    stageTag = Column(String, nullable=False, default="", index=True)
    remark = Column(Text, nullable=False, default="")
    actorUserId = Column(String, nullable=False, default="", index=True)
    actorRole = Column(String, nullable=False, default="", index=True)
    actorEmail = Column(Text, nullable=False, default="")
    at = Column(Text, nullable=False, default="", index=True)
    correlationId = Column(String, nullable=False, default="", index=True)
    beforeJson = Column(Text, nullable=False, default="")
    afterJson = Column(Text, nullable=False, default="")
    metaJson = Column(Text, nullable=False, default="")


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(String, nullable=False, unique=True, index=True)
    fullName = Column(Text, nullable=False, default="")
    email = Column(String, nullable=False, unique=True, index=True)
    # scrypt hash (werkzeug); never plaintext.
    password = Column(Text, nullable=False, default="")
    contactNumber = Column(String, nullable=False, default="")
    profileImage = Column(Text, nullable=False, default="")
    # Active / Inactive / Terminated / On Leave / Resigned / Retired
    status = Column(String, nullable=False, default="Active", index=True)
    # employee / hr / mis
    role = Column(String, nullable=False, default="employee", index=True)
    isSuspended = Column(Boolean, nullable=False, default=False, index=True)
    # Bump to invalidate every issued session.
    authVersion = Column(Integer, nullable=False, default=0)
    position = Column(Text, nullable=False, default="")
    department = Column(Text, nullable=False, default="", index=True)
    dateHired = Column(Date, nullable=True)

    # Personal data sheet
    surname = Column(Text, nullable=False, default="")
    firstName = Column(Text, nullable=False, default="")
    middleName = Column(Text, nullable=False, default="")
    dateOfBirth = Column(Date, nullable=True)
    age = Column(Integer, nullable=True)
    placeOfBirth = Column(Text, nullable=False, default="")
    sex = Column(String, nullable=False, default="")
    civilStatus = Column(String, nullable=False, default="")
    citizenship = Column(String, nullable=False, default="Filipino")
    religion = Column(String, nullable=False, default="")
    bloodType = Column(String, nullable=False, default="")
    gsisIdNo = Column(String, nullable=False, default="")
    pagibigIdNo = Column(String, nullable=False, default="")
    philhealthNo = Column(String, nullable=False, default="")
    sssNo = Column(String, nullable=False, default="")
    tinNo = Column(String, nullable=False, default="")
    residentialAddress = Column(Text, nullable=False, default="")
    residentialZip = Column(String, nullable=False, default="")
    permanentAddress = Column(Text, nullable=False, default="")
    permanentZip = Column(String, nullable=False, default="")
    contractNumber = Column(String, nullable=False, default="")
    emergencyContactName = Column(Text, nullable=False, default="")
    emergencyContactNumber = Column(String, nullable=False, default="")
    emergencyContactRelationship = Column(String, nullable=False, default="")
    emergencyContactAddress = Column(Text, nullable=False, default="")
    spouseName = Column(Text, nullable=False, default="")
    spouseOccupation = Column(Text, nullable=False, default="")
    spouseContactNumber = Column(String, nullable=False, default="")
    spouseAddress = Column(Text, nullable=False, default="")
    fatherName = Column(Text, nullable=False, default="")
    motherName = Column(Text, nullable=False, default="")

    # PDS sections stored as JSON arrays/objects.
    childrenJson = Column(Text, nullable=False, default="[]")
    educationJson = Column(Text, nullable=False, default="[]")
    eligibilityJson = Column(Text, nullable=False, default="[]")
    workExperienceJson = Column(Text, nullable=False, default="[]")
    communityInvolvementJson = Column(Text, nullable=False, default="[]")
    learningAndDevelopmentJson = Column(Text, nullable=False, default="[]")
    trainingsJson = Column(Text, nullable=False, default="[]")
    otherInformationJson = Column(Text, nullable=False, default="{}")
    legalResponsesJson = Column(Text, nullable=False, default="{}")
    referencesJson = Column(Text, nullable=False, default="[]")

    lastLoginAt = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    createdBy = Column(String, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        # At most one Active contract per employee.
        Index(
            "uq_contracts_one_active_per_employee",
            "employeeId",
            unique=True,
            sqlite_where=text(ACTIVE_CONTRACT_WHERE),
            postgresql_where=text(ACTIVE_CONTRACT_WHERE),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(Integer, nullable=False, index=True)
    # permanent / contractual / part-time / job-order
    contractType = Column(String, nullable=False, index=True)
    startDate = Column(Date, nullable=False)
    endDate = Column(Date, nullable=True, index=True)
    # Active / Expired / Terminated
    status = Column(String, nullable=False, default="Active", index=True)
    position = Column(Text, nullable=False, default="")
    department = Column(Text, nullable=False, default="", index=True)
    salary = Column(Numeric(10, 2, asdecimal=True), nullable=True)
    renewalCount = Column(Integer, nullable=False, default=0)
    previousContractId = Column(Integer, nullable=True, index=True)
    terminationReason = Column(Text, nullable=False, default="")
    workSchedule = Column(Text, nullable=False, default="")
    projectDetails = Column(Text, nullable=False, default="")
    # Signed contract scan, stored via file_storage.
    storageKey = Column(String, nullable=False, default="")
    fileName = Column(Text, nullable=False, default="")
    mimeType = Column(String, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    createdBy = Column(String, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class LeaveCredit(Base):
    __tablename__ = "leave_credits"
    __table_args__ = (UniqueConstraint("employeeId", "schoolYear", name="uq_leave_credits_employee_year"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(Integer, nullable=False, index=True)
    schoolYear = Column(String, nullable=False, index=True)
    employmentType = Column(String, nullable=False, default="permanent", index=True)
    totalCredits = Column(CREDIT, nullable=False, default=Decimal("0"))
    usedCredits = Column(CREDIT, nullable=False, default=Decimal("0"))
    carriedOverCredits = Column(CREDIT, nullable=False, default=Decimal("0"))
    monetizableCredits = Column(CREDIT, nullable=False, default=Decimal("0"))
    forfeitedCredits = Column(CREDIT, nullable=False, default=Decimal("0"))
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")

    @property
    def remainingCredits(self) -> Decimal:
        return (
            Decimal(self.totalCredits or 0)
            + Decimal(self.carriedOverCredits or 0)
            - Decimal(self.usedCredits or 0)
        )


class LeaveCreditUsage(Base):
    """One row per leave whose days were debited; leaveId is unique."""

    __tablename__ = "leave_credit_usage"
    __table_args__ = (UniqueConstraint("leaveId", name="uq_leave_credit_usage_leave"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    leaveId = Column(Integer, nullable=False)
    leaveCreditId = Column(Integer, nullable=False, index=True)
    employeeId = Column(Integer, nullable=False, index=True)
    schoolYear = Column(String, nullable=False, default="")
    days = Column(CREDIT, nullable=False, default=Decimal("0"))
    appliedAt = Column(Text, nullable=False, default="")


class Leave(Base):
    __tablename__ = "leaves"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(Integer, nullable=False, index=True)
    type = Column(String, nullable=False, default="")
    startDate = Column(Date, nullable=False, index=True)
    endDate = Column(Date, nullable=False, index=True)
    reason = Column(Text, nullable=False, default="")
    # Pending / Approved / Rejected
    status = Column(String, nullable=False, default="Pending", index=True)
    rejectionReason = Column(Text, nullable=False, default="")
    schoolYear = Column(String, nullable=True, index=True)
    daysCount = Column(CREDIT, nullable=True)
    reviewedBy = Column(Integer, nullable=True)
    reviewedAt = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="", index=True)
    updatedAt = Column(Text, nullable=False, default="")


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(Integer, nullable=False, index=True)
    type = Column(String, nullable=False, default="", index=True)
    storageKey = Column(String, nullable=False, default="")
    fileName = Column(Text, nullable=False, default="")
    mimeType = Column(String, nullable=False, default="")
    size = Column(Integer, nullable=False, default=0)
    # Pending / Approved / Rejected / Requested
    status = Column(String, nullable=False, default="Pending", index=True)
    rejectionReason = Column(Text, nullable=False, default="")
    uploadedAt = Column(Text, nullable=False, default="")
    isHRRequested = Column(Boolean, nullable=False, default=False)
    requestedBy = Column(Integer, nullable=True)
    requestReason = Column(Text, nullable=False, default="")
    requestedAt = Column(Text, nullable=False, default="")
    processedAt = Column(Text, nullable=False, default="")
    processedBy = Column(Integer, nullable=True)


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(Integer, nullable=False, index=True)
    certificateType = Column(String, nullable=False, default="")
    # Pending / Approved / Rejected
    status = Column(String, nullable=False, default="Pending", index=True)
    storageKey = Column(String, nullable=False, default="")
    fileName = Column(Text, nullable=False, default="")
    mimeType = Column(String, nullable=False, default="")
    remarks = Column(Text, nullable=False, default="")
    requestedAt = Column(Text, nullable=False, default="", index=True)
    processedAt = Column(Text, nullable=False, default="")
    processedBy = Column(Integer, nullable=True)


class ProfileChangeRequest(Base):
    __tablename__ = "profile_change_requests"
    __table_args__ = (
        # At most one pending request per employee.
        Index(
            "uq_profile_change_one_pending_per_employee",
            "employeeId",
            unique=True,
            sqlite_where=text(PENDING_CHANGE_WHERE),
            postgresql_where=text(PENDING_CHANGE_WHERE),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    employeeId = Column(Integer, nullable=False, index=True)
    currentValuesJson = Column(Text, nullable=False, default="{}")
    requestedChangesJson = Column(Text, nullable=False, default="{}")
    changedFieldsJson = Column(Text, nullable=False, default="[]")
    reason = Column(Text, nullable=False, default="")
    # pending / approved / rejected
    status = Column(String, nullable=False, default="pending", index=True)
    reviewedBy = Column(Integer, nullable=True)
    reviewedAt = Column(Text, nullable=False, default="")
    reviewNotes = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="", index=True)


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    code = Column(String, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    # Active / Archived
    status = Column(String, nullable=False, default="Active", index=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Designation(Base):
    __tablename__ = "designations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    departmentId = Column(Integer, nullable=True, index=True)
    description = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="Active", index=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    userId = Column(Integer, nullable=True, index=True)
    message = Column(Text, nullable=False, default="")
    time = Column(Text, nullable=False, default="", index=True)
    read = Column(Boolean, nullable=False, default=False)
    archived = Column(Boolean, nullable=False, default=False)


class HRRequest(Base):
    __tablename__ = "hr_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    requestedBy = Column(Integer, nullable=False, index=True)
    targetEmployeeId = Column(Integer, nullable=True)
    assignedTo = Column(Integer, nullable=True, index=True)
    reviewedBy = Column(Integer, nullable=True)
    type = Column(String, nullable=False, default="")
    detailsJson = Column(Text, nullable=False, default="{}")
    # open / assigned / approved / rejected / closed
    status = Column(String, nullable=False, default="open", index=True)
    reviewNotes = Column(Text, nullable=False, default="")
    reviewedAt = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="", index=True)
    updatedAt = Column(Text, nullable=False, default="")
