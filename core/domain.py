from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    OWNER = "principle"
    EMPLOYEE = "employee"
    CLIENT = "client"
    PROCUREMENT = "procurement"
    PLATFORM_ADMIN = "admin"


class AccountType(str, Enum):
    OFFICE = "office"
    INDIVIDUAL = "individual"
    CUSTOM = "custom"
    ORGANIZATION = "organization"


class ResourceKind(str, Enum):
    """Logical collections inside a tenant namespace. Values are the physical collection names."""

    USERS = "users"
    PROJECTS = "projects"
    DIVISIONS = "divisions"
    ITEMS = "items"
    ASSIGNMENTS = "projectAssignments"
    EMPLOYEES = "employees"
    CLIENTS = "clients"
    TASKS = "tasks"
    ATTENDANCE = "attendance"
    SALARIES = "salaries"
    SALARY_ADVANCES = "salaryAdvances"
    SALARY_PAYMENTS = "salaryPayments"
    PROCUREMENT = "procurementItems"
    COMMENTS = "comments"
    FINANCIALS = "projectFinancials"
    DOCUMENTS = "employeeDocuments"


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ItemStatus(str, Enum):
    NOT_STARTED = "Not Started"
    PURCHASED = "Purchased"
    IN_INSTALLATION = "In Installation Phase"
    INSTALLED = "Installed"
    DELIVERED = "Delivered"


# progress share contributed by an item in each status
ITEM_STATUS_PROGRESS = {
    ItemStatus.NOT_STARTED: 0,
    ItemStatus.PURCHASED: 25,
    ItemStatus.IN_INSTALLATION: 50,
    ItemStatus.INSTALLED: 75,
    ItemStatus.DELIVERED: 100,
}


class Priority(str, Enum):
    HIGH = "High"
    MID = "Mid"
    LOW = "Low"


class TaskStatus(str, Enum):
    DONE = "Done"
    UNDONE = "Undone"
    IN_PROGRESS = "In Progress"


class TaskType(str, Enum):
    DESIGN_CAD = "Design CAD"
    IFCS = "IFCs"
    RENDERING_3D = "3D Rendering"
    PROCUREMENT = "Procurement"
    SITE_VISITS = "Site Visits"


class Unit(str, Enum):
    NUMBER = "number"
    RFT = "rft"
    SFT = "sft"
    METER = "meter"
    METER_SQUARE = "meter square"
    GALLONS = "gallons"
    DRUMS = "drums"
    COILS = "coils"
    LENGTH = "length"
