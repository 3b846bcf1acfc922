import enum


class UserRole(str, enum.Enum):
    DESIGNER = "designer"
    PRODUCTION = "production"
    FINANCE = "finance"
    PROJECT_MANAGER = "project_manager"
    ADMIN = "admin"


class TaskType(str, enum.Enum):
    SITE_SURVEY = "site-survey"
    DESIGN = "design"
    MATERIALS = "materials"
    BUDGET = "budget"
    QUOTE = "quote"
    PROCUREMENT = "procurement"
    PRODUCTION = "production"
    LOGISTICS = "logistics"
    HANDOVER = "handover"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Department(str, enum.Enum):
    DESIGN = "design"
    PRODUCTION = "production"
    FINANCE = "finance"


class ElementCategory(str, enum.Enum):
    PRODUCTION = "production"
    HIRE = "hire"
    OUTSOURCED = "outsourced"


class BudgetStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdditionStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class BudgetType(str, enum.Enum):
    MAIN = "main"
    SUPPLEMENTARY = "supplementary"


class AdditionSourceType(str, enum.Enum):
    MANUAL = "manual"
    MATERIALS_ADDITIONAL = "materials_additional"


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class BudgetSyncStatus(str, enum.Enum):
    NO_BUDGET = "no_budget"
    OUTDATED = "outdated"
    UP_TO_DATE = "up_to_date"
