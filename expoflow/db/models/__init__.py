from expoflow.db.models.budget import BudgetDocument
from expoflow.db.models.budget_addition import BudgetAddition
from expoflow.db.models.enquiry import Enquiry, EnquiryTask
from expoflow.db.models.materials import ElementMaterial, MaterialsDocument, ProjectElement
from expoflow.db.models.quote import QuoteDocument
from expoflow.db.models.user import User
from expoflow.db.models.versions import BudgetVersion, MaterialsVersion

__all__ = [
    "BudgetAddition",
    "BudgetDocument",
    "BudgetVersion",
    "ElementMaterial",
    "Enquiry",
    "EnquiryTask",
    "MaterialsDocument",
    "MaterialsVersion",
    "ProjectElement",
    "QuoteDocument",
    "User",
]
