from .query import IssuePage, IssueQuery, IssueQueryEngine
from .serializers import issue_to_dict
from .service import IssueService

__all__ = [
    "IssuePage",
    "IssueQuery",
    "IssueQueryEngine",
    "IssueService",
    "issue_to_dict",
]
