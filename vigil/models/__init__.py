"""
Database models package.

Import all models here so SQLAlchemy can resolve relationships.
Other modules can import from here: `from vigil.models import Project, Rule`
"""

from vigil.models.project import Project
from vigil.models.rule import Rule, RuleLevel

# Export all models
__all__ = [
    "Project",
    "Rule",
    "RuleLevel",
]
