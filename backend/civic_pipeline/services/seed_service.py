"""Seed Service - Default departments and category routing rules"""
from typing import Dict, List

from ..domain.enums import IssueCategory, IssuePriority
from ..domain.models import AssignmentRule, Department
from ..repositories.document_store import DocumentStore
from ..repositories.rule_repo import RuleRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


DEFAULT_DEPARTMENTS: List[Department] = [
    Department(
        name="Public Works",
        description="Handles road maintenance, construction, and infrastructure repairs",
        categories=[IssueCategory.ROADS.value],
    ),
    Department(
        name="Water & Sanitation",
        description="Manages water supply, sewage, drainage, and waste collection",
        categories=[IssueCategory.WATER_LEAK.value, IssueCategory.GARBAGE.value],
    ),
    Department(
        name="Electrical",
        description="Manages street lighting, power supply, and electrical infrastructure",
        categories=[IssueCategory.STREETLIGHT.value],
    ),
    Department(
        name="Environment",
        description="Handles pollution, green cover, and environmental compliance",
        categories=[IssueCategory.POLLUTION.value],
    ),
    Department(
        name="General Administration",
        description="Handles miscellaneous civic issues and general inquiries",
        categories=[IssueCategory.OTHER.value],
    ),
]

DEFAULT_RULES: List[AssignmentRule] = [
    AssignmentRule(category=IssueCategory.ROADS.value, department="Public Works",
                   priority=IssuePriority.MEDIUM.value),
    AssignmentRule(category=IssueCategory.WATER_LEAK.value, department="Water & Sanitation",
                   priority=IssuePriority.HIGH.value),
    AssignmentRule(category=IssueCategory.GARBAGE.value, department="Water & Sanitation",
                   priority=IssuePriority.MEDIUM.value),
    AssignmentRule(category=IssueCategory.STREETLIGHT.value, department="Electrical",
                   priority=IssuePriority.MEDIUM.value),
    AssignmentRule(category=IssueCategory.POLLUTION.value, department="Environment",
                   priority=IssuePriority.HIGH.value),
    AssignmentRule(category=IssueCategory.OTHER.value, department="General Administration",
                   priority=IssuePriority.LOW.value),
]


class SeedService:
    """Create the default configuration rows that do not exist yet"""

    def __init__(self, store: DocumentStore):
        self.rule_repo = RuleRepository(store)

    async def seed_default_departments(self) -> int:
        existing = set(await self.rule_repo.list_department_names())

        created = 0
        for department in DEFAULT_DEPARTMENTS:
            if department.name in existing:
                continue
            await self.rule_repo.create_department(department)
            created += 1

        logger.info(f"Seeded {created} default departments")
        return created

    async def seed_default_rules(self) -> int:
        existing = set(await self.rule_repo.list_rule_categories())

        created = 0
        for rule in DEFAULT_RULES:
            if rule.category in existing:
                continue
            await self.rule_repo.create_assignment_rule(rule)
            created += 1

        logger.info(f"Seeded {created} default assignment rules")
        return created

    async def seed_defaults(self) -> Dict[str, int]:
        return {
            "departments": await self.seed_default_departments(),
            "rules": await self.seed_default_rules(),
        }
