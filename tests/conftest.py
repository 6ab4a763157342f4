"""
phaseorder test configuration and fixtures

Provides a small standard plan (Kickoff / Planning / Close), its template,
and stores and services wired around it.
"""

import pytest
from typing import List

from phaseorder.bootstrap.config import EngineConfig
from phaseorder.core.enums import EditMode
from phaseorder.core.records import PhaseRecord, TemplateEntry
from phaseorder.core.rules import PositionRule
from phaseorder.providers.memory import InMemoryPhaseStore, StaticTemplateProvider
from phaseorder.session.service import PhaseOrderService

PROJECT_ID = "project-1"


def standard(phase_id: str, name: str, rule: PositionRule) -> PhaseRecord:
    return PhaseRecord(id=phase_id, name=name, is_standard=True, position_rule=rule)


def custom(phase_id: str, name: str, rule: PositionRule = None) -> PhaseRecord:
    return PhaseRecord(id=phase_id, name=name, position_rule=rule)


def names(phases) -> List[str]:
    return [p.name for p in phases]


@pytest.fixture
def template() -> List[TemplateEntry]:
    """Kickoff first, Planning second, Close last."""
    return [
        TemplateEntry("Kickoff", PositionRule.first()),
        TemplateEntry("Planning", PositionRule.nth(2)),
        TemplateEntry("Close", PositionRule.last()),
    ]


@pytest.fixture
def standard_phases() -> List[PhaseRecord]:
    return [
        standard("kickoff", "Kickoff", PositionRule.first()),
        standard("planning", "Planning", PositionRule.nth(2)),
        standard("close", "Close", PositionRule.last()),
    ]


@pytest.fixture
def mixed_phases(standard_phases) -> List[PhaseRecord]:
    """Standard plan with two custom phases in slots 3 and 4."""
    kickoff, planning, close = standard_phases
    return [
        kickoff,
        planning,
        custom("design", "Design", PositionRule.nth(3)),
        custom("build", "Build", PositionRule.nth(4)),
        close,
    ]


@pytest.fixture
def store(mixed_phases) -> InMemoryPhaseStore:
    return InMemoryPhaseStore({PROJECT_ID: mixed_phases})


@pytest.fixture
def template_provider(template) -> StaticTemplateProvider:
    return StaticTemplateProvider(template)


@pytest.fixture
def service(store, template_provider) -> PhaseOrderService:
    """Project-edit service, already refreshed."""
    svc = PhaseOrderService(
        PROJECT_ID,
        store,
        template_provider,
        mode=EditMode.PROJECT_EDIT,
        config=EngineConfig(),
    )
    svc.refresh()
    return svc
