from __future__ import annotations

import pytest

from tests.helpers import make_network, make_schedule
from transit_editor.editing.editor import ScheduleEditor
from transit_editor.editing.rewriter import RouteRewriter
from transit_editor.graph.network import Network
from transit_editor.graph.routing import infer_routers
from transit_editor.models.schedule import TransitRoute, TransitSchedule


@pytest.fixture
def network() -> Network:
    return make_network()


@pytest.fixture
def schedule() -> TransitSchedule:
    return make_schedule()


@pytest.fixture
def editor(schedule: TransitSchedule, network: Network) -> ScheduleEditor:
    return ScheduleEditor(schedule, network, infer_routers(schedule, network))


@pytest.fixture
def rewriter(editor: ScheduleEditor) -> RouteRewriter:
    return editor.rewriter


@pytest.fixture
def r1(schedule: TransitSchedule) -> TransitRoute:
    return schedule.lines["L1"].routes["r1"]


@pytest.fixture
def r2(schedule: TransitSchedule) -> TransitRoute:
    return schedule.lines["L2"].routes["r2"]


@pytest.fixture
def r3(schedule: TransitSchedule) -> TransitRoute:
    return schedule.lines["L3"].routes["r3"]
