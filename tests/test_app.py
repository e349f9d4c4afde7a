import json

import pytest
from structlog.testing import capture_logs

from examhub.core.errors import ExamhubError, NotFound
from examhub.main import create_app


@pytest.mark.asyncio
async def test_domain_errors_render_detail_and_log_a_warning():
    app = create_app()
    handler = app.exception_handlers[ExamhubError]

    with capture_logs() as logs:
        response = await handler(None, NotFound("Exam not found", entity="exam"))

    assert response.status_code == 404
    assert json.loads(response.body)["detail"]["code"] == "not_found"
    assert [(entry["event"], entry["log_level"]) for entry in logs] == [("domain_error", "warning")]
