import json

import pytest
from bias_detector import cli
from bias_detector.domain_models.analysis import Candidate, ModelResponse
from bias_detector.llm import client as llm_client
from typer.testing import CliRunner

runner = CliRunner()


class CannedInvoker:
    responses: list[ModelResponse] = []

    def __init__(self, settings, client=None):
        self.settings = settings

    async def invoke(self, url, reformulate_from=None):
        return self.responses.pop(0)


@pytest.fixture
def canned(monkeypatch, test_config):
    monkeypatch.setattr(llm_client, "GeminiInvoker", CannedInvoker)
    return CannedInvoker


def test_analyze_prints_sections(canned):
    canned.responses = [
        ModelResponse(
            candidates=(
                Candidate(
                    parts=(
                        '{"biasScore": "3", "biasMeaning": "Moderate Bias", '
                        '"justification": {"studyOutcomes": {"summary": "Men only", '
                        '"evidence": [{"quote": "male participants", "section": "Methods"}]}}}',
                    )
                ),
            )
        )
    ]

    result = runner.invoke(cli.app, ["analyze", "https://a.test/article"])

    assert result.exit_code == 0
    assert "Bias score: 3  Moderate Bias" in result.output
    assert '"male participants" [Methods]' in result.output


def test_analyze_json_output(canned):
    canned.responses = [ModelResponse(candidates=(Candidate(parts=('{"biasScore": "1"}',)),))]

    result = runner.invoke(cli.app, ["analyze", "https://a.test/article", "--json"])

    assert result.exit_code == 0
    payload, _ = json.JSONDecoder().raw_decode(result.output[result.output.index("{") :])
    assert payload["biasScore"] == "1"
    assert "debug" in payload


def test_analyze_failure_exits_nonzero(canned):
    canned.responses = [ModelResponse(candidates=())]

    result = runner.invoke(cli.app, ["analyze", "https://a.test/article"])

    assert result.exit_code == 1
    assert "No candidates returned from model." in result.output
