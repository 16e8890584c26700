import json

import pytest
from bias_detector.analysis.orchestrator import (
    MAX_INVOCATIONS,
    AnalysisOrchestrator,
    AnalysisState,
    parse_analysis,
)
from bias_detector.common.exceptions import (
    ModelOutputError,
    NoCandidatesError,
    ValidationError,
)
from bias_detector.domain_models.analysis import (
    Candidate,
    ModelResponse,
    ParseFailure,
    ParseSuccess,
)

URL = "https://pubmed.ncbi.nlm.nih.gov/12345678/"
GARBAGE_1 = "I cannot access this article right now."
GARBAGE_2 = "Still unable to produce the requested format."

VALID = {
    "biasScore": "3",
    "biasMeaning": "Moderate Bias",
    "justification": {
        "sampleRepresentation": {
            "summary": "Women are 30% of participants.",
            "evidence": [{"quote": "n=70 men, n=30 women", "section": "Methods"}],
        },
        "inclusionInAnalysis": {"summary": "No sex-stratified results.", "evidence": []},
        "studyOutcomes": {"summary": "", "evidence": []},
        "methodologicalFairness": {"summary": "", "evidence": []},
    },
}


def response(*parts, grounding=None, url_meta=None, text=None) -> ModelResponse:
    return ModelResponse(
        candidates=(
            Candidate(
                parts=tuple(parts),
                grounding_metadata=grounding,
                url_context_metadata=url_meta,
            ),
        ),
        text=text,
    )


class FakeInvoker:
    """Returns queued responses and records every call."""

    def __init__(self, *responses: ModelResponse) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str | None]] = []

    async def invoke(self, url, reformulate_from=None):
        self.calls.append((url, reformulate_from))
        return self.responses.pop(0)


@pytest.mark.asyncio
async def test_valid_first_pass_uses_one_invocation():
    invoker = FakeInvoker(response(json.dumps(VALID), grounding={"queries": ["q"]}))

    outcome = await AnalysisOrchestrator(invoker).run(URL)

    assert outcome.invocations == 1
    assert invoker.calls == [(URL, None)]
    assert outcome.analysis.to_wire() == VALID
    assert outcome.debug == {"grounding": {"queries": ["q"]}, "urlMeta": None}
    assert outcome.states == (
        AnalysisState.INVOKE_1,
        AnalysisState.EXTRACT_PARSE_1,
        AnalysisState.SUCCESS,
    )


@pytest.mark.asyncio
async def test_fenced_output_with_trailing_comma_succeeds_on_repair():
    raw = '```json\n{"biasScore": 3, "biasMeaning": "Moderate Bias",}\n```'
    invoker = FakeInvoker(response(raw))

    outcome = await AnalysisOrchestrator(invoker).run(URL)

    assert outcome.invocations == 1
    assert outcome.analysis.bias_score == "3"
    assert outcome.analysis.bias_meaning == "Moderate Bias"
    assert AnalysisState.REPAIR_PARSE_1 in outcome.states
    assert outcome.states[-1] is AnalysisState.SUCCESS
    wire = outcome.to_wire()
    assert wire["justification"]["studyOutcomes"] == {"summary": "", "evidence": []}
    assert "debug" in wire


@pytest.mark.asyncio
async def test_parts_are_joined_with_newlines():
    invoker = FakeInvoker(response('{"biasScore": "1",', '"biasMeaning": "Not Biased"}'))

    outcome = await AnalysisOrchestrator(invoker).run(URL)

    assert outcome.analysis.bias_meaning == "Not Biased"


@pytest.mark.asyncio
async def test_top_level_text_used_when_parts_are_empty():
    invoker = FakeInvoker(response(text='{"biasScore": "5"}'))

    outcome = await AnalysisOrchestrator(invoker).run(URL)

    assert outcome.analysis.bias_score == "5"


@pytest.mark.asyncio
async def test_reformat_pass_is_seeded_with_first_answer():
    invoker = FakeInvoker(response(GARBAGE_1), response(json.dumps(VALID)))

    outcome = await AnalysisOrchestrator(invoker).run(URL)

    assert outcome.invocations == 2
    assert invoker.calls == [(URL, None), (URL, GARBAGE_1)]
    assert outcome.analysis.bias_score == "3"
    assert outcome.states[:4] == (
        AnalysisState.INVOKE_1,
        AnalysisState.EXTRACT_PARSE_1,
        AnalysisState.REPAIR_PARSE_1,
        AnalysisState.INVOKE_2,
    )


@pytest.mark.asyncio
async def test_persistent_garbage_stops_after_two_invocations():
    invoker = FakeInvoker(
        response(GARBAGE_1), response(GARBAGE_2), response(json.dumps(VALID))
    )

    with pytest.raises(ModelOutputError) as exc_info:
        await AnalysisOrchestrator(invoker).run(URL)

    assert len(invoker.calls) == MAX_INVOCATIONS == 2
    err = exc_info.value
    assert err.message == "Invalid JSON from model after two attempts."
    assert err.raw_first_pass == GARBAGE_1
    assert err.raw_second_pass == GARBAGE_2


@pytest.mark.asyncio
async def test_empty_candidates_short_circuits():
    invoker = FakeInvoker(ModelResponse(candidates=()), response(json.dumps(VALID)))

    with pytest.raises(NoCandidatesError) as exc_info:
        await AnalysisOrchestrator(invoker).run(URL)

    assert len(invoker.calls) == 1
    assert exc_info.value.message == "No candidates returned from model."
    assert exc_info.value.reformat_pass is False


@pytest.mark.asyncio
async def test_empty_candidates_on_reformat_pass():
    invoker = FakeInvoker(response(GARBAGE_1), ModelResponse(candidates=()))

    with pytest.raises(NoCandidatesError) as exc_info:
        await AnalysisOrchestrator(invoker).run(URL)

    assert len(invoker.calls) == 2
    assert exc_info.value.message == "No candidates returned (reformat pass)."
    assert exc_info.value.reformat_pass is True


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["", "   ", None])
async def test_blank_url_is_rejected_before_invoking(url):
    invoker = FakeInvoker()

    with pytest.raises(ValidationError) as exc_info:
        await AnalysisOrchestrator(invoker).run(url)

    assert exc_info.value.message == "URL is required"
    assert invoker.calls == []


@pytest.mark.asyncio
async def test_transport_errors_propagate():
    class FailingInvoker:
        async def invoke(self, url, reformulate_from=None):
            raise ConnectionError("network down")

    with pytest.raises(ConnectionError):
        await AnalysisOrchestrator(FailingInvoker()).run(URL)


@pytest.mark.asyncio
async def test_runs_do_not_share_state():
    orchestrator = AnalysisOrchestrator(
        FakeInvoker(response('{"biasScore": "1"}'), response('{"biasScore": "4"}'))
    )

    first = await orchestrator.run(URL)
    second = await orchestrator.run(URL)

    assert (first.analysis.bias_score, second.analysis.bias_score) == ("1", "4")
    assert first.invocations == second.invocations == 1


def test_parse_analysis_marks_repaired_results():
    strict = parse_analysis('{"biasScore": "2"}')
    assert isinstance(strict, ParseSuccess)
    assert strict.repaired is False
    assert strict.analysis.bias_score == "2"
    repaired = parse_analysis("{'biasScore': '2'}")
    assert isinstance(repaired, ParseSuccess)
    assert repaired.repaired is True
    assert isinstance(parse_analysis(GARBAGE_1), ParseFailure)


@pytest.mark.asyncio
async def test_empty_first_answer_reruns_analysis_task():
    invoker = FakeInvoker(response(), response('{"biasScore": "2"}'))

    outcome = await AnalysisOrchestrator(invoker).run(URL)

    assert outcome.invocations == 2
    assert invoker.calls == [(URL, None), (URL, None)]
    assert outcome.analysis.bias_score == "2"


@pytest.mark.asyncio
async def test_fenced_numeric_score_parses_without_repair():
    study_url = "https://example.org/study"
    raw = (
        '```json\n{"biasScore":2,"biasMeaning":"Minor Bias","justification":'
        '{"sampleRepresentation":{"summary":"ok","evidence":[]}}}\n```'
    )
    invoker = FakeInvoker(response(raw))

    outcome = await AnalysisOrchestrator(invoker).run(study_url)

    assert invoker.calls == [(study_url, None)]
    assert outcome.invocations == 1
    assert AnalysisState.REPAIR_PARSE_1 not in outcome.states
    wire = outcome.analysis.to_wire()
    assert wire["biasScore"] == "2"
    assert wire["biasMeaning"] == "Minor Bias"
    assert wire["justification"]["sampleRepresentation"] == {"summary": "ok", "evidence": []}
    for key in ("inclusionInAnalysis", "studyOutcomes", "methodologicalFairness"):
        assert wire["justification"][key] == {"summary": "", "evidence": []}
