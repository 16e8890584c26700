# bias_detector/prompts/__init__.py
"""
Prompt templates for the bias analysis model.

Every request sends two user-role messages: the fixed output contract
(``SYSTEM_RULES``) followed by a task directive. The task is either the
analysis of an article URL or, on the retry pass, a request to reformat a
previous answer into strict JSON.
"""
from typing import Dict, List, Optional

# =============================================================================
# Output Contract
# =============================================================================

SYSTEM_RULES: str = """You are a STRICT JSON generator.
Output ONLY valid, minified JSON (no markdown, no backticks, no comments, no trailing commas).
Begin with { and end with }.
Schema:
{
  "biasScore": "string",
  "biasMeaning": "string",
  "justification": {
    "sampleRepresentation": {
      "summary": "string",
      "evidence": [{"quote":"string","section":"string"}]
    },
    "inclusionInAnalysis": {
      "summary": "string",
      "evidence": [{"quote":"string","section":"string"}]
    },
    "studyOutcomes": {
      "summary": "string",
      "evidence": [{"quote":"string","section":"string"}]
    },
    "methodologicalFairness": {
      "summary": "string",
      "evidence": [{"quote":"string","section":"string"}]
    }
  }
}
Rules:
- "biasScore" MUST be a string (e.g., "1", "2", "3", "4", or "5").
- Do not include any text outside JSON."""

# =============================================================================
# Fallback Phrasings & Score Labels
# =============================================================================

MESSAGE_UNREADABLE: str = (
    "The article content appears unreadable or inaccessible at this moment. "
    "Please ensure the text is clear and try again."
)
MESSAGE_NON_MEDICAL: str = (
    "This tool is optimized for analyzing medical research articles where specific "
    "types of bias may occur. Non-medical research content cannot be processed."
)
MESSAGE_INSUFFICIENT_GENDER_DATA: str = (
    "Insufficient gender-specific data is present within the article to conduct a "
    "thorough analysis of gender bias. Please ensure relevant demographic and "
    "analytical details are provided."
)

BIAS_SCORE_LABELS: Dict[str, str] = {
    "1": "Not Biased",
    "2": "Minor Bias",
    "3": "Moderate Bias",
    "4": "Significant Bias",
    "5": "Severe Bias / Exclusionary",
}

# =============================================================================
# Task Templates
# =============================================================================

_SCORE_DESCRIPTIONS = "\n".join(
    f"{score}: {label}" for score, label in BIAS_SCORE_LABELS.items()
)

TASK_ANALYZE_ARTICLE: str = (
    'Task: "Is this biased?"\n'
    "For the article at {url}, calculate a gender bias score and provide a detailed "
    "justification for that score, following the specified schema and rules.\n"
    "\n"
    "Error Handling Rules:\n"
    "If the article content appears unreadable or inaccessible:\n"
    f'"{MESSAGE_UNREADABLE}"\n'
    "If the article is not a medical research article:\n"
    f'"{MESSAGE_NON_MEDICAL}"\n'
    "If there is insufficient gender-specific data to make a judgment:\n"
    f'"{MESSAGE_INSUFFICIENT_GENDER_DATA}"\n'
    "\n"
    "Descriptions for Bias Scores (for biasMeaning field):\n"
    f"{_SCORE_DESCRIPTIONS}\n"
    "\n"
    "Return STRICT JSON ONLY."
)

TASK_REFORMAT_ANSWER: str = (
    "Reformat the following answer into STRICT JSON ONLY, adhering to the schema. "
    "Do not add any text outside JSON:\n\n{prior}"
)


def build_task_prompt(url: str, reformulate_from: Optional[str] = None) -> str:
    """Return the reformat directive when a prior answer is given, else the analysis task."""
    if reformulate_from:
        return TASK_REFORMAT_ANSWER.format(prior=reformulate_from)
    return TASK_ANALYZE_ARTICLE.format(url=url)


def construct_prompt_messages(
    url: str, reformulate_from: Optional[str] = None
) -> List[Dict[str, str]]:
    """
    Build the two user-role messages for one invocation.

    Returns:
        ``[{"role": "user", "text": SYSTEM_RULES}, {"role": "user", "text": task}]``
    """
    return [
        {"role": "user", "text": SYSTEM_RULES},
        {"role": "user", "text": build_task_prompt(url, reformulate_from)},
    ]
