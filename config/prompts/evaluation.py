"""Scoring prompt — asks the model to score content against one rubric.

The static EVALUATION_PROMPT is filled at runtime with the rubric's
criterion list via build_evaluation_prompt().
"""

from __future__ import annotations

from datetime import datetime

from models.rubric import Rubric
from services.rubric_service import get_rubric_context

EVALUATION_PROMPT = """\
Evaluate the article below against the evaluation standard that follows.
Score every criterion independently, using the level descriptions as anchors.

## Evaluation standard: {name}
{description}

Declared total weight: {total_weight}

{criteria_text}

## Article
{content}

## Response format
Reply with ONE JSON object and nothing else. Use exactly this shape:
{{
  "article_title": "title taken from the article, or a short generated one",
  "total_score": <number 0-100>,
  "evaluation_date": "{evaluation_date}",
  "criteria": [
    {{
      "id": "<criterion id from the standard>",
      "name": "<criterion name>",
      "score": <number within the criterion's score range>,
      "max_score": <upper bound of the criterion's score range>,
      "comment": "why this score was given"
    }}
  ],
  "summary": "overall assessment",
  "suggestions": ["improvement 1", "improvement 2"]
}}

Include one entry in "criteria" for every criterion id listed above.
"""


def build_evaluation_prompt(
    rubric: Rubric,
    content: str,
    evaluation_date: datetime,
) -> str:
    """Render the scoring instruction for *rubric* applied to *content*."""
    context = get_rubric_context(rubric)
    return EVALUATION_PROMPT.format(
        name=context["name"],
        description=context["description"] or "(no description)",
        total_weight=context["totalWeight"],
        criteria_text=context["criteriaText"],
        content=content,
        evaluation_date=evaluation_date.isoformat(),
    )
