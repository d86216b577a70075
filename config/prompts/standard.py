"""Standard-generation prompts — ask the model to author a full rubric.

The model answers with an ``evaluation_system`` document (categories →
criteria) which ``services.rubric_service.rubric_from_document`` flattens.
"""

from __future__ import annotations

STANDARD_SYSTEM_PROMPT = (
    "You are an expert in content quality assessment who designs rigorous, "
    "well-balanced evaluation standards. Always answer with structured JSON."
)

STANDARD_PROMPT = """\
Design a complete content quality evaluation standard for the following need.

System name: {system_name}
System description: {system_description}

Return one JSON object containing:
- basic information about the evaluation system
- several categories, each with a weight and a description
- concrete criteria inside every category
- for every criterion a weight, a score range and a description of what each
  score level means

Category weights must add up to total_weight, and criterion weights inside a
category must add up to that category's weight.

Example of the expected structure:
{{
  "evaluation_system": {{
    "name": "Content quality evaluation system",
    "description": "Multi-dimensional standard for article quality",
    "version": "1.0",
    "total_weight": 100,
    "categories": [
      {{
        "id": "content_quality",
        "name": "Content quality",
        "weight": 60,
        "description": "Accuracy and depth of the content",
        "criteria": [
          {{
            "id": "accuracy",
            "name": "Accuracy",
            "weight": 30,
            "score_range": [1, 5],
            "description": {{
              "1": "Frequent factual errors",
              "3": "Mostly accurate with minor slips",
              "5": "Fully accurate and well sourced"
            }}
          }},
          {{
            "id": "depth",
            "name": "Depth",
            "weight": 30,
            "score_range": [1, 5],
            "description": {{
              "1": "Superficial",
              "3": "Some analysis",
              "5": "Thorough, insightful analysis"
            }}
          }}
        ]
      }},
      {{
        "id": "readability",
        "name": "Readability",
        "weight": 40,
        "description": "Clarity of expression",
        "criteria": [
          {{
            "id": "language",
            "name": "Language",
            "weight": 40,
            "score_range": [1, 5],
            "description": {{
              "1": "Hard to follow",
              "3": "Clear enough",
              "5": "Fluent and engaging"
            }}
          }}
        ]
      }}
    ]
  }}
}}

Return strictly the JSON structure above.
"""


def build_standard_prompt(system_name: str, system_description: str) -> str:
    return STANDARD_PROMPT.format(
        system_name=system_name,
        system_description=system_description,
    )
