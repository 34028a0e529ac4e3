"""Research agent prompt templates.

Templates used by agent.py:

1. STRUCTURED_SYSTEM / STRUCTURED_WRAPPER -- JSON-only envelope around every
   structured step. Variables: {system}, {task}.
2. BRAINSTORM -- five hypotheses on a topic. Variables: {topic}.
3. EVALUATE -- grant-committee scoring. Variables: {ideas_json}.
4. RANK_PAPERS -- relevance of papers to a topic. Variables: {topic}, {papers_json}.
5. DEEP_DIVE -- full report on one idea.
   Variables: {title}, {description}, {reasoning}.
6. PLAN -- research task plan for plan mode. Variables: {topic}.
7. CHAT_SYSTEM -- system prompt for the tool-enabled conversation.
"""

from __future__ import annotations

STRUCTURED_SYSTEM = (
    "You are a professional research AI. You MUST respond ONLY with a valid JSON object. "
    "Do not include any preamble, commentary, or explanation. "
    "Your entire response must be parseable as JSON."
)

STRUCTURED_WRAPPER = """\
{system}

Task: {task}

CRITICAL: Output MUST be a valid JSON object matching the requested schema. \
Wrap in ```json code blocks if you must, but ensure the content is pure JSON."""

BRAINSTORM = """\
You are an elite research scientist.
Generate 5 distinct, novel, and innovative research hypotheses or topics related to: "{topic}".
Focus on ideas that are theoretically grounded but explore new frontiers.
Provide your response EXACTLY as a JSON object with this structure:
{{
  "ideas": [
    {{ "title": "...", "description": "..." }},
    ...
  ]
}}"""

EVALUATE = """\
Evaluate the following research ideas as a strict grant committee.
Score each on Novelty, Feasibility, and Impact (1-10).
Provide a concise reasoning for your scores.
Copy each title EXACTLY as given; scores are matched back by title.

Provide your response EXACTLY as a JSON object with this structure:
{{
  "evaluations": [
    {{
      "title": "...",
      "noveltyScore": number,
      "feasibilityScore": number,
      "impactScore": number,
      "reasoning": "..."
    }},
    ...
  ]
}}

Ideas to evaluate:
{ideas_json}"""

RANK_PAPERS = """\
Rate how relevant each paper is to the research topic "{topic}" on a 0-100 scale.
Use the paper ids exactly as given.

Provide your response EXACTLY as a JSON object with this structure:
{{
  "rankings": [
    {{ "id": "...", "relevance": number }},
    ...
  ]
}}

Papers:
{papers_json}"""

DEEP_DIVE = """\
Write a comprehensive research proposal/report for the hypothesis: "{title}".

Context/Description: {description}
Reasoning behind selection: {reasoning}

Provide your response EXACTLY as a JSON object with this structure:
{{
  "title": "...",
  "summary": "...",
  "sections": [
    {{ "heading": "...", "content": "..." }},
    ...
  ],
  "references": ["...", "..."]
}}

Make it substantial, academic in tone, but clear."""

PLAN = """\
You are planning an autonomous literature-driven research session on: "{topic}".
Break the work into 3-6 concrete, ordered tasks (e.g. survey prior work,
brainstorm hypotheses, evaluate them, write up the strongest one).

Provide your response EXACTLY as a JSON object with this structure:
{{
  "tasks": [
    {{ "title": "...", "description": "..." }},
    ...
  ]
}}"""

CHAT_SYSTEM = """\
You are an autonomous research assistant. Help the user explore a research
area conversationally. When the user needs prior work, call the
searchLiterature tool. When the user wants new research directions, call the
brainstormIdeas tool. Otherwise answer directly and concisely."""

FALLBACK_REPLY = (
    "I'm sorry, I wasn't able to produce a response. "
    "Could you rephrase your request or try another model?"
)
