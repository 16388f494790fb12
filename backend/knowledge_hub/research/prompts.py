"""Prompt templates for the DeepSearch research agent."""

DECOMPOSITION_PROMPT = """You are a research assistant. Break down the following research question into {max_sub_questions} specific sub-questions that would help thoroughly answer the main question.

Main Question: {question}

Return ONLY the sub-questions as a numbered list (1. 2. 3. etc.), nothing else."""


SYNTHESIS_PROMPT = """You are a research assistant. Based on the following research findings, provide a comprehensive, well-structured answer to the main question. Include relevant details from all sources and cite them by their number (Source 1, Source 2, ...) where appropriate.

# Main Question
{question}

# Research Findings
{findings}

# Instructions
1. Provide a comprehensive answer that addresses all aspects of the question
2. Use clear headings and structure
3. Include specific facts and data from the research
4. Be objective and balanced
5. End with a brief summary

Please provide your synthesized answer:"""


FINDING_TEMPLATE = "## Sub-question {number}: {question}\n\n{answer}"

FINDING_SEPARATOR = "\n\n---\n\n"

NO_FINDING_PLACEHOLDER = "(no findings: the search for this sub-question failed)"
