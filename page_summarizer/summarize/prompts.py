"""Prompt templates for single-pass, per-section and synthesis summaries."""

from dataclasses import dataclass

from ..constants import summary_word_count

BULLETS_INSTRUCTION = "Format the summary as clear bullet points."
PARAGRAPH_INSTRUCTION = "Format the summary in well-structured paragraphs."

SUMMARY_PROMPT = """Provide a concise summary of the {subject} below. The summary should be around {word_count} words and capture the essential information while preserving the original meaning and context. {format_instruction} Avoid including minor details or tangential information. The goal is to provide a quick, informative overview of the {subject}'s core content.

Do not include any intro text, e.g. 'Here is a concise summary', get straight to the summary.

{content_label}:
---
{title_line}{content}
---"""

CHUNK_PROMPT = """Summarize section {index} of {total} from a longer {subject}. Target about {target_words} words. {format_instruction} Keep the key facts and context.

Do not include any intro text.

{content_label} section:
---
{title_line}{chunk}
---"""

SYNTHESIS_PROMPT = """The text below contains summaries of sections from one long {subject}. Synthesize them into a single coherent summary around {word_count} words. {format_instruction} Remove duplication and keep the most important points.

Do not include any intro text.

Section summaries:
---
{summaries}
---"""


@dataclass(frozen=True)
class PromptContext:
    """Where the content came from; only shapes prompt wording."""

    source_type: str = "article"  # "article" | "video"
    title: str | None = None


def format_instruction(summary_format: str) -> str:
    return BULLETS_INSTRUCTION if summary_format == "bullets" else PARAGRAPH_INSTRUCTION


def _labels(context: PromptContext | None) -> tuple[str, str, str]:
    """Return (subject, content label, title line) for a context."""
    context = context or PromptContext()
    if context.source_type == "video":
        subject, content_label = "video transcript", "Transcript"
    else:
        subject, content_label = "article", "Article"
    title_line = f"Title: {context.title}\n" if context.title else ""
    return subject, content_label, title_line


def get_summary_prompt(
    content: str,
    length: str,
    summary_format: str,
    context: PromptContext | None = None,
) -> str:
    """Build the prompt used when the whole content fits in one request."""
    subject, content_label, title_line = _labels(context)
    return SUMMARY_PROMPT.format(
        subject=subject,
        word_count=summary_word_count(length),
        format_instruction=format_instruction(summary_format),
        content_label=content_label,
        title_line=title_line,
        content=content,
    )


def build_chunk_prompt(
    chunk: str,
    index: int,
    total: int,
    target_words: int,
    summary_format: str,
    context: PromptContext | None = None,
) -> str:
    """Build the prompt for one section of chunked content (1-based index)."""
    subject, content_label, title_line = _labels(context)
    return CHUNK_PROMPT.format(
        index=index,
        total=total,
        subject=subject,
        target_words=target_words,
        format_instruction=format_instruction(summary_format),
        content_label=content_label,
        title_line=title_line,
        chunk=chunk,
    )


def build_synthesis_prompt(
    summaries: str,
    length: str,
    summary_format: str,
    context: PromptContext | None = None,
) -> str:
    """Build the prompt that merges section summaries into one."""
    subject, _, _ = _labels(context)
    return SYNTHESIS_PROMPT.format(
        subject=subject,
        word_count=summary_word_count(length),
        format_instruction=format_instruction(summary_format),
        summaries=summaries,
    )
