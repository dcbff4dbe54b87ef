"""Prompt templates for wiki generation."""

from dataclasses import dataclass
from typing import Any

from wikigen.generation.context import RepositoryContext


@dataclass
class PromptTemplate:
    """A template for generating prompts with variable substitution."""

    template: str

    def render(self, **kwargs: Any) -> str:
        """Render the template with the given variables.

        Args:
            **kwargs: Variables to substitute into the template.

        Returns:
            The rendered template string.

        Raises:
            KeyError: If a required variable is missing.
        """
        return self.template.format(**kwargs)


# =============================================================================
# System Prompts
# =============================================================================

CATALOG_SYSTEM_PROMPT = """You are a technical documentation architect. You explore a code
repository with the file tools and design the table of contents of its wiki.

1. Base every entry on code you have actually looked at
2. Group related topics under categories; categories hold no content of their own
3. Give every entry a short, stable, lowercase path such as "getting-started/installation"
4. Keep paths unique across the whole catalog
5. Save the result with write_catalog; answering in text does not save anything"""

CONTENT_SYSTEM_PROMPT = """You are a technical documentation expert. You write one wiki page
at a time for a code repository. Follow these guidelines:

1. Be precise and factual - only document what exists in the code
2. Read the relevant source files before writing
3. Include short code excerpts and Mermaid diagrams when they help
4. Link source files using the file base URL you are given
5. Save the page with write_doc; answering in text does not save anything

Write clean Markdown."""

MIND_MAP_SYSTEM_PROMPT = """You are a software architect. You explore a code repository and
summarize its architecture as a hierarchical mind map."""

TRANSLATION_SYSTEM_PROMPT = """You are a professional technical translator. You translate
software documentation faithfully, keeping Markdown structure intact. Placeholders of the
form ⟦N⟧ stand for code or links: copy every one of them unchanged, exactly once, and never
translate, move inside words, or drop them. Reply with the translation only."""

# Appended to the user message of every tool-using session
SYSTEM_REMINDER = """

<system-reminder>
Use the tools to inspect the repository and to save your work. Work that is not saved
through a write tool is lost. Do not ask questions; make reasonable decisions and finish
the task.
</system-reminder>"""


# =============================================================================
# Catalog Template
# =============================================================================

CATALOG_TEMPLATE = PromptTemplate(
    """Design the wiki catalog for the repository "{repo_name}".

## Project Type
{project_type}

## Project Structure
```
{file_tree}
```

## README Content
{readme_content}

## Key Files
{key_files}

## Entry Points
{entry_points}

---

Explore the repository with the file tools, then call write_catalog with JSON like:
{{"items": [{{"title": "Overview", "path": "overview", "order": 0, "children": []}}]}}

Write all titles in language "{language}"."""
)


# =============================================================================
# Content Template
# =============================================================================

CONTENT_TEMPLATE = PromptTemplate(
    """Write the wiki page "{title}" (catalog path "{path}") for the repository "{repo_name}".

## Catalog
{catalog_outline}

## Source Links
Files are browsable at {file_base_url}/<path> on branch "{branch}".

---

Read the source files this page is about, then save the complete page with write_doc.
Write the page in language "{language}"."""
)


# =============================================================================
# Incremental Update Template
# =============================================================================

INCREMENTAL_TEMPLATE = PromptTemplate(
    """The repository "{repo_name}" changed between commit {previous_commit} and commit
{current_commit}. Update its wiki so it matches the code again.

## Changed Files
{changed_files}

## Current Catalog
{catalog_outline}

---

1. Read the changed files and the documents that cover them (read_doc takes a catalog path)
2. Edit outdated documents with edit_doc or rewrite them with write_doc
3. Adjust the catalog with edit_catalog or write_catalog only when topics were added or removed
4. Leave documents untouched by the change as they are

Write in language "{language}"."""
)


# =============================================================================
# Mind Map Template
# =============================================================================

MIND_MAP_TEMPLATE = PromptTemplate(
    """Create the architecture mind map of the repository "{repo_name}" ({project_type}).

## Project Structure
```
{file_tree}
```

---

Explore the code, then save the mind map with write_mind_map. Use one node per line,
"#" for level 1, "##" for level 2 and "###" for level 3. Add ":relative/path" after a
title to link the node to a file, for example:

# Core Engine
## Parser:src/parser.py
## Scheduler

Write all titles in language "{language}"."""
)


# =============================================================================
# Translation Templates
# =============================================================================

TITLE_TRANSLATION_TEMPLATE = PromptTemplate(
    """Translate this documentation title from "{source_language}" to "{target_language}".
Reply with the translated title only, on a single line.

{title}"""
)

CONTENT_TRANSLATION_TEMPLATE = PromptTemplate(
    """Translate the following Markdown document from "{source_language}" to
"{target_language}".

{content}"""
)

MIND_MAP_TRANSLATION_TEMPLATE = PromptTemplate(
    """Translate each numbered line from "{source_language}" to "{target_language}".
Reply with exactly {count} lines in the same order, each starting with its number
followed by ". ", for example "1. Translated title".

{numbered_titles}"""
)


def _format_list(items: list[str], empty: str = "None found.") -> str:
    if not items:
        return empty
    return "\n".join(f"- {item}" for item in items)


def get_catalog_prompt(repo_name: str, context: RepositoryContext, language: str) -> str:
    """Generate a prompt for designing the catalog.

    Args:
        repo_name: Full name of the repository.
        context: Repository context summary.
        language: Language code the titles are written in.

    Returns:
        The rendered prompt string.
    """
    return (
        CATALOG_TEMPLATE.render(
            repo_name=repo_name,
            project_type=context.project_type,
            file_tree=context.directory_tree,
            readme_content=context.readme_content,
            key_files=_format_list(context.key_files),
            entry_points=_format_list(context.entry_points),
            language=language,
        )
        + SYSTEM_REMINDER
    )


def get_content_prompt(
    repo_name: str,
    title: str,
    path: str,
    catalog_outline: str,
    file_base_url: str,
    branch: str,
    language: str,
) -> str:
    """Generate a prompt for writing one document."""
    return (
        CONTENT_TEMPLATE.render(
            repo_name=repo_name,
            title=title,
            path=path,
            catalog_outline=catalog_outline,
            file_base_url=file_base_url or "(no remote)",
            branch=branch,
            language=language,
        )
        + SYSTEM_REMINDER
    )


def get_incremental_prompt(
    repo_name: str,
    previous_commit: str,
    current_commit: str,
    changed_files: list[str],
    catalog_outline: str,
    language: str,
) -> str:
    return (
        INCREMENTAL_TEMPLATE.render(
            repo_name=repo_name,
            previous_commit=previous_commit,
            current_commit=current_commit,
            changed_files=_format_list(changed_files),
            catalog_outline=catalog_outline,
            language=language,
        )
        + SYSTEM_REMINDER
    )


def get_mind_map_prompt(repo_name: str, context: RepositoryContext, language: str) -> str:
    return (
        MIND_MAP_TEMPLATE.render(
            repo_name=repo_name,
            project_type=context.project_type,
            file_tree=context.directory_tree,
            language=language,
        )
        + SYSTEM_REMINDER
    )


def get_title_translation_prompt(title: str, source_language: str, target_language: str) -> str:
    return TITLE_TRANSLATION_TEMPLATE.render(
        title=title, source_language=source_language, target_language=target_language
    )


def get_content_translation_prompt(
    content: str, source_language: str, target_language: str
) -> str:
    return CONTENT_TRANSLATION_TEMPLATE.render(
        content=content, source_language=source_language, target_language=target_language
    )


def get_mind_map_translation_prompt(
    titles: list[str], source_language: str, target_language: str
) -> str:
    numbered = "\n".join(f"{number}. {title}" for number, title in enumerate(titles, start=1))
    return MIND_MAP_TRANSLATION_TEMPLATE.render(
        numbered_titles=numbered,
        count=len(titles),
        source_language=source_language,
        target_language=target_language,
    )
