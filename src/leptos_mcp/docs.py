from __future__ import annotations

from functools import lru_cache
from importlib import resources

from leptos_mcp.models import DocSection


# (title, path, use cases); content lives in sections/<path>.md
SECTIONS = (
    ("Getting Started", "getting-started", "new project, setup, installation, basics, hello world"),
    ("Components", "components", "UI, view, component, props, children, #[component], always"),
    ("Signals", "signals", "state, reactivity, signals, derived, effects, get, set, read, write, update, always"),
    ("Views", "views", "view macro, dynamic classes, dynamic styles, attributes, class:, style:, events, always"),
    ("Resources", "resources", "async, data loading, Resource, LocalResource, OnceResource, fetch, API"),
    ("Actions", "actions", "mutations, POST, forms, ActionForm, ServerAction, submit, create, update, delete"),
    ("Server Functions", "server-functions", "backend, API, database, server, SSR, #[server], extractors, Axum"),
    ("Routing", "routing", "navigation, pages, routes, params, nested routes, Router"),
    ("Forms", "forms", "form, input, validation, submit, controlled input, prop:value"),
    ("Error Handling", "error-handling", "errors, ErrorBoundary, Result, ServerFnError, try"),
    ("Suspense", "suspense", "loading, async, Suspense, Transition, streaming, fallback"),
)


@lru_cache(maxsize=1)
def list_sections() -> tuple[DocSection, ...]:
    root = resources.files("leptos_mcp") / "sections"
    return tuple(
        DocSection(
            title=title,
            path=path,
            use_cases=use_cases,
            content=(root / f"{path}.md").read_text(encoding="utf-8"),
        )
        for title, path, use_cases in SECTIONS
    )


def get_section(query: str) -> DocSection | None:
    needle = query.strip().lower()
    if not needle:
        return None
    for section in list_sections():
        if needle in section.path.lower() or needle in section.title.lower():
            return section
    return None
