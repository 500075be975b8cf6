"""Plain-text rendering of an ImportResult."""

from __future__ import annotations

import click

from compsync.engines.importer.models import (
    ComponentObject,
    DependencyAuditResult,
    ImportDetails,
    ImportResult,
)

_STATUS_NOTE = {
    "imported": "",
    "up-to-date": " (up to date)",
    "conflicted": " (local changes overridden)",
}


def _format_detail(detail: ImportDetails, *, objects_only: bool = False) -> str:
    note = _STATUS_NOTE[detail.status]
    if objects_only and detail.status == "conflicted":
        # working copies were not touched, so nothing was overridden
        note = ""
    return f"> {detail.id.key}@{detail.version}{note}"


def _format_object(obj: ComponentObject) -> str:
    return f"> {obj.id.key}@{obj.id.version}"


def render_report(
    result: ImportResult,
    *,
    display_dependencies: bool = False,
    color: bool = True,
) -> str:
    """Render the import outcome the way the ``import`` command prints it."""

    def style(text: str, **kwargs: object) -> str:
        return click.style(text, **kwargs) if color else text  # type: ignore[arg-type]

    sections: list[str] = []

    imported = result.imported
    if imported:
        title = (
            "successfully imported one component"
            if len(imported) == 1
            else f"successfully imported {len(imported)} components"
        )
        objects_only = result.objects_only
        lines = [style(title, fg="green")]
        lines.extend(_format_detail(d, objects_only=objects_only) for d in imported)
        deps = result.dependencies
        if display_dependencies and deps:
            lines.append("")
            lines.append(
                style(f"successfully imported {len(deps)} component dependencies", fg="green")
            )
            lines.extend(sorted({_format_detail(d, objects_only=objects_only) for d in deps}))
        if objects_only:
            lines.append(
                style("objects only, run with --write to update the working copies", fg="yellow")
            )
        sections.append("\n".join(lines))

    if result.closure.environments:
        lines = [style("the following component environments were installed", fg="green")]
        lines.extend(_format_object(o) for o in result.closure.environments)
        sections.append("\n".join(lines))

    output = "\n\n".join(sections) if sections else style("nothing to import", fg="yellow")
    return output + _render_warnings(result, style) + _render_audit(result.audit, style)


def _render_warnings(result: ImportResult, style) -> str:
    if not result.warnings:
        return ""
    lines = [style("\nwarning - the import finished with warnings", fg="yellow", underline=True)]
    lines.extend(style(f"> {w}", fg="yellow") for w in result.warnings)
    return "\n" + "\n".join(lines)


def _render_audit(audit: DependencyAuditResult, style) -> str:
    def pairs(items: tuple[tuple[str, str], ...]) -> str:
        return "\n".join(f"> {name}: {version}" for name, version in items)

    output = ""
    if audit.missing_everywhere:
        output += "\n" + style(
            "\nerror - missing the following package dependencies. "
            "please install and add them to the project manifest.",
            fg="red",
            underline=True,
        )
        output += "\n" + style(pairs(audit.missing_everywhere), fg="red")
    if audit.missing_declared:
        output += "\n" + style(
            "\nwarning - add the following packages to the project manifest",
            fg="yellow",
            underline=True,
        )
        output += "\n" + style(pairs(audit.missing_declared), fg="yellow")
    if audit.missing_installed:
        output += "\n" + style(
            "\nwarning - following packages are not installed. please install them.",
            fg="yellow",
            underline=True,
        )
        output += "\n" + style(pairs(audit.missing_installed), fg="yellow")
    return output
